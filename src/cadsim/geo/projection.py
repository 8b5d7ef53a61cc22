"""Viewport projection: transforms between lng/lat and screen pixels.

The map client renders in Web Mercator with 512px tiles.  The simulation
needs the same mapping so that fixed-pixel effects (orbit radius, hover
offset, dock marker size, camera cones) stay visually constant no matter
how far the map is zoomed.  Nothing in the engine converts pixels to
degrees with a fixed factor; everything goes through project/unproject.

Convention:
    - Coordinates are (lng, lat) tuples, GeoJSON order
    - Screen origin (0, 0) is the top-left corner of the viewport
    - +x = right (east), +y = down (south)

The viewport is replaced wholesale when the client reports a new view, so
a tick always sees one consistent projection.
"""

from __future__ import annotations

import math
import random
from dataclasses import dataclass
from typing import Protocol

LngLat = tuple[float, float]
ScreenPoint = tuple[float, float]

TILE_SIZE = 512
MAX_LATITUDE = 85.051129


class Projection(Protocol):
    """Bidirectional mapping the motion engines depend on."""

    def project(self, lnglat: LngLat) -> ScreenPoint: ...

    def unproject(self, point: ScreenPoint) -> LngLat: ...


def _world_size(zoom: float, tile_size: int = TILE_SIZE) -> float:
    return tile_size * 2**zoom


def _mercator_x(lng: float, world: float) -> float:
    return (lng + 180.0) / 360.0 * world


def _mercator_y(lat: float, world: float) -> float:
    lat = max(-MAX_LATITUDE, min(MAX_LATITUDE, lat))
    lat_rad = math.radians(lat)
    return (1 - math.log(math.tan(lat_rad) + 1 / math.cos(lat_rad)) / math.pi) / 2 * world


@dataclass(frozen=True)
class Viewport:
    """Map view state: center, zoom and pixel dimensions."""

    center: LngLat = (-122.335167, 47.608013)
    zoom: float = 13.0
    width: int = 1280
    height: int = 800
    tile_size: int = TILE_SIZE

    @property
    def world_size(self) -> float:
        return _world_size(self.zoom, self.tile_size)

    def _center_px(self) -> ScreenPoint:
        world = self.world_size
        return (_mercator_x(self.center[0], world), _mercator_y(self.center[1], world))

    def project(self, lnglat: LngLat) -> ScreenPoint:
        """Convert (lng, lat) to viewport pixels."""
        world = self.world_size
        cx, cy = self._center_px()
        x = _mercator_x(lnglat[0], world) - cx + self.width / 2
        y = _mercator_y(lnglat[1], world) - cy + self.height / 2
        return (x, y)

    def unproject(self, point: ScreenPoint) -> LngLat:
        """Convert viewport pixels to (lng, lat)."""
        world = self.world_size
        cx, cy = self._center_px()
        wx = point[0] - self.width / 2 + cx
        wy = point[1] - self.height / 2 + cy
        lng = wx / world * 360.0 - 180.0
        lat_rad = math.atan(math.sinh(math.pi * (1 - 2 * wy / world)))
        return (lng, math.degrees(lat_rad))

    def bounds(self) -> tuple[float, float, float, float]:
        """Return (west, south, east, north) of the visible area."""
        west, north = self.unproject((0.0, 0.0))
        east, south = self.unproject((float(self.width), float(self.height)))
        return (west, south, east, north)

    def random_point(self, rng: random.Random | None = None) -> LngLat:
        """Uniform random (lng, lat) inside the visible bounds."""
        rng = rng or random
        west, south, east, north = self.bounds()
        return (west + rng.random() * (east - west), south + rng.random() * (north - south))

    def with_center(self, center: LngLat, zoom: float | None = None) -> Viewport:
        return Viewport(
            center=center,
            zoom=self.zoom if zoom is None else zoom,
            width=self.width,
            height=self.height,
            tile_size=self.tile_size,
        )

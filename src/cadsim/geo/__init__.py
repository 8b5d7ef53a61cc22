"""Geometry adapter: viewport projection and fixed-pixel helpers."""

from cadsim.geo.projection import LngLat, Projection, ScreenPoint, Viewport
from cadsim.geo.screen import fov_wedge, hover_point, orbit_angle, orbit_position, screen_square

__all__ = [
    "LngLat",
    "Projection",
    "ScreenPoint",
    "Viewport",
    "fov_wedge",
    "hover_point",
    "orbit_angle",
    "orbit_position",
    "screen_square",
]

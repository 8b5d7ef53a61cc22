"""Fixed-pixel geometry built on top of a Projection.

Every helper here works in screen space and unprojects the result, so a
20px hover offset is 20px at zoom 10 and at zoom 15 alike.
"""

from __future__ import annotations

import math

from .projection import LngLat, Projection

HOVER_OFFSET_PX = 20.0
ORBIT_RADIUS_PX = 20.0
DOCK_HALF_SIZE_PX = 10.0  # 20px square


def hover_point(
    projection: Projection,
    origin: LngLat,
    target: LngLat,
    offset_px: float = HOVER_OFFSET_PX,
) -> LngLat:
    """Point ``offset_px`` short of ``target`` along the origin->target line.

    When origin and target project to the same pixel the direction is
    undefined and the target itself is returned.
    """
    ox, oy = projection.project(origin)
    tx, ty = projection.project(target)
    vx = tx - ox
    vy = ty - oy
    length = math.hypot(vx, vy)
    if length == 0:
        return target
    hx = tx - (vx / length) * offset_px
    hy = ty - (vy / length) * offset_px
    return projection.unproject((hx, hy))


def orbit_angle(projection: Projection, point: LngLat, center: LngLat) -> float:
    """Screen-space angle of ``point`` around ``center`` (radians)."""
    px, py = projection.project(point)
    cx, cy = projection.project(center)
    return math.atan2(py - cy, px - cx)


def orbit_position(
    projection: Projection,
    center: LngLat,
    angle: float,
    radius_px: float = ORBIT_RADIUS_PX,
) -> LngLat:
    """Position on a constant-pixel circle around ``center``."""
    cx, cy = projection.project(center)
    return projection.unproject((cx + radius_px * math.cos(angle), cy + radius_px * math.sin(angle)))


def screen_square(
    projection: Projection,
    center: LngLat,
    half_size_px: float = DOCK_HALF_SIZE_PX,
) -> list[LngLat]:
    """Closed ring of a square that is always 2*half_size_px wide on screen."""
    cx, cy = projection.project(center)
    corners = [
        (cx - half_size_px, cy - half_size_px),
        (cx + half_size_px, cy - half_size_px),
        (cx + half_size_px, cy + half_size_px),
        (cx - half_size_px, cy + half_size_px),
    ]
    ring = [projection.unproject(c) for c in corners]
    ring.append(ring[0])
    return ring


def fov_wedge(
    projection: Projection,
    apex: LngLat,
    bearing_deg: float,
    radius_px: float = 80.0,
    half_angle_deg: float = 30.0,
    steps: int = 10,
) -> list[LngLat]:
    """Closed ring of a cone opening from ``apex`` toward ``bearing_deg``.

    The bearing is measured in screen space (same convention the map
    client uses when drawing the cone), the arc is sampled ``steps + 1``
    times.
    """
    cx, cy = projection.project(apex)
    bearing = math.radians(bearing_deg)
    start = bearing - math.radians(half_angle_deg)
    end = bearing + math.radians(half_angle_deg)
    ring: list[LngLat] = [apex]
    for i in range(steps + 1):
        ang = start + (end - start) * (i / steps)
        ring.append(projection.unproject((cx + radius_px * math.cos(ang), cy + radius_px * math.sin(ang))))
    ring.append(apex)
    return ring

"""Traffic cameras: static points with a viewing direction.

The field of view is a cone drawn in screen space (80px long, 60 degrees
wide) and unprojected, so it keeps its on-screen size at every zoom.
"""

from __future__ import annotations

import random

from cadsim.geo.projection import LngLat, Projection
from cadsim.geo.screen import fov_wedge

from .cities import City
from .models import TrafficCamera

CAMERA_JITTER_DEG = 0.12
FOV_RADIUS_PX = 80.0
FOV_HALF_ANGLE_DEG = 30.0


def generate_cameras(
    city: City,
    count: int = 45,
    rng: random.Random | None = None,
) -> list[TrafficCamera]:
    rng = rng or random.Random()
    center_lng, center_lat = city.center
    cameras = []
    for i in range(count):
        location = (
            center_lng + (rng.random() - 0.5) * CAMERA_JITTER_DEG,
            center_lat + (rng.random() - 0.5) * CAMERA_JITTER_DEG,
        )
        cameras.append(TrafficCamera(f"camera-{i + 1}", location, rng.random() * 360.0))
    return cameras


def camera_fov(projection: Projection, camera: TrafficCamera) -> list[LngLat]:
    """Closed polygon ring for a camera's field of view."""
    return fov_wedge(
        projection,
        camera.location,
        camera.bearing,
        radius_px=FOV_RADIUS_PX,
        half_angle_deg=FOV_HALF_ANGLE_DEG,
    )

"""Simulation subsystem: dispatch events, vehicles, drones, tick driver."""
from .aerial import AerialMissionEngine, move_toward, plan_mission
from .arbiter import AssignmentArbiter, claimed_event_ids
from .cameras import camera_fov, generate_cameras
from .cities import CITIES, DEFAULT_CITY_ID, City, cities_by_region, dock_for, get_city
from .dispatch import generate_events
from .engine import SimulationEngine
from .ground import GroundMotionEngine
from .models import (
    AerialUnit,
    AssignmentLine,
    DispatchEvent,
    GroundUnit,
    Route,
    TrafficCamera,
)
from .routing import (
    MapboxDirectionsProvider,
    PathRequest,
    PathRequestQueue,
    PathResult,
    StraightLineProvider,
    resolve_path,
)
from .snapshot import build_snapshot
from .store import SimulationState

__all__ = [
    "AerialMissionEngine",
    "AerialUnit",
    "AssignmentArbiter",
    "AssignmentLine",
    "CITIES",
    "City",
    "DEFAULT_CITY_ID",
    "DispatchEvent",
    "GroundMotionEngine",
    "GroundUnit",
    "MapboxDirectionsProvider",
    "PathRequest",
    "PathRequestQueue",
    "PathResult",
    "Route",
    "SimulationEngine",
    "SimulationState",
    "StraightLineProvider",
    "TrafficCamera",
    "build_snapshot",
    "camera_fov",
    "cities_by_region",
    "claimed_event_ids",
    "dock_for",
    "generate_cameras",
    "generate_events",
    "get_city",
    "move_toward",
    "plan_mission",
    "resolve_path",
]

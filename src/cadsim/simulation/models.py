"""Entity records for the CAD map simulation.

DispatchEvent  : immutable incident; replaced wholesale on context switch
GroundUnit     : vehicle; its movement lives in a parallel Route record
Route          : waypoint path + cursor + dwell/assignment flags
AerialUnit     : drone plus its current mission (target, hover point, phase)
TrafficCamera  : static camera with a viewing bearing

Statuses and phases are plain strings so they serialize straight into
snapshots.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from cadsim.geo.projection import LngLat

# Aerial status
FLYING = "flying"
DOCKED = "docked"

# Aerial flight phase (only meaningful while flying)
TO_AREA = "toArea"
LOITER = "loiter"
TO_DOCK = "toDock"

# Ground state (derived, see Route.state)
TRAVELING = "traveling"
DWELLING = "dwelling"
ARRIVED = "arrived-stopped"
AWAITING_PATH = "awaiting-path"


@dataclass(frozen=True)
class DispatchEvent:
    """A location-tagged incident units can be sent to."""

    event_id: str
    title: str
    address: str
    location: LngLat

    def to_dict(self, index: int | None = None) -> dict:
        d = {
            "id": self.event_id,
            "title": self.title,
            "address": self.address,
            "location": list(self.location),
        }
        if index is not None:
            d["index"] = index
        return d


@dataclass
class GroundUnit:
    unit_id: str
    position: LngLat


@dataclass
class Route:
    """Path state for one ground unit.

    ``cursor`` always indexes into ``waypoints`` (which is never empty).
    ``assigned_to_event`` is True only for explicit dispatches; such a
    route stops on arrival instead of replanning.
    """

    waypoints: list[LngLat]
    cursor: int = 0
    wait_until: float | None = None
    assigned_to_event: bool = False
    event_id: str | None = None
    awaiting_path: bool = False
    arrived: bool = False

    def __post_init__(self) -> None:
        if not self.waypoints:
            raise ValueError("route needs at least one waypoint")
        if not 0 <= self.cursor < len(self.waypoints):
            raise ValueError(f"cursor {self.cursor} outside {len(self.waypoints)} waypoints")

    @property
    def last_index(self) -> int:
        return len(self.waypoints) - 1

    @property
    def current(self) -> LngLat:
        return self.waypoints[self.cursor]

    @property
    def destination(self) -> LngLat:
        return self.waypoints[-1]

    @property
    def at_end(self) -> bool:
        return self.cursor >= self.last_index

    def state(self, now: float) -> str:
        if self.arrived:
            return ARRIVED
        if self.awaiting_path:
            return AWAITING_PATH
        if self.wait_until is not None and now < self.wait_until:
            return DWELLING
        return TRAVELING


@dataclass
class AerialUnit:
    """Drone state.  ``status == DOCKED`` implies ``phase == TO_AREA``."""

    unit_id: str
    position: LngLat
    dock: LngLat
    status: str = DOCKED
    phase: str = TO_AREA
    area_point: LngLat | None = None
    target_event_location: LngLat | None = None
    target_event_id: str | None = None
    target_event_index: int = -1
    wait_until: float | None = None
    orbit_angle: float | None = None

    @property
    def claims_event(self) -> bool:
        """True while this unit holds exclusive intent on its target event."""
        return (
            self.status == FLYING
            and self.phase in (TO_AREA, LOITER)
            and self.target_event_id is not None
        )

    def clear_mission(self) -> None:
        self.area_point = None
        self.target_event_location = None
        self.target_event_id = None
        self.target_event_index = -1
        self.orbit_angle = None


@dataclass(frozen=True)
class TrafficCamera:
    camera_id: str
    location: LngLat
    bearing: float  # degrees, screen space


@dataclass
class AssignmentLine:
    """Straight connector drawn from a unit to where it is headed."""

    unit_id: str
    start: LngLat
    end: LngLat

    def coordinates(self) -> list[list[float]]:
        return [list(self.start), list(self.end)]


@dataclass
class LayerVisibility:
    vehicles: bool = True
    drones: bool = True
    cameras: bool = False

    def as_dict(self) -> dict[str, bool]:
        return {"vehicles": self.vehicles, "drones": self.drones, "cameras": self.cameras}


LAYER_NAMES = frozenset({"vehicles", "drones", "cameras"})


@dataclass
class UnitPools:
    """Fixed id pools created once per session."""

    ground_ids: list[str] = field(default_factory=list)
    aerial_ids: list[str] = field(default_factory=list)

    @classmethod
    def sized(cls, ground: int, aerial: int) -> UnitPools:
        return cls(
            ground_ids=[f"vehicle-{i + 1}" for i in range(ground)],
            aerial_ids=[f"drone-{i + 1}" for i in range(aerial)],
        )

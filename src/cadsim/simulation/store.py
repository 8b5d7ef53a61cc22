"""SimulationState: the single store every tick reads and writes.

The store owns every mutable record (entities, routes, missions, lines)
keyed by stable id.  Engines receive it explicitly; nothing lives in
module globals.  Only the running tick mutates it, so no locking.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from cadsim.geo.projection import LngLat, Viewport

from .models import (
    AerialUnit,
    AssignmentLine,
    DOCKED,
    DispatchEvent,
    GroundUnit,
    LayerVisibility,
    Route,
    TrafficCamera,
)


@dataclass
class SimulationState:
    city_id: str = ""
    viewport: Viewport = field(default_factory=Viewport)
    events: list[DispatchEvent] = field(default_factory=list)
    selected_event_id: str | None = None
    ground_units: dict[str, GroundUnit] = field(default_factory=dict)
    routes: dict[str, Route] = field(default_factory=dict)
    assignment_lines: dict[str, AssignmentLine] = field(default_factory=dict)
    aerial_units: dict[str, AerialUnit] = field(default_factory=dict)
    dock: LngLat | None = None
    cameras: list[TrafficCamera] = field(default_factory=list)
    layers: LayerVisibility = field(default_factory=LayerVisibility)
    tick_count: int = 0
    now: float = 0.0

    # -- Dispatch events ----------------------------------------------------

    def event_index(self, event_id: str | None) -> int:
        """Position of ``event_id`` in the current list, -1 if gone."""
        if event_id is None:
            return -1
        for i, event in enumerate(self.events):
            if event.event_id == event_id:
                return i
        return -1

    def get_event(self, event_id: str | None) -> DispatchEvent | None:
        idx = self.event_index(event_id)
        return self.events[idx] if idx >= 0 else None

    @property
    def selected_event(self) -> DispatchEvent | None:
        return self.get_event(self.selected_event_id)

    # -- Ground routes ------------------------------------------------------

    def install_route(
        self,
        unit_id: str,
        waypoints: list[LngLat],
        assigned: bool = False,
        event_id: str | None = None,
    ) -> Route:
        """Replace a unit's route wholesale (cursor reset to 0)."""
        route = Route(
            waypoints=list(waypoints),
            assigned_to_event=assigned,
            event_id=event_id if assigned else None,
        )
        self.routes[unit_id] = route
        return route

    def hold_for_path(self, unit_id: str) -> Route:
        """Mark a unit as waiting for a path; creates a one-point route if needed."""
        route = self.routes.get(unit_id)
        if route is None:
            unit = self.ground_units[unit_id]
            route = Route(waypoints=[unit.position])
            self.routes[unit_id] = route
        route.awaiting_path = True
        return route

    def retract_line(self, unit_id: str) -> None:
        self.assignment_lines.pop(unit_id, None)

    def set_line(self, unit_id: str, start: LngLat, end: LngLat) -> None:
        self.assignment_lines[unit_id] = AssignmentLine(unit_id, start, end)

    # -- Aerial -------------------------------------------------------------

    def any_docked(self) -> bool:
        return any(u.status == DOCKED for u in self.aerial_units.values())

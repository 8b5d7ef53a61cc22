"""AerialMissionEngine: drones flying dock -> event -> orbit -> dock.

Drone FSM (status:phase):

    flying:toArea  -> flying:loiter   reached the hover point
    flying:loiter  -> flying:toDock   loiter timer (8s) expired
    flying:toDock  -> docked          reached the dock; dwell 3-10s
    docked         -> flying:toArea   dwell over, 1%/tick launch roll, and
                                      the arbiter found an unclaimed event

Flight legs are straight-line interpolation in the lng/lat plane at a
constant speed (degrees per ms), capped so a drone never overshoots.
While loitering the drone orbits its event on a 20px screen-space
circle; the orbit is recomputed from the projected event position every
tick, so it stays a circle on screen while the user zooms or pans.

The hover point is picked once per mission: 20px short of the event
along the dock->event line, so the drone ends its outbound leg right on
the orbit circle and the orbit starts without a jump.
"""

from __future__ import annotations

import math
import random
from typing import Sequence

from loguru import logger

from cadsim.geo.projection import LngLat, Projection
from cadsim.geo.screen import hover_point, orbit_angle, orbit_position

from .arbiter import AssignmentArbiter
from .models import DOCKED, FLYING, LOITER, TO_AREA, TO_DOCK, AerialUnit, DispatchEvent
from .store import SimulationState

SPEED_PER_MS = 0.000002          # degrees per millisecond
ARRIVAL_EPSILON_SQ = 0.000001    # squared degrees
LOITER_MS = 8000.0
ORBIT_ANGULAR_SPEED = 0.0004     # radians per millisecond
DOCK_DWELL_MIN_MS = 3000.0
DOCK_DWELL_SPAN_MS = 7000.0
LAUNCH_PROBABILITY = 0.01


def move_toward(current: LngLat, target: LngLat, max_step: float) -> LngLat:
    """Step from ``current`` toward ``target`` by at most ``max_step``."""
    dx = target[0] - current[0]
    dy = target[1] - current[1]
    dist = math.hypot(dx, dy)
    if dist == 0 or dist <= max_step:
        return target
    ratio = max_step / dist
    return (current[0] + dx * ratio, current[1] + dy * ratio)


def distance_sq(a: LngLat, b: LngLat) -> float:
    dx = a[0] - b[0]
    dy = a[1] - b[1]
    return dx * dx + dy * dy


def plan_mission(
    projection: Projection,
    dock: LngLat,
    event_location: LngLat,
) -> tuple[LngLat, float]:
    """Hover point and initial orbit angle for a dock/event pair."""
    area = hover_point(projection, dock, event_location)
    angle = orbit_angle(projection, area, event_location)
    return area, angle


class AerialMissionEngine:
    """Drives every drone through its mission state machine."""

    def __init__(
        self,
        state: SimulationState,
        arbiter: AssignmentArbiter | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._state = state
        self._rng = rng or random.Random()
        self._arbiter = arbiter or AssignmentArbiter(self._rng)
        self._last_update: float | None = None

    # -- Population ---------------------------------------------------------

    def spawn(self, unit_ids: Sequence[str], dock: LngLat, now: float | None = None) -> None:
        """Create drones at ``dock``.

        Drones get distinct events round-robin and start flying toward
        them.  With more drones than events the extras start docked so no
        event is claimed twice.
        """
        self._state.dock = dock
        events = self._state.events
        units: dict[str, AerialUnit] = {}
        for i, uid in enumerate(unit_ids):
            unit = AerialUnit(unit_id=uid, position=dock, dock=dock)
            if i < len(events):
                self._launch(unit, i, events[i])
            units[uid] = unit
        self._state.aerial_units = units
        self._last_update = now
        logger.info(
            f"Spawned {len(units)} drones at dock ({dock[0]:.5f}, {dock[1]:.5f}), "
            f"{min(len(units), len(events))} airborne"
        )

    def clear(self) -> None:
        self._state.aerial_units = {}
        self._last_update = None

    def _launch(self, unit: AerialUnit, index: int, event: DispatchEvent) -> None:
        area, angle = plan_mission(self._state.viewport, unit.dock, event.location)
        unit.status = FLYING
        unit.phase = TO_AREA
        unit.area_point = area
        unit.target_event_location = event.location
        unit.target_event_id = event.event_id
        unit.target_event_index = index
        unit.orbit_angle = angle
        unit.wait_until = None
        unit.position = unit.dock

    def recall_orphans(self) -> list[str]:
        """Send drones whose event disappeared straight back to the dock."""
        recalled = []
        for unit in self._state.aerial_units.values():
            if unit.status != FLYING or unit.phase == TO_DOCK:
                continue
            idx = self._state.event_index(unit.target_event_id)
            if idx >= 0:
                unit.target_event_index = idx
                continue
            unit.phase = TO_DOCK
            unit.wait_until = None
            unit.clear_mission()
            recalled.append(unit.unit_id)
        if recalled:
            logger.info(f"Recalled {len(recalled)} drone(s) to dock: events removed")
        return recalled

    # -- Tick ---------------------------------------------------------------

    def tick(self, now: float) -> None:
        if self._last_update is None:
            self._last_update = now
            return
        elapsed = now - self._last_update
        self._last_update = now
        if elapsed <= 0:
            return

        for unit in self._state.aerial_units.values():
            try:
                self._step_unit(unit, now, elapsed)
            except Exception:
                logger.opt(exception=True).warning(f"Aerial step failed for {unit.unit_id}; holding")

    def _step_unit(self, unit: AerialUnit, now: float, elapsed: float) -> None:
        if unit.status == FLYING:
            if unit.phase == TO_AREA:
                self._fly_to_area(unit, now, elapsed)
            elif unit.phase == LOITER:
                self._loiter(unit, now, elapsed)
            else:
                self._fly_to_dock(unit, now, elapsed)
        else:
            self._docked(unit, now)

    def _fly_to_area(self, unit: AerialUnit, now: float, elapsed: float) -> None:
        if unit.area_point is None:
            # No mission to fly; head home instead of hovering in place.
            unit.phase = TO_DOCK
            return
        unit.position = move_toward(unit.position, unit.area_point, SPEED_PER_MS * elapsed)
        if distance_sq(unit.position, unit.area_point) < ARRIVAL_EPSILON_SQ:
            unit.phase = LOITER
            unit.wait_until = now + LOITER_MS
            unit.position = unit.area_point

    def _loiter(self, unit: AerialUnit, now: float, elapsed: float) -> None:
        if unit.wait_until is not None and now < unit.wait_until and unit.target_event_location:
            angle = (unit.orbit_angle or 0.0) + ORBIT_ANGULAR_SPEED * elapsed
            unit.position = orbit_position(self._state.viewport, unit.target_event_location, angle)
            unit.orbit_angle = angle
            return
        unit.phase = TO_DOCK
        unit.wait_until = None

    def _fly_to_dock(self, unit: AerialUnit, now: float, elapsed: float) -> None:
        unit.position = move_toward(unit.position, unit.dock, SPEED_PER_MS * elapsed)
        if distance_sq(unit.position, unit.dock) < ARRIVAL_EPSILON_SQ:
            unit.status = DOCKED
            unit.phase = TO_AREA
            unit.position = unit.dock
            unit.wait_until = now + DOCK_DWELL_MIN_MS + self._rng.random() * DOCK_DWELL_SPAN_MS

    def _docked(self, unit: AerialUnit, now: float) -> None:
        if unit.wait_until is not None:
            if now < unit.wait_until:
                unit.position = unit.dock
                return
            unit.wait_until = None

        if self._rng.random() >= LAUNCH_PROBABILITY:
            return
        events = self._state.events
        index = self._arbiter.try_launch(self._state.aerial_units.values(), events)
        if index is None:
            return
        self._launch(unit, index, events[index])
        logger.debug(f"{unit.unit_id} launched toward {events[index].title}")

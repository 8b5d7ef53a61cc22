"""GroundMotionEngine: vehicles hopping along waypoint paths.

Vehicles move in discrete hops: one waypoint per step, and a step happens
at most every STEP_INTERVAL_MS no matter how fast the driver ticks.

Per-unit state machine (see Route.state):

    traveling  -> dwelling         random 5s stop (unassigned only, 8%/step)
    traveling  -> dwelling         end of path, unassigned: replan (20s hold
                                   unless the new path lands sooner)
    traveling  -> arrived-stopped  end of path, assigned to an event
    dwelling   -> traveling        wait expired
    any        -> awaiting-path    path request in flight; unit holds

An arrived-stopped unit is frozen: it is never advanced or replanned
again until someone assigns it elsewhere.

Path requests go through the PathRequestQueue; their results come back
via apply_path() at the start of a later tick.
"""

from __future__ import annotations

import random
from typing import Iterable

from loguru import logger

from cadsim.geo.projection import LngLat

from .models import DispatchEvent, GroundUnit
from .routing import PathRequestQueue, PathResult
from .store import SimulationState


class GroundMotionEngine:
    """Advances every ground unit along its route."""

    STEP_INTERVAL_MS = 600.0
    STOP_PROBABILITY = 0.08
    STOP_DWELL_MS = 5000.0
    REPLAN_DWELL_MS = 20000.0

    def __init__(
        self,
        state: SimulationState,
        paths: PathRequestQueue,
        rng: random.Random | None = None,
    ) -> None:
        self._state = state
        self._paths = paths
        self._rng = rng or random.Random()
        self._last_step: float | None = None

    # -- Population ---------------------------------------------------------

    def spawn(self, unit_ids: Iterable[str]) -> None:
        """Create the vehicle pool at random points in the current view."""
        viewport = self._state.viewport
        self._state.ground_units = {
            uid: GroundUnit(uid, viewport.random_point(self._rng)) for uid in unit_ids
        }
        self._state.routes.clear()
        self._state.assignment_lines.clear()
        self._last_step = None

    def plan_all(self) -> None:
        """Give every vehicle a fresh, unassigned route inside the view.

        Each route runs between two random points; the vehicle is moved
        onto the route's first waypoint when the path arrives.
        """
        viewport = self._state.viewport
        self._state.routes.clear()
        self._state.assignment_lines.clear()
        for uid in self._state.ground_units:
            origin = viewport.random_point(self._rng)
            dest = viewport.random_point(self._rng)
            self._state.hold_for_path(uid)
            self._paths.submit(uid, origin, dest, snap=True)

    # -- Commands -----------------------------------------------------------

    def assign_unit(self, unit_id: str, event: DispatchEvent) -> bool:
        """Dispatch a vehicle to an event from wherever it is now."""
        unit = self._state.ground_units.get(unit_id)
        if unit is None:
            return False
        origin = unit.position
        route = self._state.hold_for_path(unit_id)
        route.arrived = False
        self._paths.submit(
            unit_id, origin, event.location, assigned=True, event_id=event.event_id,
        )
        logger.info(f"Assigning {unit_id} to {event.title} ({event.address})")
        return True

    def plan_fresh_path(self, unit_id: str, origin: LngLat) -> None:
        """Request an unassigned path from ``origin`` to a random point in view."""
        dest = self._state.viewport.random_point(self._rng)
        self._state.hold_for_path(unit_id)
        self._paths.submit(unit_id, origin, dest)

    def apply_path(self, result: PathResult) -> None:
        """Install a resolved path (called by the driver at tick start)."""
        req = result.request
        unit = self._state.ground_units.get(req.unit_id)
        if unit is None:
            return

        assigned = req.assigned
        if assigned and self._state.get_event(req.event_id) is None:
            # Event vanished while the request was in flight.
            logger.info(f"Dropping assignment of {req.unit_id}: event {req.event_id} is gone")
            assigned = False

        route = self._state.install_route(
            req.unit_id, result.waypoints, assigned=assigned, event_id=req.event_id,
        )
        if assigned:
            unit.position = route.waypoints[0]
            self._state.set_line(req.unit_id, req.origin, req.destination)
        else:
            if req.snap:
                unit.position = route.waypoints[0]
            self._state.retract_line(req.unit_id)

    def recall_orphans(self) -> list[str]:
        """Unassign vehicles whose event no longer exists and replan them.

        A vehicle already re-dispatched to a surviving event keeps that
        in-flight request instead of being replanned.
        """
        recalled = []
        for uid, route in list(self._state.routes.items()):
            if not route.assigned_to_event:
                continue
            if self._state.get_event(route.event_id) is not None:
                continue
            route.assigned_to_event = False
            route.event_id = None
            self._state.retract_line(uid)
            pending = self._paths.pending(uid)
            if (
                pending is not None
                and pending.assigned
                and self._state.get_event(pending.event_id) is not None
            ):
                continue
            self.plan_fresh_path(uid, self._state.ground_units[uid].position)
            recalled.append(uid)
        if recalled:
            logger.info(f"Replanning {len(recalled)} vehicle(s) with removed events")
        return recalled

    # -- Tick ---------------------------------------------------------------

    def tick(self, now: float) -> bool:
        """Step every unit if the step interval has elapsed.

        Returns True when a step was taken.
        """
        if self._last_step is not None and now - self._last_step < self.STEP_INTERVAL_MS:
            return False
        self._last_step = now

        for uid, unit in self._state.ground_units.items():
            try:
                self._step_unit(uid, unit, now)
            except Exception:
                logger.opt(exception=True).warning(f"Ground step failed for {uid}; holding")
        return True

    def _step_unit(self, uid: str, unit: GroundUnit, now: float) -> None:
        route = self._state.routes.get(uid)
        if route is None or route.arrived or route.awaiting_path:
            return

        if route.wait_until is not None:
            if now < route.wait_until:
                unit.position = route.current
                return
            route.wait_until = None

        if not route.assigned_to_event and self._rng.random() < self.STOP_PROBABILITY:
            route.wait_until = now + self.STOP_DWELL_MS
            unit.position = route.current
            return

        if route.at_end:
            end = route.destination
            unit.position = end
            if route.assigned_to_event:
                route.arrived = True
                self._state.retract_line(uid)
                logger.debug(f"{uid} arrived at event {route.event_id}")
                return
            route.wait_until = now + self.REPLAN_DWELL_MS
            self.plan_fresh_path(uid, end)
            return

        route.cursor += 1
        unit.position = route.current
        if route.assigned_to_event:
            self._state.set_line(uid, unit.position, route.destination)

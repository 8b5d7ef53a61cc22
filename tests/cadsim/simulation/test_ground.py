"""Unit tests for GroundMotionEngine: waypoint hops, dwells, arrival.

Path requests run through a real PathRequestQueue with the offline
StraightLineProvider.  Outside an event loop the queue resolves every
request immediately, so drain() hands results back synchronously.
"""
from __future__ import annotations

import pytest

from cadsim.simulation.ground import GroundMotionEngine
from cadsim.simulation.models import ARRIVED, AWAITING_PATH, DWELLING, TRAVELING, GroundUnit
from cadsim.simulation.routing import PathRequestQueue, StraightLineProvider
from tests.cadsim.simulation.conftest import SEATTLE, FixedRandom, make_events

WAYPOINTS = [(SEATTLE[0] + 0.001 * i, SEATTLE[1] + 0.0005 * i) for i in range(5)]


def _ground(state, rng=None):
    paths = PathRequestQueue(StraightLineProvider())
    return GroundMotionEngine(state, paths, rng or FixedRandom(0.99)), paths


def _place(state, uid="vehicle-1", waypoints=WAYPOINTS, cursor=0, **route_kw):
    unit = GroundUnit(uid, waypoints[cursor])
    state.ground_units[uid] = unit
    route = state.install_route(uid, waypoints, **route_kw)
    route.cursor = cursor
    return unit, route


@pytest.mark.unit
class TestStepping:

    def test_one_hop_per_step(self, state):
        ground, _ = _ground(state)
        unit, route = _place(state)
        ground.tick(0.0)
        assert route.cursor == 1
        assert unit.position == WAYPOINTS[1]

    def test_step_interval_gate(self, state):
        ground, _ = _ground(state)
        unit, route = _place(state)
        assert ground.tick(0.0) is True
        assert ground.tick(599.0) is False
        assert route.cursor == 1
        assert ground.tick(600.0) is True
        assert route.cursor == 2

    def test_random_stop_holds_for_five_seconds(self, state):
        rng = FixedRandom(0.0)
        ground, _ = _ground(state, rng)
        unit, route = _place(state, cursor=1)
        ground.tick(1000.0)
        assert route.wait_until == 6000.0
        assert route.cursor == 1
        assert route.state(1000.0) == DWELLING

        rng.value = 0.99
        ground.tick(1600.0)
        assert route.cursor == 1
        assert unit.position == WAYPOINTS[1]

        ground.tick(6000.0)
        assert route.wait_until is None
        assert route.cursor == 2

    def test_assigned_units_never_random_stop(self, state):
        state.events = make_events(1)
        ground, _ = _ground(state, FixedRandom(0.0))
        _, route = _place(state, assigned=True, event_id="evt-0")
        ground.tick(0.0)
        assert route.cursor == 1
        assert route.wait_until is None

    def test_failed_step_holds_unit_and_continues(self, state):
        ground, _ = _ground(state)
        _place(state, uid="vehicle-1")
        _, healthy = _place(state, uid="vehicle-2")
        state.routes["vehicle-1"] = object()  # corrupt one route
        ground.tick(0.0)
        assert healthy.cursor == 1


@pytest.mark.unit
class TestEndOfPath:

    def test_unassigned_end_replans_and_moves_once_path_lands(self, state):
        ground, paths = _ground(state)
        unit, route = _place(state, cursor=4)

        ground.tick(1000.0)

        assert route.wait_until == 21000.0
        assert unit.position == WAYPOINTS[4]
        assert route.state(1000.0) == AWAITING_PATH
        results = paths.drain()
        assert len(results) == 1
        assert results[0].request.origin == WAYPOINTS[4]
        assert results[0].request.assigned is False

        # Held while the request is in flight.
        ground.tick(1600.0)
        assert unit.position == WAYPOINTS[4]

        ground.apply_path(results[0])
        fresh = state.routes[unit.unit_id]
        assert fresh.waypoints[0] == WAYPOINTS[4]
        assert fresh.wait_until is None
        ground.tick(2200.0)
        assert fresh.cursor == 1
        assert unit.position == fresh.waypoints[1]

    def test_assigned_arrival_freezes(self, state):
        state.events = make_events(1)
        ground, paths = _ground(state)
        unit, route = _place(state, cursor=3, assigned=True, event_id="evt-0")
        state.set_line(unit.unit_id, unit.position, route.destination)

        ground.tick(0.0)
        assert route.cursor == 4
        ground.tick(600.0)
        assert route.arrived is True
        assert route.state(600.0) == ARRIVED
        assert unit.unit_id not in state.assignment_lines

        for t in (1200.0, 1800.0, 30000.0):
            ground.tick(t)
        assert unit.position == WAYPOINTS[4]
        assert paths.outstanding == 0
        assert paths.drain() == []


@pytest.mark.unit
class TestAssignment:

    def test_assign_mid_path(self, state):
        state.events = make_events(1)
        event = state.events[0]
        ground, paths = _ground(state)
        unit, route = _place(state, cursor=2)

        assert ground.assign_unit(unit.unit_id, event) is True
        assert route.state(0.0) == AWAITING_PATH

        (result,) = paths.drain()
        assert result.request.origin == WAYPOINTS[2]
        ground.apply_path(result)

        route = state.routes[unit.unit_id]
        assert route.cursor == 0
        assert route.assigned_to_event is True
        assert route.event_id == event.event_id
        assert unit.position == route.waypoints[0]
        line = state.assignment_lines[unit.unit_id]
        assert line.end == event.location

        ground.tick(0.0)
        assert unit.position == event.location
        assert state.assignment_lines[unit.unit_id].start == event.location
        ground.tick(600.0)
        assert route.state(600.0) == ARRIVED

    def test_assign_unknown_unit(self, state):
        ground, paths = _ground(state)
        assert ground.assign_unit("vehicle-99", make_events(1)[0]) is False
        assert paths.outstanding == 0

    def test_event_removed_while_path_in_flight(self, state):
        state.events = make_events(1)
        ground, paths = _ground(state)
        unit, _ = _place(state)
        ground.assign_unit(unit.unit_id, state.events[0])
        state.events = []

        (result,) = paths.drain()
        ground.apply_path(result)
        route = state.routes[unit.unit_id]
        assert route.assigned_to_event is False
        assert unit.unit_id not in state.assignment_lines

    def test_recall_orphans_replans_from_current_position(self, state):
        state.events = make_events(1)
        ground, paths = _ground(state)
        unit, route = _place(state, cursor=2, assigned=True, event_id="evt-0")
        state.set_line(unit.unit_id, unit.position, route.destination)

        state.events = make_events(2)[1:]  # evt-0 removed
        assert ground.recall_orphans() == [unit.unit_id]
        assert unit.unit_id not in state.assignment_lines
        (result,) = paths.drain()
        assert result.request.origin == WAYPOINTS[2]
        assert result.request.assigned is False

    def test_recall_keeps_redispatch_to_surviving_event(self, state):
        state.events = make_events(2)
        ground, paths = _ground(state)
        unit, route = _place(state, cursor=2, assigned=True, event_id="evt-0")
        state.set_line(unit.unit_id, unit.position, route.destination)

        ground.assign_unit(unit.unit_id, state.events[1])
        state.events = state.events[1:]  # evt-0 removed
        assert ground.recall_orphans() == []
        assert unit.unit_id not in state.assignment_lines

        (result,) = paths.drain()
        ground.apply_path(result)
        route = state.routes[unit.unit_id]
        assert route.assigned_to_event is True
        assert route.event_id == "evt-1"
        assert state.assignment_lines[unit.unit_id].end == state.events[0].location

    def test_latest_request_wins(self, state):
        state.events = make_events(2)
        ground, paths = _ground(state)
        unit, _ = _place(state)
        ground.assign_unit(unit.unit_id, state.events[0])
        ground.assign_unit(unit.unit_id, state.events[1])
        (result,) = paths.drain()
        assert result.request.event_id == "evt-1"


@pytest.mark.unit
class TestPlanning:

    def test_plan_all_snaps_units_into_view(self, state):
        ground, paths = _ground(state, FixedRandom(0.25))
        ground.spawn(["vehicle-1", "vehicle-2"])
        ground.plan_all()
        results = paths.drain()
        assert len(results) == 2
        for result in results:
            assert result.request.snap is True
            ground.apply_path(result)
        west, south, east, north = state.viewport.bounds()
        for uid, unit in state.ground_units.items():
            assert unit.position == state.routes[uid].waypoints[0]
            assert west <= unit.position[0] <= east
            assert south <= unit.position[1] <= north
            assert state.routes[uid].state(0.0) == TRAVELING

"""Unit tests for AssignmentArbiter: one drone per dispatch event."""
from __future__ import annotations

import random

import pytest

from cadsim.simulation.arbiter import AssignmentArbiter, claimed_event_ids
from cadsim.simulation.models import DOCKED, FLYING, LOITER, TO_AREA, TO_DOCK, AerialUnit

from tests.cadsim.simulation.conftest import SEATTLE, make_events


def _drone(uid, status=DOCKED, phase=TO_AREA, event_id=None):
    return AerialUnit(
        unit_id=uid, position=SEATTLE, dock=SEATTLE,
        status=status, phase=phase, target_event_id=event_id,
    )


@pytest.mark.unit
class TestClaims:

    def test_outbound_and_loiter_claim(self):
        units = [
            _drone("d1", FLYING, TO_AREA, "evt-0"),
            _drone("d2", FLYING, LOITER, "evt-1"),
        ]
        assert claimed_event_ids(units) == {"evt-0", "evt-1"}

    def test_returning_and_docked_do_not_claim(self):
        units = [
            _drone("d1", FLYING, TO_DOCK, "evt-0"),
            _drone("d2", DOCKED, TO_AREA, "evt-1"),
        ]
        assert claimed_event_ids(units) == set()


@pytest.mark.unit
class TestTryLaunch:

    def test_empty_event_set(self):
        arbiter = AssignmentArbiter(random.Random(1))
        assert arbiter.try_launch([_drone("d1")], []) is None

    def test_all_claimed(self):
        events = make_events(2)
        units = [
            _drone("d1", FLYING, TO_AREA, "evt-0"),
            _drone("d2", FLYING, LOITER, "evt-1"),
            _drone("d3"),
        ]
        assert AssignmentArbiter(random.Random(1)).try_launch(units, events) is None

    def test_never_picks_claimed_event(self):
        events = make_events(3)
        units = [_drone("d1", FLYING, TO_AREA, "evt-1"), _drone("d2")]
        arbiter = AssignmentArbiter(random.Random(7))
        picks = {arbiter.try_launch(units, events) for _ in range(200)}
        assert picks == {0, 2}

    def test_released_claim_is_available_again(self):
        events = make_events(1)
        returning = _drone("d1", FLYING, TO_DOCK, "evt-0")
        assert AssignmentArbiter(random.Random(0)).try_launch([returning], events) == 0

"""Shared fixtures for simulation tests."""
from __future__ import annotations

import random

import pytest

from cadsim.geo.projection import Viewport
from cadsim.simulation.models import DispatchEvent
from cadsim.simulation.store import SimulationState

SEATTLE = (-122.335167, 47.608013)


class FixedRandom(random.Random):
    """Random whose random() always returns ``value`` (other methods seeded)."""

    def __init__(self, value: float = 0.99, seed: int = 0):
        super().__init__(seed)
        self.value = value

    def random(self):
        return self.value


def make_events(n: int, origin=SEATTLE) -> list[DispatchEvent]:
    return [
        DispatchEvent(
            event_id=f"evt-{i}",
            title="Shots Fired",
            address=f"{100 + i} Main St, Seattle",
            location=(origin[0] + 0.005 * (i + 1), origin[1] - 0.004 * (i + 1)),
        )
        for i in range(n)
    ]


@pytest.fixture
def state() -> SimulationState:
    return SimulationState(city_id="seattle", viewport=Viewport(center=SEATTLE, zoom=13))

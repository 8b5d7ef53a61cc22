"""AssignmentArbiter: decides whether an idle drone may launch, and where.

A drone claims its target event while flying out (toArea) or loitering.
try_launch() rebuilds the claim set from the live unit records on every
call; claims change tick to tick, so nothing is cached.  This is the only
place a drone picks a new target, which is what keeps "at most one drone
per dispatch event" true.
"""

from __future__ import annotations

import random
from typing import Iterable, Sequence

from .models import AerialUnit, DispatchEvent


def claimed_event_ids(units: Iterable[AerialUnit]) -> set[str]:
    return {u.target_event_id for u in units if u.claims_event}


class AssignmentArbiter:

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()

    def available_indices(
        self,
        units: Iterable[AerialUnit],
        events: Sequence[DispatchEvent],
    ) -> list[int]:
        claimed = claimed_event_ids(units)
        return [i for i, e in enumerate(events) if e.event_id not in claimed]

    def try_launch(
        self,
        units: Iterable[AerialUnit],
        events: Sequence[DispatchEvent],
    ) -> int | None:
        """Uniformly random unclaimed event index, or None."""
        if not events:
            return None
        available = self.available_indices(units, events)
        if not available:
            return None
        return available[self._rng.randrange(len(available))]

"""Dispatch event source: synthetic CAD incidents around a city.

A fresh batch (5-10 events) is generated for every context switch and
replaces the previous one wholesale.  Each event gets a stable id at
generation time, so selection and drone claims survive reordering.
"""

from __future__ import annotations

import random
import uuid

from .cities import City
from .models import DispatchEvent

INCIDENT_TYPES = [
    "Armed Robbery",
    "Kidnapping in Progress",
    "Shots Fired",
    "Burglary Alarm",
    "Assault with Weapon",
    "Carjacking",
    "Domestic Dispute",
    "Suspicious Vehicle",
    "Pursuit in Progress",
    "Vandalism",
]

STREET_NAMES = [
    "Main St",
    "Broadway",
    "1st Ave",
    "2nd Ave",
    "3rd Ave",
    "Pine St",
    "Oak St",
    "Maple Ave",
    "Cedar St",
    "Elm St",
]

MIN_EVENTS = 5
MAX_EVENTS = 10
JITTER_DEG = 0.08  # full width of the jitter box, ~a few km


def generate_events(
    city: City,
    rng: random.Random | None = None,
    count: int | None = None,
) -> list[DispatchEvent]:
    """Random incidents jittered around the city center."""
    rng = rng or random.Random()
    if count is None:
        count = rng.randint(MIN_EVENTS, MAX_EVENTS)
    batch = uuid.UUID(int=rng.getrandbits(128)).hex[:6]

    events: list[DispatchEvent] = []
    center_lng, center_lat = city.center
    for i in range(count):
        title = rng.choice(INCIDENT_TYPES)
        street = rng.choice(STREET_NAMES)
        house_number = 100 + rng.randrange(900)
        location = (
            center_lng + (rng.random() - 0.5) * JITTER_DEG,
            center_lat + (rng.random() - 0.5) * JITTER_DEG,
        )
        events.append(DispatchEvent(
            event_id=f"cad-{city.city_id}-{batch}-{i + 1}",
            title=title,
            address=f"{house_number} {street}, {city.label}",
            location=location,
        ))
    return events

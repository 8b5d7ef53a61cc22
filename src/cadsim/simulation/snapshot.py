"""Snapshot builder: the per-tick output consumed by the map renderer.

A snapshot is a plain dict of GeoJSON FeatureCollections (plus arc
descriptors for the 3D overlay).  It is built after both motion engines
have run, from copies of the coordinates, so every position in it comes
from the same tick and later mutation cannot leak in.

Layers that are switched off are emitted as empty collections so the
renderer can diff against the previous tick without special cases.
"""

from __future__ import annotations

import math

from cadsim.geo.projection import LngLat
from cadsim.geo.screen import screen_square

from .models import FLYING, LOITER, TO_AREA
from .store import SimulationState

ARC_SCALE = 10_000.0
ARC_MIN_HEIGHT = 0.05
ARC_MAX_HEIGHT = 0.2


def _point(coords: LngLat, **props) -> dict:
    return {
        "type": "Feature",
        "geometry": {"type": "Point", "coordinates": [coords[0], coords[1]]},
        "properties": props,
    }


def _line(coords: list[LngLat], **props) -> dict:
    return {
        "type": "Feature",
        "geometry": {"type": "LineString", "coordinates": [[c[0], c[1]] for c in coords]},
        "properties": props,
    }


def _polygon(ring: list[LngLat], **props) -> dict:
    return {
        "type": "Feature",
        "geometry": {"type": "Polygon", "coordinates": [[[c[0], c[1]] for c in ring]]},
        "properties": props,
    }


def feature_collection(features: list[dict]) -> dict:
    return {"type": "FeatureCollection", "features": features}


def arc_height(start: LngLat, end: LngLat) -> float:
    """Arc height for the overlay; 0 means "don't draw"."""
    d = math.hypot(end[0] - start[0], end[1] - start[1])
    if not math.isfinite(d) or d == 0:
        return 0.0
    return max(ARC_MIN_HEIGHT, min(ARC_MAX_HEIGHT, d * ARC_SCALE))


def _arc(start: LngLat, end: LngLat) -> dict | None:
    h = arc_height(start, end)
    if h <= 0:
        return None
    return {"from": [start[0], start[1]], "to": [end[0], end[1]], "height": h}


def build_snapshot(state: SimulationState) -> dict:
    """Serialize the current state into the renderer's wire format."""
    layers = state.layers
    now = state.now

    events = feature_collection([
        _point(e.location, id=e.event_id, index=i, title=e.title, address=e.address,
               selected=e.event_id == state.selected_event_id)
        for i, e in enumerate(state.events)
    ])

    vehicles: list[dict] = []
    lines: list[dict] = []
    vehicle_arcs: list[dict] = []
    if layers.vehicles:
        for uid, unit in state.ground_units.items():
            route = state.routes.get(uid)
            props = {"id": uid}
            if route is not None:
                props.update(
                    state=route.state(now),
                    assigned=route.assigned_to_event,
                    event_id=route.event_id,
                )
                if route.assigned_to_event:
                    arc = _arc(unit.position, route.destination)
                    if arc is not None:
                        vehicle_arcs.append(arc)
            vehicles.append(_point(unit.position, **props))
        for uid, line in state.assignment_lines.items():
            lines.append(_line([line.start, line.end], vehicleId=uid))

    drones: list[dict] = []
    links: list[dict] = []
    drone_arcs: list[dict] = []
    dock: list[dict] = []
    if layers.drones:
        for uid, unit in state.aerial_units.items():
            drones.append(_point(
                unit.position,
                id=uid,
                status=unit.status,
                phase=unit.phase if unit.status == FLYING else None,
                event_id=unit.target_event_id if unit.claims_event else None,
                event_index=unit.target_event_index if unit.claims_event else None,
            ))
            heading_out = (
                unit.status == FLYING
                and unit.phase in (TO_AREA, LOITER)
                and unit.target_event_location is not None
            )
            if heading_out:
                links.append(_line([unit.position, unit.target_event_location], id=uid))
            arc = _arc(unit.position, unit.target_event_location if heading_out else unit.dock)
            if arc is not None:
                drone_arcs.append(arc)
        if state.dock is not None:
            ring = screen_square(state.viewport, state.dock)
            dock.append(_polygon(ring, occupied=state.any_docked()))

    cameras: list[dict] = []
    if layers.cameras:
        cameras = [
            _point(c.location, id=c.camera_id, bearing=c.bearing) for c in state.cameras
        ]

    return {
        "tick": state.tick_count,
        "time": now,
        "city": state.city_id,
        "selected_event_id": state.selected_event_id,
        "layers": layers.as_dict(),
        "events": events,
        "vehicles": feature_collection(vehicles),
        "assignment_lines": feature_collection(lines),
        "drones": feature_collection(drones),
        "drone_links": feature_collection(links),
        "dock": feature_collection(dock),
        "cameras": feature_collection(cameras),
        "arcs": {"vehicles": vehicle_arcs, "drones": drone_arcs},
    }

"""Simulation control API: snapshot, dispatch, city switch, layers."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from cadsim.simulation.cities import cities_by_region

router = APIRouter(prefix="/api/sim", tags=["simulation"])


class AssignRequest(BaseModel):
    unit_id: str


class SelectRequest(BaseModel):
    event_id: Optional[str] = None  # None clears the selection


class CityRequest(BaseModel):
    city_id: str


class LayerRequest(BaseModel):
    layer: str
    visible: bool


class ViewportRequest(BaseModel):
    center: tuple[float, float]  # [lng, lat]
    zoom: float = Field(ge=0, le=24)
    width: Optional[int] = Field(default=None, gt=0)
    height: Optional[int] = Field(default=None, gt=0)


def _get_engine(request: Request):
    """Retrieve the SimulationEngine from app state."""
    sim = getattr(request.app.state, "simulation_engine", None)
    if sim is not None:
        return sim
    raise HTTPException(503, "Simulation engine not available")


@router.get("/snapshot")
async def get_snapshot(request: Request):
    """Most recent tick's snapshot."""
    return _get_engine(request).snapshot()


@router.get("/events")
async def list_events(request: Request):
    engine = _get_engine(request)
    state = engine.state
    return {
        "city": state.city_id,
        "selected_event_id": state.selected_event_id,
        "events": [e.to_dict(i) for i, e in enumerate(state.events)],
    }


@router.post("/select")
async def select_event(body: SelectRequest, request: Request):
    """Select the event that manual assignments go to."""
    engine = _get_engine(request)
    event = engine.select_event(body.event_id)
    if body.event_id is not None and event is None:
        raise HTTPException(404, f"Unknown event: {body.event_id}")
    return {"selected_event_id": event.event_id if event is not None else None}


@router.post("/assign")
async def assign_unit(body: AssignRequest, request: Request):
    """Dispatch a vehicle to the selected event."""
    engine = _get_engine(request)
    state = engine.state
    if body.unit_id not in state.ground_units:
        raise HTTPException(404, f"Unknown vehicle: {body.unit_id}")
    if state.selected_event is None:
        raise HTTPException(409, "No dispatch event selected")

    event = engine.assign(body.unit_id)
    if event is None:
        raise HTTPException(409, f"Could not assign {body.unit_id}")
    return {"status": "assigned", "unit_id": body.unit_id, "event": event.to_dict()}


@router.post("/replan")
async def replan_vehicles(request: Request):
    """Drop all vehicle assignments and plan new random routes."""
    engine = _get_engine(request)
    engine.replan_vehicles()
    return {"status": "replanned", "vehicles": len(engine.state.ground_units)}


@router.get("/cities")
async def list_cities():
    return {
        region: [c.to_dict() for c in cities]
        for region, cities in cities_by_region().items()
    }


@router.post("/city")
async def switch_city(body: CityRequest, request: Request):
    """Start a new session in another city."""
    engine = _get_engine(request)
    city = engine.switch_city(body.city_id)
    if city is None:
        raise HTTPException(404, f"Unknown city: {body.city_id}")
    return {"city": city.to_dict(), "events": len(engine.state.events)}


@router.post("/layers")
async def set_layer(body: LayerRequest, request: Request):
    engine = _get_engine(request)
    if not engine.set_layer(body.layer, body.visible):
        raise HTTPException(422, f"Unknown layer: {body.layer}")
    return {"layers": engine.state.layers.as_dict()}


@router.put("/viewport")
async def set_viewport(body: ViewportRequest, request: Request):
    """Report the client's map view so screen-space geometry matches it."""
    engine = _get_engine(request)
    vp = engine.set_viewport(body.center, body.zoom, body.width, body.height)
    return {
        "center": list(vp.center),
        "zoom": vp.zoom,
        "width": vp.width,
        "height": vp.height,
        "bounds": list(vp.bounds()),
    }


@router.get("/cameras/{camera_id}/fov")
async def camera_fov(camera_id: str, request: Request):
    engine = _get_engine(request)
    ring = engine.camera_fov(camera_id)
    if ring is None:
        raise HTTPException(404, f"Unknown camera: {camera_id}")
    return {
        "type": "Feature",
        "geometry": {"type": "Polygon", "coordinates": [[[p[0], p[1]] for p in ring]]},
        "properties": {"id": camera_id},
    }

"""Path provider: road paths from the Mapbox Directions API.

request_path() never raises.  Every failure mode (no token, non-2xx,
malformed payload, network error, timeout) is logged and returns an empty
list; the caller then substitutes the straight path [origin, destination]
via resolve_path().  This mirrors how ground units fall back to direct
waypoints whenever no street data is available.

PathRequestQueue turns requests into asyncio tasks.  Completions are not
applied from the task callback; they are parked until the engine drains
them at the start of the next tick, so route state is only ever mutated
by the tick.  Every request is stamped with:

    generation : session token; invalidate() bumps it on city switch,
                  replan or layer toggle, and late results are dropped
    ticket     : per-unit sequence number; a newer request for the same
                  unit supersedes an older one still in flight
"""

from __future__ import annotations

import asyncio
import itertools
from collections import deque
from dataclasses import dataclass
from typing import Protocol

import httpx
from loguru import logger

from cadsim.geo.projection import LngLat

MAPBOX_DIRECTIONS_URL = "https://api.mapbox.com/directions/v5"


class PathProvider(Protocol):
    async def request_path(self, origin: LngLat, destination: LngLat) -> list[LngLat]: ...


def resolve_path(coords: list[LngLat], origin: LngLat, destination: LngLat) -> list[LngLat]:
    """Return ``coords`` or the two-point straight fallback when empty."""
    if coords:
        return list(coords)
    return [origin, destination]


def _parse_coordinates(payload: object) -> list[LngLat]:
    """Extract routes[0].geometry.coordinates; [] if the shape is off."""
    if not isinstance(payload, dict):
        return []
    routes = payload.get("routes")
    if not isinstance(routes, list) or not routes:
        return []
    route = routes[0]
    if not isinstance(route, dict):
        return []
    geometry = route.get("geometry")
    if not isinstance(geometry, dict):
        return []
    coords = geometry.get("coordinates")
    if not isinstance(coords, list) or not coords:
        return []
    out: list[LngLat] = []
    for c in coords:
        if not isinstance(c, (list, tuple)) or len(c) < 2:
            return []
        try:
            out.append((float(c[0]), float(c[1])))
        except (TypeError, ValueError):
            return []
    return out


class MapboxDirectionsProvider:
    """Driving directions between two points."""

    def __init__(
        self,
        access_token: str | None,
        base_url: str = MAPBOX_DIRECTIONS_URL,
        profile: str = "mapbox/driving",
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._token = access_token or None
        self._base_url = base_url.rstrip("/")
        self._profile = profile.strip("/")
        self._timeout = timeout
        self._client = client

    @property
    def has_token(self) -> bool:
        return self._token is not None

    def _url(self, origin: LngLat, destination: LngLat) -> str:
        return (
            f"{self._base_url}/{self._profile}/"
            f"{origin[0]},{origin[1]};{destination[0]},{destination[1]}"
        )

    async def request_path(self, origin: LngLat, destination: LngLat) -> list[LngLat]:
        if self._token is None:
            logger.warning("Missing MAPBOX_ACCESS_TOKEN; cannot fetch routes")
            return []

        params = {
            "geometries": "geojson",
            "overview": "full",
            "access_token": self._token,
        }
        try:
            if self._client is not None:
                resp = await self._client.get(
                    self._url(origin, destination), params=params, timeout=self._timeout,
                )
            else:
                async with httpx.AsyncClient() as client:
                    resp = await client.get(
                        self._url(origin, destination), params=params, timeout=self._timeout,
                    )
        except httpx.HTTPError as e:
            logger.warning(f"Error fetching route: {type(e).__name__}: {e}")
            return []

        if not resp.is_success:
            logger.warning(f"Route request failed: {resp.status_code} {resp.reason_phrase}")
            return []

        try:
            payload = resp.json()
        except ValueError:
            logger.warning("Route response is not valid JSON")
            return []

        coords = _parse_coordinates(payload)
        if not coords:
            logger.warning("Route response has no usable geometry")
        return coords

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()


class StraightLineProvider:
    """Offline provider: always falls back to the direct path."""

    async def request_path(self, origin: LngLat, destination: LngLat) -> list[LngLat]:
        return []


# ---------------------------------------------------------------------------
# Request queue
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PathRequest:
    unit_id: str
    origin: LngLat
    destination: LngLat
    assigned: bool = False
    event_id: str | None = None
    snap: bool = False  # move the unit onto the new path's first waypoint
    generation: int = 0
    ticket: int = 0


@dataclass(frozen=True)
class PathResult:
    request: PathRequest
    waypoints: list[LngLat]


class PathRequestQueue:
    """Runs path requests as tasks and hands results to the next tick."""

    def __init__(self, provider: PathProvider) -> None:
        self._provider = provider
        self._generation = 0
        self._tickets = itertools.count(1)
        self._latest: dict[str, PathRequest] = {}
        self._tasks: dict[int, asyncio.Task] = {}
        self._completed: deque[PathResult] = deque()

    @property
    def generation(self) -> int:
        return self._generation

    def in_flight(self, unit_id: str) -> bool:
        return unit_id in self._latest

    def pending(self, unit_id: str) -> PathRequest | None:
        """The newest request still in flight for ``unit_id``."""
        return self._latest.get(unit_id)

    @property
    def outstanding(self) -> int:
        return len(self._latest)

    def submit(
        self,
        unit_id: str,
        origin: LngLat,
        destination: LngLat,
        assigned: bool = False,
        event_id: str | None = None,
        snap: bool = False,
    ) -> PathRequest:
        request = PathRequest(
            unit_id=unit_id,
            origin=origin,
            destination=destination,
            assigned=assigned,
            event_id=event_id,
            snap=snap,
            generation=self._generation,
            ticket=next(self._tickets),
        )
        self._latest[unit_id] = request

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop (sync callers, scripts): resolve straight away offline.
            logger.debug(f"No running loop; straight path for {unit_id}")
            self._completed.append(PathResult(request, [origin, destination]))
            return request

        task = loop.create_task(self._run(request), name=f"path-{unit_id}-{request.ticket}")
        self._tasks[request.ticket] = task
        task.add_done_callback(lambda _t, ticket=request.ticket: self._tasks.pop(ticket, None))
        return request

    async def _run(self, request: PathRequest) -> None:
        try:
            coords = await self._provider.request_path(request.origin, request.destination)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"Path provider raised for {request.unit_id}: {e}")
            coords = []
        self._completed.append(
            PathResult(request, resolve_path(coords, request.origin, request.destination))
        )

    def drain(self) -> list[PathResult]:
        """Pop all completed results that are still current."""
        fresh: list[PathResult] = []
        while self._completed:
            result = self._completed.popleft()
            req = result.request
            if req.generation != self._generation:
                logger.debug(f"Discarding stale path for {req.unit_id} (generation {req.generation})")
                continue
            latest = self._latest.get(req.unit_id)
            if latest is None or latest.ticket != req.ticket:
                logger.debug(f"Discarding superseded path for {req.unit_id} (ticket {req.ticket})")
                continue
            del self._latest[req.unit_id]
            fresh.append(result)
        return fresh

    def invalidate(self) -> int:
        """Start a new generation; cancel everything still in flight."""
        self._generation += 1
        for task in list(self._tasks.values()):
            task.cancel()
        self._tasks.clear()
        self._latest.clear()
        self._completed.clear()
        return self._generation

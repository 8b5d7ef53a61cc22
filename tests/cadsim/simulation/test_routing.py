"""Unit tests for the path provider and the async PathRequestQueue."""
from __future__ import annotations

import asyncio

import httpx
import pytest

from cadsim.simulation.routing import (
    MapboxDirectionsProvider,
    PathRequestQueue,
    StraightLineProvider,
    resolve_path,
)

ORIGIN = (-122.34, 47.60)
DEST = (-122.30, 47.62)
ROUTE = [[-122.34, 47.60], [-122.33, 47.605], [-122.31, 47.61], [-122.30, 47.62]]


def _provider(handler, token="pk.test", timeout=10.0):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return MapboxDirectionsProvider(token, timeout=timeout, client=client)


def _ok(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, json={"routes": [{"geometry": {"type": "LineString", "coordinates": ROUTE}}]})


@pytest.mark.unit
class TestResolvePath:

    def test_empty_falls_back_to_straight(self):
        assert resolve_path([], ORIGIN, DEST) == [ORIGIN, DEST]

    def test_keeps_provider_path(self):
        coords = [tuple(c) for c in ROUTE]
        assert resolve_path(coords, ORIGIN, DEST) == coords


@pytest.mark.unit
class TestMapboxProvider:

    @pytest.mark.anyio
    async def test_parses_geojson_route(self):
        seen = {}

        def handler(request):
            seen["url"] = request.url
            return _ok(request)

        provider = _provider(handler)
        coords = await provider.request_path(ORIGIN, DEST)
        assert coords == [tuple(c) for c in ROUTE]
        assert "/mapbox/driving/-122.34,47.6;-122.3,47.62" in seen["url"].path
        assert seen["url"].params["geometries"] == "geojson"
        assert seen["url"].params["overview"] == "full"
        assert seen["url"].params["access_token"] == "pk.test"
        await provider.aclose()

    @pytest.mark.anyio
    async def test_missing_token(self):
        calls = []

        def handler(request):
            calls.append(request)
            return _ok(request)

        provider = _provider(handler, token=None)
        assert await provider.request_path(ORIGIN, DEST) == []
        assert calls == []
        await provider.aclose()

    @pytest.mark.anyio
    async def test_http_error_status(self):
        provider = _provider(lambda r: httpx.Response(500, text="boom"))
        assert await provider.request_path(ORIGIN, DEST) == []
        await provider.aclose()

    @pytest.mark.anyio
    async def test_malformed_json(self):
        provider = _provider(lambda r: httpx.Response(200, text="not json"))
        assert await provider.request_path(ORIGIN, DEST) == []
        await provider.aclose()

    @pytest.mark.anyio
    async def test_no_routes(self):
        provider = _provider(lambda r: httpx.Response(200, json={"routes": []}))
        assert await provider.request_path(ORIGIN, DEST) == []
        await provider.aclose()

    @pytest.mark.anyio
    async def test_bad_coordinates(self):
        body = {"routes": [{"geometry": {"coordinates": [[1.0, "x"]]}}]}
        provider = _provider(lambda r: httpx.Response(200, json=body))
        assert await provider.request_path(ORIGIN, DEST) == []
        await provider.aclose()

    @pytest.mark.anyio
    async def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        provider = _provider(handler, timeout=0.01)
        assert await provider.request_path(ORIGIN, DEST) == []
        await provider.aclose()


class _GatedProvider:
    """Provider whose requests block until released."""

    def __init__(self, path=None):
        self.release = asyncio.Event()
        self.path = path or []
        self.calls = 0

    async def request_path(self, origin, destination):
        self.calls += 1
        await self.release.wait()
        return list(self.path)


class _FailingProvider:
    async def request_path(self, origin, destination):
        raise RuntimeError("provider exploded")


async def _settle():
    for _ in range(5):
        await asyncio.sleep(0)


@pytest.mark.unit
class TestPathRequestQueue:

    def test_without_loop_resolves_straight(self):
        paths = PathRequestQueue(StraightLineProvider())
        paths.submit("vehicle-1", ORIGIN, DEST)
        (result,) = paths.drain()
        assert result.waypoints == [ORIGIN, DEST]
        assert paths.outstanding == 0

    @pytest.mark.anyio
    async def test_result_waits_for_drain(self):
        provider = _GatedProvider([tuple(c) for c in ROUTE])
        paths = PathRequestQueue(provider)
        paths.submit("vehicle-1", ORIGIN, DEST, assigned=True, event_id="evt-0")
        assert paths.in_flight("vehicle-1")
        assert paths.drain() == []

        provider.release.set()
        await _settle()
        (result,) = paths.drain()
        assert result.request.assigned is True
        assert result.request.event_id == "evt-0"
        assert result.waypoints == [tuple(c) for c in ROUTE]
        assert not paths.in_flight("vehicle-1")

    @pytest.mark.anyio
    async def test_invalidate_discards_late_results(self):
        provider = _GatedProvider()
        paths = PathRequestQueue(provider)
        paths.submit("vehicle-1", ORIGIN, DEST)
        generation = paths.invalidate()
        assert generation == 1
        provider.release.set()
        await _settle()
        assert paths.drain() == []
        assert paths.outstanding == 0

    @pytest.mark.anyio
    async def test_newer_request_supersedes(self):
        provider = _GatedProvider()
        paths = PathRequestQueue(provider)
        paths.submit("vehicle-1", ORIGIN, DEST)
        second = paths.submit("vehicle-1", DEST, ORIGIN)
        provider.release.set()
        await _settle()
        (result,) = paths.drain()
        assert result.request.ticket == second.ticket
        assert result.waypoints == [DEST, ORIGIN]

    @pytest.mark.anyio
    async def test_provider_exception_falls_back(self):
        paths = PathRequestQueue(_FailingProvider())
        paths.submit("vehicle-1", ORIGIN, DEST)
        await _settle()
        (result,) = paths.drain()
        assert result.waypoints == [ORIGIN, DEST]

    @pytest.mark.anyio
    async def test_pending_tracks_newest_request(self):
        provider = _GatedProvider()
        paths = PathRequestQueue(provider)
        assert paths.pending("vehicle-1") is None
        paths.submit("vehicle-1", ORIGIN, DEST, assigned=True, event_id="evt-0")
        newer = paths.submit("vehicle-1", ORIGIN, DEST)
        assert paths.pending("vehicle-1") == newer

        provider.release.set()
        await _settle()
        (result,) = paths.drain()
        assert result.request == newer
        assert paths.pending("vehicle-1") is None

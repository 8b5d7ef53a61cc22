"""CAD Live Map - simulation service.

Main FastAPI application.
"""

import asyncio
from contextlib import asynccontextmanager

import httpx
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from cadmap import __version__
from cadmap.config import settings
from cadmap.routers import simulation_router, ws_router
from cadmap.routers.ws import start_sim_event_bridge
from cadsim.comms.event_bus import EventBus
from cadsim.simulation import MapboxDirectionsProvider, SimulationEngine


def _create_simulation_engine(provider: MapboxDirectionsProvider) -> SimulationEngine | None:
    """Create the SimulationEngine from settings. Returns engine or None."""
    if not settings.simulation_enabled:
        return None

    engine = SimulationEngine(
        EventBus(),
        provider=provider,
        city_id=settings.default_city,
        ground_unit_count=settings.ground_unit_count,
        aerial_unit_count=settings.aerial_unit_count,
        camera_count=settings.camera_count,
        frame_interval=settings.frame_interval,
        viewport_size=(settings.viewport_width, settings.viewport_height),
        seed=settings.simulation_seed,
    )
    logger.info("Simulation engine created")
    return engine


def _create_route_provider() -> MapboxDirectionsProvider:
    provider = MapboxDirectionsProvider(
        settings.mapbox_access_token,
        base_url=settings.routing_base_url,
        profile=settings.routing_profile,
        timeout=settings.route_timeout,
        client=httpx.AsyncClient(),
    )
    if provider.has_token:
        logger.info(f"Routing: {settings.routing_base_url}/{settings.routing_profile}")
    else:
        logger.warning("MAPBOX_ACCESS_TOKEN not set; vehicles will drive straight lines")
    return provider


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("=" * 60)
    logger.info(f"  {settings.app_name} v{__version__} - INITIALIZING")
    logger.info("=" * 60)

    provider = _create_route_provider()
    sim_engine = _create_simulation_engine(provider)
    bridge = None
    app.state.simulation_engine = sim_engine

    if sim_engine is not None:
        sim_engine.start()
        bridge = start_sim_event_bridge(
            sim_engine.event_bus, asyncio.get_running_loop(), settings.ws_snapshot_interval
        )
        logger.info(f"Simulation running in {sim_engine.state.city_id}")

    logger.info(f"  {settings.app_name} ONLINE")

    yield

    logger.info(f"{settings.app_name} shutting down...")
    if bridge is not None:
        bridge.stop()
    if sim_engine is not None:
        await sim_engine.stop()
    await provider.aclose()
    app.state.simulation_engine = None


app = FastAPI(
    title=settings.app_name,
    description="Computer-aided dispatch live map simulation",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(simulation_router)
app.include_router(ws_router)


@app.get("/health")
async def health():
    """Health check endpoint."""
    engine = getattr(app.state, "simulation_engine", None)
    return {
        "status": "operational",
        "version": __version__,
        "simulation": engine is not None and engine.running,
    }


def main() -> None:
    uvicorn.run("cadmap.main:app", host=settings.host, port=settings.port, reload=settings.debug)


if __name__ == "__main__":
    main()

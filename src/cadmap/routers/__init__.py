"""API routers."""

from cadmap.routers.simulation import router as simulation_router
from cadmap.routers.ws import router as ws_router

__all__ = ["simulation_router", "ws_router"]

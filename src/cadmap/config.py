"""Configuration management using Pydantic settings."""

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "CAD Live Map"
    debug: bool = False

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Routing (Mapbox Directions).  Without a token every route falls back
    # to a straight two-point path.
    mapbox_access_token: Optional[str] = None
    routing_base_url: str = "https://api.mapbox.com/directions/v5"
    routing_profile: str = "mapbox/driving"
    route_timeout: float = 10.0         # seconds per directions request

    # Simulation engine
    simulation_enabled: bool = True
    default_city: str = "seattle"
    ground_unit_count: int = 10
    aerial_unit_count: int = 3
    camera_count: int = 45
    frame_interval: float = 1 / 60      # seconds between ticks
    simulation_seed: Optional[int] = None

    # Viewport the engine projects against until the client reports its own
    viewport_width: int = 1280
    viewport_height: int = 800

    # WebSocket snapshot fan-out
    ws_snapshot_interval: float = 0.1   # seconds; newest snapshot wins


settings = Settings()

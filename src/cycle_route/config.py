"""Centralized settings for the cycle-route planner."""
from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {"env_prefix": "CYCLE_ROUTE_"}

    # Collaborator credentials; empty strings mean the live provider is unusable
    mapbox_token: str = ""
    xweather_client_id: str = ""
    xweather_client_secret: str = ""

    user_agent: str = "CycleRoute/0.1.0 (contact: you@example.com)"

    # Endpoints
    mapbox_directions_url: str = "https://api.mapbox.com/directions/v5/mapbox/cycling"
    xweather_base_url: str = "https://data.api.xweather.com"
    open_meteo_elevation_url: str = "https://api.open-meteo.com/v1/elevation"
    radar_base_url: str = "https://maps.consumer-digital.api.metoffice.gov.uk"

    # Timeouts in seconds
    directions_timeout_s: int = 15    # hard ceiling, user gets "try again" after this
    weather_timeout_s: int = 10
    elevation_timeout_s: int = 20

    # Retry policy for weather/elevation (directions is never retried)
    http_tries: int = 3
    http_backoff_s: float = 0.5

    # Concurrency for "parallel" collaborator calls
    weather_fetch_workers: int = 8
    elevation_fetch_workers: int = 4

    # Elevation sampling density (points per route)
    elevation_max_points: int = 100

    # Redis; empty string means disabled (graceful fallback)
    redis_url: str = ""

    # TTL values in seconds for each cached data type
    ttl_weather_obs: int = 600        # 10 min, observations refresh often
    ttl_weather_forecast: int = 3600  # 1 h, forecast runs every 3 h
    ttl_elevation: int = 2592000      # 30 d, terrain does not move
    ttl_directions: int = 900         # 15 min, road network + traffic

    # Rider defaults
    default_pace_kmh: float = 20.0


settings = Settings()

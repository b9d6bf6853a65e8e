from __future__ import annotations

import logging
from typing import List, Optional, Sequence

import requests

from cycle_route.cache import keys
from cycle_route.cache.redis_client import cache_get_json, cache_set_json
from cycle_route.config import settings
from cycle_route.core.errors import CollaboratorUnavailable
from cycle_route.core.models import Coordinate, ElevationPoint
from cycle_route.providers.base import ElevationProvider, elevation_sample_points
from cycle_route.providers.http import HTTPClient

log = logging.getLogger(__name__)

MAX_COORDS_PER_REQUEST = 100


class OpenMeteoElevationProvider(ElevationProvider):
    """Open-Meteo elevation API (Copernicus DEM, 90 m), batched 100 points per request."""

    def __init__(self, client: Optional[HTTPClient] = None):
        self.client = client or HTTPClient(
            user_agent=settings.user_agent,
            timeout_s=settings.elevation_timeout_s,
            tries=settings.http_tries,
            backoff_s=settings.http_backoff_s,
        )

    def _lookup(self, coords: Sequence[Coordinate]) -> List[float]:
        cache_key = keys.elevation_batch(coords)
        cached = cache_get_json(cache_key)
        if cached is not None:
            return [float(v) for v in cached]

        params = {
            "latitude": ",".join(f"{lat:.5f}" for _, lat in coords),
            "longitude": ",".join(f"{lon:.5f}" for lon, _ in coords),
        }
        data = self.client.get_json(settings.open_meteo_elevation_url, params=params)
        values = data.get("elevation") if isinstance(data, dict) else None
        if not isinstance(values, list) or len(values) != len(coords):
            raise CollaboratorUnavailable("elevation", "malformed response")

        try:
            out = [float(v) if v is not None else 0.0 for v in values]
        except (TypeError, ValueError) as e:
            raise CollaboratorUnavailable("elevation", "non-numeric height") from e
        cache_set_json(cache_key, out, settings.ttl_elevation)
        return out

    def elevation_profile(self, geometry: Sequence[Coordinate]) -> List[ElevationPoint]:
        samples = elevation_sample_points(geometry)
        if not samples:
            return []

        coords = [c for _, c in samples]
        heights: List[float] = []
        try:
            for i in range(0, len(coords), MAX_COORDS_PER_REQUEST):
                heights.extend(self._lookup(coords[i:i + MAX_COORDS_PER_REQUEST]))
        except requests.RequestException as e:
            raise CollaboratorUnavailable("elevation", type(e).__name__) from e

        return [
            ElevationPoint(distance_km=dist_km, elevation_m=h, coord=coord)
            for (dist_km, coord), h in zip(samples, heights)
        ]

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from cycle_route.config import settings
from cycle_route.core.geo import distance_between
from cycle_route.core.models import Coordinate, ElevationPoint, RouteAlternative, WeatherObservation

log = logging.getLogger(__name__)

# (lat, lon, when); when=None means "now"
WeatherQuery = Tuple[float, float, Optional[datetime]]


class DirectionsProvider(ABC):
    """Candidate cycling routes between waypoints."""

    @abstractmethod
    def get_routes(
        self,
        waypoints: Sequence[Coordinate],
        avoid_highways: bool = False,
        bearings: Optional[str] = None,
    ) -> List[RouteAlternative]:
        """Empty list when there is no route; CollaboratorUnavailable when the service failed."""
        raise NotImplementedError


class WeatherProvider(ABC):
    """Point weather.  Implementations return None on any failure and never raise."""

    @abstractmethod
    def weather_at(self, lat: float, lon: float, when: Optional[datetime] = None) -> Optional[WeatherObservation]:
        raise NotImplementedError

    def _safe_weather_at(self, query: WeatherQuery) -> Optional[WeatherObservation]:
        lat, lon, when = query
        try:
            return self.weather_at(lat, lon, when)
        except Exception as e:
            log.warning("Weather lookup at %.4f,%.4f failed: %s", lat, lon, e)
            return None

    def weather_along(self, points: Sequence[WeatherQuery]) -> List[Optional[WeatherObservation]]:
        """Fetch many points concurrently; output order matches ``points``."""
        if not points:
            return []
        workers = max(1, min(settings.weather_fetch_workers, len(points)))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            return list(pool.map(self._safe_weather_at, points))


class ElevationProvider(ABC):
    """Terrain height along a route, ordered by distance from the start."""

    @abstractmethod
    def elevation_profile(self, geometry: Sequence[Coordinate]) -> List[ElevationPoint]:
        raise NotImplementedError


@dataclass(frozen=True)
class Providers:
    directions: DirectionsProvider
    weather: WeatherProvider
    elevation: ElevationProvider


def elevation_sample_points(
    geometry: Sequence[Coordinate],
    max_points: Optional[int] = None,
) -> List[Tuple[float, Coordinate]]:
    """
    Every n-th coordinate so at most ~``max_points`` are queried, paired with
    the cumulative distance (km) from the start between sampled points.
    """
    max_points = max_points or settings.elevation_max_points
    step = max(1, len(geometry) // max_points)

    out: List[Tuple[float, Coordinate]] = []
    total_m = 0.0
    prev: Optional[Coordinate] = None
    for i in range(0, len(geometry), step):
        lon, lat = geometry[i]
        lat = max(-85.0, min(85.0, lat))  # web-mercator safe
        coord = (lon, lat)
        if prev is not None:
            total_m += distance_between(prev, coord)
        out.append((total_m / 1000.0, coord))
        prev = coord
    return out

"""
Route planning: directions -> per-route inputs -> scoring -> ranking.

Everything a plan depends on arrives in a ``PlanRequest`` snapshot; nothing
about the "current route" lives here.  Scoring starts only after every
collaborator call for the request has returned (or fallen back), and a
request that has been superseded by a newer one is discarded rather than
returned.
"""
from __future__ import annotations

import hashlib
import json
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass, field
from datetime import datetime
from math import isfinite
from typing import Dict, List, Optional, Sequence, Tuple

from cycle_route.config import settings
from cycle_route.core.characteristics import analyze_route_characteristics
from cycle_route.core.errors import CollaboratorUnavailable, NoRouteFound, StaleRequestDiscarded
from cycle_route.core.geo import bearings_param, trend_bearing
from cycle_route.core.models import (
    Coordinate,
    PlanRequest,
    PlanResult,
    RouteAlternative,
    WeatherObservation,
    WindImpact,
)
from cycle_route.core.scoring import compute_ascent, rank_routes, score_alternative
from cycle_route.core.wind import compute_route_wind_impact, route_wind_score, route_wind_split
from cycle_route.providers.base import ElevationProvider, Providers, WeatherProvider

log = logging.getLogger(__name__)

FALLBACK_WIND_BEARING = 0.0
FALLBACK_ASCENT_M = 0.0


# ---------------------------------------------------------------------------
# Last-request-wins
# ---------------------------------------------------------------------------

def request_fingerprint(request: PlanRequest) -> str:
    payload = {
        "waypoints": [[round(lon, 6), round(lat, 6)] for lon, lat in request.waypoints],
        "prefs": request.preferences.model_dump(),
        "bearings": request.bearings,
    }
    return hashlib.md5(json.dumps(payload, sort_keys=True).encode()).hexdigest()[:12]


@dataclass
class RequestTracker:
    """
    Hands out increasing tokens per planning request.  Only the holder of the
    newest token may publish results.  Owned by the caller (one per UI
    session / API process), shared across threads.
    """

    _latest: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def begin(self) -> int:
        with self._lock:
            self._latest += 1
            return self._latest

    def is_current(self, token: int) -> bool:
        with self._lock:
            return token == self._latest

    def ensure_current(self, fingerprint: str, token: int) -> None:
        with self._lock:
            latest = self._latest
        if token != latest:
            raise StaleRequestDiscarded(fingerprint, token, latest)


# ---------------------------------------------------------------------------
# Collaborator calls with documented fallbacks
# ---------------------------------------------------------------------------

def _route_ascent(elevation: ElevationProvider, route: RouteAlternative) -> Tuple[float, Optional[str]]:
    try:
        profile = elevation.elevation_profile(route.geometry)
    except Exception as e:
        log.warning("Elevation unavailable (%s); ascent assumed %.0f m", e, FALLBACK_ASCENT_M)
        return FALLBACK_ASCENT_M, "Elevation data unavailable; climbing not scored"
    return compute_ascent(profile), None


def _start_weather(weather: WeatherProvider, start: Coordinate) -> Optional[WeatherObservation]:
    lon, lat = start
    try:
        return weather.weather_at(lat, lon)
    except Exception as e:
        log.warning("Weather provider raised at %.4f,%.4f: %s", lat, lon, e)
        return None


def _fetch_routes(providers: Providers, request: PlanRequest) -> List[RouteAlternative]:
    """Directions call bounded by ``settings.directions_timeout_s`` regardless of the provider."""
    pool = ThreadPoolExecutor(max_workers=1)
    try:
        fut = pool.submit(
            providers.directions.get_routes,
            request.waypoints,
            avoid_highways=request.preferences.avoid_highways,
            bearings=request.bearings,
        )
        return fut.result(timeout=settings.directions_timeout_s)
    except FutureTimeout as e:
        raise CollaboratorUnavailable(
            "directions", f"no answer within {settings.directions_timeout_s}s"
        ) from e
    finally:
        pool.shutdown(wait=False)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def plan_routes(
    request: PlanRequest,
    providers: Providers,
    tracker: Optional[RequestTracker] = None,
) -> PlanResult:
    """
    Rank the directions service's alternatives for ``request``, best first.

    Raises NoRouteFound when there are no alternatives, CollaboratorUnavailable
    when directions failed, and StaleRequestDiscarded when ``tracker`` saw a
    newer request start while this one was in flight.  Weather and elevation
    failures only add warnings.
    """
    fingerprint = request_fingerprint(request)
    token = tracker.begin() if tracker else 0

    routes = _fetch_routes(providers, request)
    if tracker:
        tracker.ensure_current(fingerprint, token)
    if not routes:
        raise NoRouteFound(f"No cycling route found between {len(request.waypoints)} waypoints")

    characteristics = [analyze_route_characteristics(r) for r in routes]

    warnings: List[str] = []
    workers = max(1, min(settings.elevation_fetch_workers, len(routes)) + 1)
    with ThreadPoolExecutor(max_workers=workers) as pool:
        wind_fut = pool.submit(_start_weather, providers.weather, request.waypoints[0])
        ascent_futs = [pool.submit(_route_ascent, providers.elevation, r) for r in routes]
        ascents: List[float] = []
        for fut in ascent_futs:
            ascent, warn = fut.result()
            ascents.append(ascent)
            if warn and warn not in warnings:
                warnings.append(warn)
        observation = wind_fut.result()

    if observation is not None and observation.bearing is not None and isfinite(observation.bearing):
        wind_bearing = observation.bearing
    else:
        log.warning("No wind at start; scoring with bearing %.0f", FALLBACK_WIND_BEARING)
        wind_bearing = FALLBACK_WIND_BEARING
        warnings.append("Wind data unavailable; wind scores assume a northerly")

    if tracker:
        tracker.ensure_current(fingerprint, token)

    durations = [r.duration for r in routes]
    results = [
        score_alternative(
            route,
            route_wind_split(route.geometry, wind_bearing),
            chars,
            ascent,
            durations,
            request.preferences,
            original_index=i,
            wind_score=route_wind_score(route.geometry, wind_bearing),
        )
        for i, (route, chars, ascent) in enumerate(zip(routes, characteristics, ascents))
    ]

    ranked = rank_routes(results)
    log.info(
        "Planned %s: %d alternatives, best %.1f",
        fingerprint, len(ranked), ranked[0].composite_score,
    )
    return PlanResult(
        routes=ranked,
        warnings=warnings,
        wind_bearing_used=wind_bearing,
        fingerprint=fingerprint,
    )


def route_wind_impact(
    geometry: Sequence[Coordinate],
    providers: Providers,
    when: Optional[datetime] = None,
) -> WindImpact:
    """Detailed tail/head/cross meters for a selected route, from sampled weather."""
    return compute_route_wind_impact(geometry, providers.weather, when)


def reroute_request(
    request: PlanRequest,
    position: Coordinate,
    history: Sequence[Tuple[Coordinate, float]] = (),
    now_ms: Optional[float] = None,
    last_heading: Optional[float] = None,
) -> PlanRequest:
    """
    New request starting at the rider's position, constrained to roughly the
    direction they are already moving so the service does not send them back.
    """
    waypoints = [tuple(position)] + [tuple(w) for w in request.waypoints[1:]]
    if now_ms is None:
        now_ms = history[-1][1] if history else 0.0
    bearing = trend_bearing(list(history), now_ms, last_heading)
    return request.model_copy(
        update={"waypoints": waypoints, "bearings": bearings_param(bearing, len(waypoints))}
    )


def summarize(result: PlanResult) -> List[Dict]:
    """Compact per-route rows for logs, CLI and API listings."""
    rows = []
    for r in result.routes:
        route = r.route
        rows.append(
            {
                "rank": r.rank,
                "score": round(r.composite_score, 1),
                "distance_km": round(route.distance / 1000.0, 1) if route else None,
                "duration_min": round(route.duration / 60.0) if route else None,
                "wind_tail": r.wind_percentage_tail,
                "wind_head": r.wind_percentage_head,
                "cycle_pct": r.cycle_lane_pct,
                "a_road_pct": r.a_road_pct,
                "motorway_pct": r.motorway_pct,
                "scenic_pct": r.scenic_pct,
                "ascent_m": round(r.ascent_meters),
                "kcal": r.calories_kcal,
                "reasons": r.reasons,
            }
        )
    return rows

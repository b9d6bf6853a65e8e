"""FastAPI REST backend for the cycle-route planner."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from cycle_route.cache.redis_client import redis_healthy
from cycle_route.core.engine import RequestTracker, plan_routes, route_wind_impact
from cycle_route.core.errors import CollaboratorUnavailable, NoRouteFound, StaleRequestDiscarded
from cycle_route.core.models import Coordinate, PlanRequest, RouteScoreResult, TimeMode, WindImpact
from cycle_route.core.timeline import (
    forecast_points,
    project_time,
    radar_product_url,
    select_weather_product,
)
from cycle_route.providers.factory import build_providers

log = logging.getLogger(__name__)

app = FastAPI(title="Cycle Route", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Module-level singletons (provider caches and trackers persist across requests)
# ---------------------------------------------------------------------------
_provider_cache: Dict[str, Any] = {}
_trackers: Dict[str, RequestTracker] = {}


def _get_providers(provider_str: str):
    if provider_str not in _provider_cache:
        _provider_cache[provider_str] = build_providers(provider_str)
    return _provider_cache[provider_str]


def _get_tracker(session_id: Optional[str]) -> Optional[RequestTracker]:
    if not session_id:
        return None
    return _trackers.setdefault(session_id, RequestTracker())


# ---------------------------------------------------------------------------
# Request / Response models
# ---------------------------------------------------------------------------

class PlanIn(BaseModel):
    request: PlanRequest
    provider: str = "live"
    # Requests sharing a session id supersede each other (last one wins)
    session_id: Optional[str] = None


class PlanOut(BaseModel):
    routes: List[RouteScoreResult]
    recommended_index: Optional[int] = None
    warnings: List[str] = []
    wind_bearing_used: float
    fingerprint: str


class WindImpactIn(BaseModel):
    geometry: List[Coordinate]
    when: Optional[datetime] = None
    provider: str = "live"


class WeatherProductIn(BaseModel):
    progress: float = Field(..., ge=0.0, le=1.0)
    anchor: datetime
    duration_hours: float = Field(..., ge=0.0)
    mode: TimeMode = "depart"
    now: Optional[datetime] = None


class WeatherProductOut(BaseModel):
    kind: str
    simulated_time: datetime
    valid_time: datetime
    model_run: Optional[datetime] = None
    lead_time: Optional[str] = None
    range: Optional[str] = None
    url: str


class ForecastPointsIn(BaseModel):
    geometry: List[Coordinate] = Field(..., min_length=1)
    distance_m: float = Field(..., ge=0.0)
    start: datetime
    pace_kmh: float = Field(default=20.0, gt=0)


class ForecastPointOut(BaseModel):
    lat: float
    lon: float
    time: datetime


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@app.get("/health")
def health():
    return {"status": "ok", "redis": redis_healthy()}


@app.post("/plan", response_model=PlanOut)
def plan(req: PlanIn):
    try:
        providers = _get_providers(req.provider)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        result = plan_routes(req.request, providers, tracker=_get_tracker(req.session_id))
    except StaleRequestDiscarded as e:
        log.info("Discarded %s", e)
        raise HTTPException(status_code=409, detail="superseded")
    except NoRouteFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except CollaboratorUnavailable as e:
        raise HTTPException(status_code=503, detail=f"{e}; try again")

    best = result.recommended
    return PlanOut(
        routes=result.routes,
        recommended_index=best.original_index if best else None,
        warnings=result.warnings,
        wind_bearing_used=result.wind_bearing_used,
        fingerprint=result.fingerprint,
    )


@app.post("/wind-impact", response_model=WindImpact)
def wind_impact(req: WindImpactIn):
    try:
        providers = _get_providers(req.provider)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return route_wind_impact(req.geometry, providers, req.when)


@app.post("/weather-product", response_model=WeatherProductOut)
def weather_product(req: WeatherProductIn):
    now = req.now or datetime.now(timezone.utc)
    simulated = project_time(req.progress, req.anchor, req.duration_hours, req.mode)
    product = select_weather_product(simulated, now)
    return WeatherProductOut(
        kind=product.kind,
        simulated_time=simulated,
        valid_time=product.valid_time,
        model_run=product.model_run,
        lead_time=product.lead_time_iso,
        range=product.range,
        url=radar_product_url(product),
    )


@app.post("/forecast-points", response_model=List[ForecastPointOut])
def forecast_points_endpoint(req: ForecastPointsIn):
    points = forecast_points(req.geometry, req.distance_m, req.start, req.pace_kmh)
    return [ForecastPointOut(lat=p.lat, lon=p.lon, time=p.time) for p in points]

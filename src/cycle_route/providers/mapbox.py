from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

import requests

from cycle_route.cache import keys
from cycle_route.cache.redis_client import cache_get_json, cache_set_json
from cycle_route.config import settings
from cycle_route.core.errors import CollaboratorUnavailable
from cycle_route.core.models import Coordinate, RouteAlternative, RouteLeg, StepAnnotation
from cycle_route.providers.base import DirectionsProvider
from cycle_route.providers.http import HTTPClient

log = logging.getLogger(__name__)

NO_ROUTE_CODES = ("NoRoute", "NoSegment")


def _parse_step(step: Dict[str, Any]) -> StepAnnotation:
    maneuver = step.get("maneuver") or {}
    loc = maneuver.get("location")
    return StepAnnotation(
        name=step.get("name") or "",
        ref=step.get("ref") or "",
        distance=float(step.get("distance") or 0.0),
        instruction=maneuver.get("instruction"),
        location=tuple(loc) if loc else None,
    )


def parse_routes(data: Dict[str, Any]) -> List[RouteAlternative]:
    """Directions v5 JSON -> alternatives.  Routes without usable geometry are dropped."""
    out: List[RouteAlternative] = []
    for r in data.get("routes") or []:
        coords = (r.get("geometry") or {}).get("coordinates") or []
        if len(coords) < 2:
            continue
        legs = [
            RouteLeg(steps=[_parse_step(s) for s in (leg.get("steps") or [])])
            for leg in (r.get("legs") or [])
        ]
        out.append(
            RouteAlternative(
                geometry=[(float(c[0]), float(c[1])) for c in coords],
                distance=float(r.get("distance") or 0.0),
                duration=float(r.get("duration") or 0.0),
                legs=legs,
            )
        )
    return out


class MapboxDirectionsProvider(DirectionsProvider):
    """
    Mapbox Directions v5, cycling profile, with alternatives and turn-by-turn steps.

    One attempt only, bounded by ``settings.directions_timeout_s``: a rider
    waiting on a plan gets "try again" rather than a silent retry loop.
    """

    def __init__(self, token: Optional[str] = None, client: Optional[HTTPClient] = None):
        self.token = token if token is not None else settings.mapbox_token
        self.client = client or HTTPClient(
            user_agent=settings.user_agent,
            timeout_s=settings.directions_timeout_s,
            tries=1,
        )

    def get_routes(
        self,
        waypoints: Sequence[Coordinate],
        avoid_highways: bool = False,
        bearings: Optional[str] = None,
    ) -> List[RouteAlternative]:
        if not self.token:
            raise CollaboratorUnavailable("directions", "no Mapbox token configured")

        cache_key = keys.directions(waypoints, avoid_highways, bearings)
        cached = cache_get_json(cache_key)
        if cached is not None:
            return [RouteAlternative(**r) for r in cached]

        coord_str = ";".join(f"{lon},{lat}" for lon, lat in waypoints)
        url = f"{settings.mapbox_directions_url}/{coord_str}"
        params: Dict[str, Any] = {
            "alternatives": "true",
            "geometries": "geojson",
            "overview": "full",
            "steps": "true",
            "access_token": self.token,
        }
        if avoid_highways:
            params["exclude"] = "motorway"
        if bearings:
            params["bearings"] = bearings

        try:
            data = self.client.get_json(url, params=params, timeout_s=settings.directions_timeout_s, tries=1)
        except requests.HTTPError as e:
            body = _error_body(e.response)
            if body.get("code") in NO_ROUTE_CODES:
                return []
            raise CollaboratorUnavailable("directions", f"HTTP {getattr(e.response, 'status_code', '?')}") from e
        except requests.RequestException as e:
            raise CollaboratorUnavailable("directions", type(e).__name__) from e

        if data.get("code") in NO_ROUTE_CODES:
            return []

        routes = parse_routes(data)
        if routes:
            cache_set_json(cache_key, [r.model_dump() for r in routes], settings.ttl_directions)
        return routes


def _error_body(resp) -> Dict[str, Any]:
    if resp is None:
        return {}
    try:
        body = resp.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}

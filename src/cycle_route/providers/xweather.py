from __future__ import annotations

import logging
from datetime import datetime, timezone
from math import isfinite
from typing import Any, Dict, Optional

from cycle_route.cache import keys
from cycle_route.cache.redis_client import cache_get_json, cache_set_json
from cycle_route.config import settings
from cycle_route.core.models import WeatherObservation
from cycle_route.providers.base import WeatherProvider
from cycle_route.providers.http import HTTPClient

log = logging.getLogger(__name__)


def _num(v: Any) -> Optional[float]:
    if v is None:
        return None
    try:
        f = float(v)
    except (TypeError, ValueError):
        return None
    return f if isfinite(f) else None


def _parse_ts(v: Any) -> Optional[datetime]:
    ts = _num(v)
    if ts is None:
        return None
    return datetime.fromtimestamp(ts, tz=timezone.utc)


def parse_observation(block: Dict[str, Any]) -> WeatherObservation:
    """
    Xweather ``ob`` / forecast ``period`` block (metric units) -> WeatherObservation.

    Both blocks use the same field names for the values we read.
    """
    bearing = _num(block.get("windDirDEG"))
    return WeatherObservation(
        bearing=bearing % 360.0 if bearing is not None else None,
        speed=_num(block.get("windSpeedMPS")),
        gust=_num(block.get("windGustMPS")),
        temperature=_num(block.get("tempC")),
        humidity=_num(block.get("humidity")),
        timestamp=_parse_ts(block.get("timestamp")),
        feels_like=_num(block.get("feelslikeC")),
        description=block.get("weatherPrimary") or block.get("weather"),
        icon=block.get("icon"),
    )


class XWeatherProvider(WeatherProvider):
    """
    Xweather (formerly Aeris) point weather.

    ``when=None`` reads the latest observation; a timestamp reads the hourly
    forecast period starting at that time.  Every failure becomes ``None``.
    """

    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        client: Optional[HTTPClient] = None,
    ):
        self.client_id = client_id if client_id is not None else settings.xweather_client_id
        self.client_secret = client_secret if client_secret is not None else settings.xweather_client_secret
        self.client = client or HTTPClient(
            user_agent=settings.user_agent,
            timeout_s=settings.weather_timeout_s,
            tries=settings.http_tries,
            backoff_s=settings.http_backoff_s,
        )

    def _auth(self) -> Dict[str, str]:
        return {"client_id": self.client_id, "client_secret": self.client_secret, "units": "metric"}

    def weather_at(self, lat: float, lon: float, when: Optional[datetime] = None) -> Optional[WeatherObservation]:
        if not self.client_id or not self.client_secret:
            log.warning("Xweather credentials missing; no weather")
            return None
        try:
            if when is None:
                return self._observation(lat, lon)
            return self._forecast(lat, lon, when)
        except Exception as e:
            log.warning("Xweather lookup at %.4f,%.4f failed: %s", lat, lon, e)
            return None

    def _observation(self, lat: float, lon: float) -> Optional[WeatherObservation]:
        cache_key = keys.weather_obs(lat, lon)
        cached = cache_get_json(cache_key)
        if cached is not None:
            return WeatherObservation(**cached)

        url = f"{settings.xweather_base_url}/observations/{lat},{lon}"
        data = self.client.get_json(url, params=self._auth())
        if not data.get("success") or not data.get("response"):
            log.warning("Xweather: no observation near %.4f,%.4f", lat, lon)
            return None

        resp = data["response"]
        if isinstance(resp, list):
            resp = resp[0] if resp else {}
        ob = resp.get("ob")
        if not ob:
            return None

        obs = parse_observation(ob)
        cache_set_json(cache_key, obs.model_dump(mode="json"), settings.ttl_weather_obs)
        return obs

    def _forecast(self, lat: float, lon: float, when: datetime) -> Optional[WeatherObservation]:
        if when.tzinfo is None:
            when = when.replace(tzinfo=timezone.utc)
        cache_key = keys.weather_forecast(lat, lon, when.astimezone(timezone.utc))
        cached = cache_get_json(cache_key)
        if cached is not None:
            return WeatherObservation(**cached)

        url = f"{settings.xweather_base_url}/forecasts/{lat},{lon}"
        params = {**self._auth(), "filter": "1hr", "from": when.isoformat(), "limit": 1}
        data = self.client.get_json(url, params=params)
        if not data.get("success") or not data.get("response"):
            return None

        resp = data["response"]
        if isinstance(resp, list):
            resp = resp[0] if resp else {}
        periods = resp.get("periods") or []
        if not periods:
            return None

        obs = parse_observation(periods[0])
        cache_set_json(cache_key, obs.model_dump(mode="json"), settings.ttl_weather_forecast)
        return obs

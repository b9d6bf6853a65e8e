"""
Time along a ride: where the rider is when, and which weather product covers that moment.

Radar imagery comes in two flavours.  Frames older than the observation
cutoff are served as observations on a 15-minute grid; anything newer comes
from a forecast model run every 3 hours, addressed by lead time.  Short
lead times (<= 11 h) exist at 15-minute steps, long ones only hourly.
Asking for a frame that does not exist returns nothing, so the rounding
rules below must match the product catalogue exactly.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from math import floor
from typing import List, Literal, Optional, Sequence

from cycle_route.config import settings
from cycle_route.core.geo import point_along
from cycle_route.core.models import Coordinate, TimeMode

OBSERVATION_CUTOFF = timedelta(minutes=20)
OBSERVATION_STEP = timedelta(minutes=15)
MODEL_RUN_HOURS = 3
SHORT_RANGE_MAX_HOURS = 11.0
SHORT_RANGE_STEP = timedelta(minutes=15)

FORECAST_INTERVAL_HOURS = 0.25
FORECAST_END_SLACK = timedelta(minutes=5)
PLAYBACK_WEATHER_EVERY_KM = 25.0


def _utc(dt: datetime) -> datetime:
    """Naive datetimes are taken to be UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _round_to(dt: datetime, step: timedelta) -> datetime:
    s = step.total_seconds()
    epoch = _utc(dt).timestamp()
    return datetime.fromtimestamp(floor(epoch / s + 0.5) * s, tz=timezone.utc)


def _iso_z(dt: datetime) -> str:
    return _utc(dt).strftime("%Y-%m-%dT%H:%M:%SZ")


def iso_duration(delta: timedelta) -> str:
    """``PT0S``, ``PT45M``, ``PT2H``, ``PT1H15M``; hours and minutes only."""
    total_min = max(0, int(delta.total_seconds() // 60))
    h, m = divmod(total_min, 60)
    if h == 0 and m == 0:
        return "PT0S"
    out = "PT"
    if h:
        out += f"{h}H"
    if m:
        out += f"{m}M"
    return out


# ---------------------------------------------------------------------------
# Journey time
# ---------------------------------------------------------------------------

def ride_duration_hours(distance_m: float, pace_kmh: float) -> float:
    if pace_kmh <= 0:
        pace_kmh = settings.default_pace_kmh
    return (distance_m / 1000.0) / pace_kmh


def journey_start(anchor: datetime, duration_hours: float, mode: TimeMode = "depart") -> datetime:
    """In "arrive" mode the anchor is the arrival instant, so work backwards."""
    if mode == "arrive":
        return anchor - timedelta(hours=duration_hours)
    return anchor


def project_time(
    progress: float,
    anchor: datetime,
    duration_hours: float,
    mode: TimeMode = "depart",
) -> datetime:
    """Real-world instant at ``progress`` (0..1) of the ride."""
    progress = min(1.0, max(0.0, float(progress)))
    start = journey_start(anchor, duration_hours, mode)
    return start + timedelta(hours=progress * duration_hours)


# ---------------------------------------------------------------------------
# Weather product selection
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class WeatherProduct:
    kind: Literal["observation", "forecast"]
    valid_time: datetime                 # rounded observation time, or simulated time
    model_run: Optional[datetime] = None
    lead_time: Optional[timedelta] = None
    lead_time_iso: Optional[str] = None
    range: Optional[Literal["short", "long"]] = None


def latest_model_run(now: datetime) -> datetime:
    """Most recent 3-hour-aligned (UTC) model run at or before ``now``."""
    now = _utc(now)
    return now.replace(hour=now.hour - now.hour % MODEL_RUN_HOURS, minute=0, second=0, microsecond=0)


def select_weather_product(simulated: datetime, now: datetime) -> WeatherProduct:
    simulated = _utc(simulated)
    now = _utc(now)

    if simulated <= now - OBSERVATION_CUTOFF:
        return WeatherProduct(kind="observation", valid_time=_round_to(simulated, OBSERVATION_STEP))

    run = latest_model_run(now)
    lead = simulated - run
    lead_hours = lead.total_seconds() / 3600.0

    if lead_hours <= SHORT_RANGE_MAX_HOURS:
        step = SHORT_RANGE_STEP.total_seconds()
        rounded = timedelta(seconds=floor(lead.total_seconds() / step + 0.5) * step)
        rounded = max(timedelta(0), rounded)
        return WeatherProduct(
            kind="forecast",
            valid_time=simulated,
            model_run=run,
            lead_time=rounded,
            lead_time_iso=iso_duration(rounded),
            range="short",
        )

    hours = int(floor(lead_hours + 0.5))
    return WeatherProduct(
        kind="forecast",
        valid_time=simulated,
        model_run=run,
        lead_time=timedelta(hours=hours),
        lead_time_iso=f"PT{hours}H",
        range="long",
    )


def radar_product_url(product: WeatherProduct, base_url: Optional[str] = None) -> str:
    base = (base_url or settings.radar_base_url).rstrip("/")
    if product.kind == "observation":
        return f"{base}/wms_ob/single/high-res/rainfall_radar/{_iso_z(product.valid_time)}.png"
    return (
        f"{base}/wms_fc/single/high-res/{product.range}/total_precipitation_rate/"
        f"{_iso_z(product.model_run)}/{product.lead_time_iso}.png"
    )


# ---------------------------------------------------------------------------
# Along-route forecast sampling
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ForecastPoint:
    lat: float
    lon: float
    time: datetime


def forecast_points(
    geometry: Sequence[Coordinate],
    distance_m: float,
    start: datetime,
    pace_kmh: float,
) -> List[ForecastPoint]:
    """Where the rider will be every 15 minutes, plus the finish if it falls well after the last slot."""
    if not geometry:
        return []

    total_km = distance_m / 1000.0
    total_h = ride_duration_hours(distance_m, pace_kmh)

    out: List[ForecastPoint] = []
    k = 0
    while k * FORECAST_INTERVAL_HOURS <= total_h:
        t = k * FORECAST_INTERVAL_HOURS
        dist_km = t * pace_kmh
        if dist_km > total_km:
            break
        lon, lat = point_along(geometry, dist_km * 1000.0)
        out.append(ForecastPoint(lat=lat, lon=lon, time=start + timedelta(hours=t)))
        k += 1

    if out:
        end_time = start + timedelta(hours=total_h)
        if end_time - out[-1].time > FORECAST_END_SLACK:
            lon, lat = geometry[-1]
            out.append(ForecastPoint(lat=lat, lon=lon, time=end_time))
    return out


@dataclass
class PlaybackWeatherCursor:
    """
    Tracks weather during route playback.

    ``advance`` reports the radar frame URL only when it differs from the
    last one shown, and a position to refresh conditions at every 25 km.
    """

    geometry: Sequence[Coordinate]
    distance_m: float
    anchor: datetime
    duration_hours: float
    mode: TimeMode = "depart"
    _last_url: Optional[str] = field(default=None, repr=False)
    _last_fetch_km: float = field(default=0.0, repr=False)

    def reset(self) -> None:
        self._last_url = None
        self._last_fetch_km = 0.0

    def advance(self, progress: float, now: datetime):
        """Returns ``(new_url_or_None, fetch_point_or_None)``."""
        simulated = project_time(progress, self.anchor, self.duration_hours, self.mode)
        url = radar_product_url(select_weather_product(simulated, now))
        new_url = None
        if url != self._last_url:
            self._last_url = url
            new_url = url

        fetch_at = None
        current_km = (self.distance_m / 1000.0) * min(1.0, max(0.0, progress))
        if abs(current_km - self._last_fetch_km) > PLAYBACK_WEATHER_EVERY_KM:
            self._last_fetch_km = current_km
            fetch_at = point_along(self.geometry, current_km * 1000.0)
        return new_url, fetch_at

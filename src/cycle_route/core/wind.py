"""Wind versus direction of travel: per-segment classification and route aggregation."""
from __future__ import annotations

import logging
from datetime import datetime
from math import floor, isfinite
from typing import List, Optional, Sequence

from cycle_route.core.errors import InvalidGeometry
from cycle_route.core.geo import bearing_between, distance_between
from cycle_route.core.models import Coordinate, WeatherObservation, WindClass, WindImpact, WindScore

log = logging.getLogger(__name__)

TAILWIND_MAX_DEG = 45.0
HEADWIND_MIN_DEG = 135.0

MAX_SAMPLES = 15
MIN_SAMPLES = 3
POINTS_PER_SAMPLE = 50

GOOD_WIND_PCT = 70


def round_half_up(x: float) -> int:
    return int(floor(x + 0.5))


def _angle_diff_deg(a: float, b: float) -> float:
    """Minimal circular difference in degrees in [0, 180]."""
    d = abs(a - b) % 360.0
    if d > 180.0:
        d = 360.0 - d
    return float(d)


def classify_wind_impact(segment_bearing: float, wind_origin_bearing: float) -> WindClass:
    """
    Classify wind relative to the direction of travel.

    Wind is reported as the direction it blows FROM, so the comparison is made
    against the opposite bearing.  Strict thresholds: <45° tailwind, >135°
    headwind, anything in between (both ends included) crosswind.
    """
    toward = (wind_origin_bearing + 180.0) % 360.0
    diff = _angle_diff_deg(segment_bearing, toward)

    if diff < TAILWIND_MAX_DEG:
        return "tailwind"
    if diff > HEADWIND_MIN_DEG:
        return "headwind"
    return "crosswind"


def route_wind_split(geometry: Sequence[Coordinate], wind_bearing: float) -> WindImpact:
    """Tail/head/cross share of segments, by count, under a single wind bearing."""
    counts = {"tailwind": 0, "headwind": 0, "crosswind": 0}
    for i in range(len(geometry or ()) - 1):
        try:
            road_bearing = bearing_between(geometry[i], geometry[i + 1])
        except InvalidGeometry:
            continue
        counts[classify_wind_impact(road_bearing, wind_bearing)] += 1

    total = sum(counts.values())
    if not total:
        return WindImpact(tail=0, head=0, cross=100)
    return WindImpact(
        tail=round_half_up(counts["tailwind"] / total * 100),
        head=round_half_up(counts["headwind"] / total * 100),
        cross=round_half_up(counts["crosswind"] / total * 100),
    )


def route_wind_score(geometry: Sequence[Coordinate], wind_bearing: float) -> WindScore:
    """Scoring baseline: percentage of segments ridden with a tailwind."""
    if not geometry or len(geometry) < 2:
        return WindScore(percentage=0, rating="N/A")
    pct = route_wind_split(geometry, wind_bearing).tail
    return WindScore(percentage=pct, rating="Epic" if pct > GOOD_WIND_PCT else "Grind")


# ---------------------------------------------------------------------------
# Sampled wind impact
# ---------------------------------------------------------------------------

def sample_count(n_coords: int) -> int:
    return min(MAX_SAMPLES, max(MIN_SAMPLES, n_coords // POINTS_PER_SAMPLE + 2))


def sample_indices(n_coords: int, n_samples: int) -> List[int]:
    """Evenly spaced indices into the coordinate array, first = 0, last = n_coords - 1."""
    last = n_coords - 1
    return [round_half_up(i / (n_samples - 1) * last) for i in range(n_samples)]


def _nearest_sample(mid_idx: int, indices: Sequence[int]) -> int:
    best = 0
    best_dist = None
    for s, idx in enumerate(indices):
        d = abs(mid_idx - idx)
        if best_dist is None or d < best_dist:
            best, best_dist = s, d
    return best


def _pad(observations: List[Optional[WeatherObservation]], n: int) -> List[Optional[WeatherObservation]]:
    out = list(observations[:n])
    while len(out) < n:
        out.append(out[-1] if out else None)
    return out


def aggregate_wind_impact(
    geometry: Sequence[Coordinate],
    indices: Sequence[int],
    observations: Sequence[Optional[WeatherObservation]],
) -> WindImpact:
    """Distance-weighted tail/head/cross split, each segment using its nearest sample by index."""
    tail_m = head_m = cross_m = 0.0

    for i in range(len(geometry) - 1):
        start, end = geometry[i], geometry[i + 1]
        seg_m = distance_between(start, end)
        if seg_m == 0:
            continue

        mid_idx = int(floor(i + 0.5))
        obs = observations[_nearest_sample(mid_idx, indices)]

        impact: WindClass = "crosswind"  # no data counts as neutral
        if obs is not None and obs.bearing is not None and isfinite(obs.bearing):
            impact = classify_wind_impact(bearing_between(start, end), obs.bearing)

        if impact == "tailwind":
            tail_m += seg_m
        elif impact == "headwind":
            head_m += seg_m
        else:
            cross_m += seg_m

    total_m = tail_m + head_m + cross_m
    if total_m == 0:
        return WindImpact(tail=0, head=0, cross=100)
    return WindImpact(
        tail=round_half_up(tail_m / total_m * 100),
        head=round_half_up(head_m / total_m * 100),
        cross=round_half_up(cross_m / total_m * 100),
    )


def compute_route_wind_impact(
    geometry: Sequence[Coordinate],
    weather,
    when: Optional[datetime] = None,
) -> WindImpact:
    """
    Tail/head/cross percentages for a whole route.

    Fetches one observation at each of a bounded number of index-spaced
    samples (in parallel, through ``weather.weather_along``) instead of per
    coordinate.  Missing observations classify their segments as crosswind.
    """
    if not geometry or len(geometry) < 2:
        return WindImpact(tail=0, head=0, cross=100)

    n = sample_count(len(geometry))
    indices = sample_indices(len(geometry), n)
    points = [(geometry[idx][1], geometry[idx][0], when) for idx in indices]

    try:
        observations = list(weather.weather_along(points))
    except Exception as exc:
        log.warning("Wind sampling failed (%s); treating route as crosswind", exc)
        observations = []

    return aggregate_wind_impact(geometry, indices, _pad(observations, n))

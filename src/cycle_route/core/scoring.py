from __future__ import annotations

from math import isfinite
from typing import List, Optional, Sequence

from cycle_route.core.models import (
    ElevationPoint,
    RouteAlternative,
    RouteCharacteristics,
    RoutePreferences,
    RouteScoreResult,
    WindImpact,
    WindScore,
)
from cycle_route.core.wind import GOOD_WIND_PCT, round_half_up

BASE_SCORE = 50.0
CYCLE_LANE_WEIGHT = 0.5
SCENIC_WEIGHT = 2.0
A_ROAD_WEIGHT = 1.5
MOTORWAY_WEIGHT = 5.0
ASCENT_M_PER_POINT = 10.0
SLOWER_MINUTE_WEIGHT = 2.0
AVOID_A_ROAD_THRESHOLD_PCT = 5
AVOID_A_ROAD_PENALTY = 50.0

KCAL_PER_KM = 25.0
KCAL_PER_ASCENT_M = 1.5


def _finite(x: Optional[float], default: float = 0.0) -> float:
    if x is None:
        return default
    x = float(x)
    return x if isfinite(x) else default


def compute_ascent(profile: Sequence[ElevationPoint]) -> float:
    """Total positive elevation gain between consecutive profile points."""
    ascent = 0.0
    for prev, cur in zip(profile, profile[1:]):
        rise = _finite(cur.elevation_m) - _finite(prev.elevation_m)
        if rise > 0:
            ascent += rise
    return ascent


def estimate_calories(distance_m: float, ascent_m: float) -> int:
    km = _finite(distance_m) / 1000.0
    return round_half_up(km * KCAL_PER_KM + _finite(ascent_m) * KCAL_PER_ASCENT_M)


def minutes_slower(duration_s: float, all_durations: Sequence[float]) -> float:
    finite = [_finite(d) for d in all_durations if d is not None and isfinite(float(d))]
    fastest = min(finite) if finite else _finite(duration_s)
    return (_finite(duration_s) - fastest) / 60.0


def score_route(
    route: RouteAlternative,
    wind_tail_pct: float,
    characteristics: RouteCharacteristics,
    ascent_m: float,
    all_durations: Sequence[float],
    prefs: Optional[RoutePreferences] = None,
) -> float:
    """
    Composite score for one alternative; higher is better.

    A heuristic blend with fixed weights, not a normalised utility: the wind
    and road-danger terms can dominate for extreme inputs (a route that is
    all motorway loses 500 points).
    """
    prefs = prefs or RoutePreferences()
    c = characteristics

    score = BASE_SCORE
    score += _finite(wind_tail_pct) - 50.0
    score += c.cycle_lane_pct * CYCLE_LANE_WEIGHT
    if prefs.prefer_scenic:
        score += c.scenic_pct * SCENIC_WEIGHT
    score -= c.a_road_pct * A_ROAD_WEIGHT
    score -= c.motorway_pct * MOTORWAY_WEIGHT
    score -= _finite(ascent_m) / ASCENT_M_PER_POINT
    score -= minutes_slower(route.duration, all_durations) * SLOWER_MINUTE_WEIGHT

    if prefs.avoid_a_roads and c.a_road_pct > AVOID_A_ROAD_THRESHOLD_PCT:
        score -= AVOID_A_ROAD_PENALTY

    return _finite(score)


def _reasons(
    wind: WindImpact,
    c: RouteCharacteristics,
    ascent_m: float,
    slower_min: float,
    prefs: RoutePreferences,
) -> List[str]:
    reasons: List[str] = []
    if wind.tail > GOOD_WIND_PCT:
        reasons.append(f"Tailwind on {wind.tail}% of the route")
    elif wind.head >= 50:
        reasons.append(f"Headwind on {wind.head}% of the route")
    if c.cycle_lane_pct >= 30:
        reasons.append(f"Cycle infrastructure {c.cycle_lane_pct}%")
    if c.motorway_pct > 0:
        reasons.append(f"Motorway {c.motorway_pct}%")
    if c.a_road_pct > AVOID_A_ROAD_THRESHOLD_PCT:
        why = f"A-roads {c.a_road_pct}%"
        if prefs.avoid_a_roads:
            why += " (avoid A-roads penalty)"
        reasons.append(why)
    if prefs.prefer_scenic and c.scenic_pct > 0:
        reasons.append(f"Scenic {c.scenic_pct}%")
    if ascent_m >= 150:
        reasons.append(f"Climbs {ascent_m:.0f} m")
    if slower_min >= 1:
        reasons.append(f"{slower_min:.0f} min slower than fastest")
    return reasons


def score_alternative(
    route: RouteAlternative,
    wind: WindImpact,
    characteristics: RouteCharacteristics,
    ascent_m: float,
    all_durations: Sequence[float],
    prefs: Optional[RoutePreferences] = None,
    original_index: int = 0,
    wind_score: Optional[WindScore] = None,
) -> RouteScoreResult:
    """Score one alternative and package the explanation alongside the number."""
    prefs = prefs or RoutePreferences()
    ascent_m = _finite(ascent_m)
    slower = minutes_slower(route.duration, all_durations)
    composite = score_route(route, wind.tail, characteristics, ascent_m, all_durations, prefs)

    return RouteScoreResult(
        wind_percentage_tail=wind.tail,
        wind_percentage_head=wind.head,
        wind_percentage_cross=wind.cross,
        a_road_pct=characteristics.a_road_pct,
        motorway_pct=characteristics.motorway_pct,
        cycle_lane_pct=characteristics.cycle_lane_pct,
        scenic_pct=characteristics.scenic_pct,
        ascent_meters=ascent_m,
        composite_score=composite,
        reasons=_reasons(wind, characteristics, ascent_m, slower, prefs),
        wind_score=wind_score or WindScore(
            percentage=wind.tail, rating="Epic" if wind.tail > GOOD_WIND_PCT else "Grind"
        ),
        duration_delta_min=round(slower, 1),
        calories_kcal=estimate_calories(route.distance, ascent_m),
        original_index=original_index,
        route=route,
    )


def rank_routes(results: Sequence[RouteScoreResult]) -> List[RouteScoreResult]:
    """Best first; ties keep directions-service order.  Index 0 is the recommendation."""
    ordered = sorted(results, key=lambda r: r.composite_score, reverse=True)
    return [r.model_copy(update={"rank": i}) for i, r in enumerate(ordered)]

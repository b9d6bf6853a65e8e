"""Geometry helpers on (lon, lat) coordinates: bearings, distances, line projection."""
from __future__ import annotations

from dataclasses import dataclass
from math import atan2, cos, degrees, floor, pi, radians, sin, sqrt
from typing import List, Optional, Sequence, Tuple

from shapely.geometry import LineString, Point

from cycle_route.core.errors import InvalidGeometry
from cycle_route.core.models import Coordinate

EARTH_RADIUS_M = 6_371_000.0

OFF_ROUTE_THRESHOLD_M = 50.0
TREND_LOOKBACK_MS = 4000
TREND_MIN_MOVE_M = 5.0
BEARING_TOLERANCE_DEG = 45


# ---------------------------------------------------------------------------
# Point-to-point
# ---------------------------------------------------------------------------

def distance_between(a: Coordinate, b: Coordinate) -> float:
    """Great-circle distance in metres between two WGS-84 points."""
    lon1, lat1 = a
    lon2, lat2 = b
    lat1r, lon1r, lat2r, lon2r = map(radians, [lat1, lon1, lat2, lon2])
    dlat = lat2r - lat1r
    dlon = lon2r - lon1r
    h = sin(dlat / 2) ** 2 + cos(lat1r) * cos(lat2r) * sin(dlon / 2) ** 2
    return EARTH_RADIUS_M * 2 * atan2(sqrt(h), sqrt(1 - h))


def bearing_between(a: Coordinate, b: Coordinate) -> float:
    """Initial bearing (degrees clockwise from true north), in [0, 360).

    Raises InvalidGeometry for identical points, whose bearing is undefined.
    """
    if a[0] == b[0] and a[1] == b[1]:
        raise InvalidGeometry(f"bearing undefined for identical points {a}")
    lon1, lat1 = a
    lon2, lat2 = b
    lat1r, lon1r, lat2r, lon2r = map(radians, [lat1, lon1, lat2, lon2])
    dlon = lon2r - lon1r
    x = sin(dlon) * cos(lat2r)
    y = cos(lat1r) * sin(lat2r) - sin(lat1r) * cos(lat2r) * cos(dlon)
    return (degrees(atan2(x, y)) + 360.0) % 360.0


def _interpolate_point(a: Coordinate, b: Coordinate, frac: float) -> Coordinate:
    """Linear interpolation between two geographic points (frac in [0,1])."""
    return (a[0] + frac * (b[0] - a[0]), a[1] + frac * (b[1] - a[1]))


# ---------------------------------------------------------------------------
# Polylines
# ---------------------------------------------------------------------------

def line_length(line: Sequence[Coordinate]) -> float:
    return sum(distance_between(line[i], line[i + 1]) for i in range(len(line) - 1))


def point_along(line: Sequence[Coordinate], distance_m: float) -> Coordinate:
    """Position ``distance_m`` metres along the line, clamped to its endpoints."""
    if not line:
        raise InvalidGeometry("empty line")
    if distance_m <= 0 or len(line) == 1:
        return tuple(line[0])

    travelled = 0.0
    for i in range(len(line) - 1):
        seg = distance_between(line[i], line[i + 1])
        if seg > 0 and travelled + seg >= distance_m:
            return _interpolate_point(line[i], line[i + 1], (distance_m - travelled) / seg)
        travelled += seg
    return tuple(line[-1])


@dataclass(frozen=True)
class LineProjection:
    distance_m: float      # shortest distance from the point to the line
    fraction: float        # 0..1 position of the closest point, by length
    segment_index: int     # segment (i, i+1) holding the closest point
    point: Coordinate      # closest point on the line


_M_PER_DEG = pi / 180.0 * EARTH_RADIUS_M


def _local_xy(origin: Coordinate, p: Coordinate) -> Tuple[float, float]:
    # equirectangular plane around origin, metres
    return (p[0] - origin[0]) * _M_PER_DEG * cos(radians(origin[1])), (p[1] - origin[1]) * _M_PER_DEG


def _from_local_xy(origin: Coordinate, x: float, y: float) -> Coordinate:
    return origin[0] + x / (_M_PER_DEG * cos(radians(origin[1]))), origin[1] + y / _M_PER_DEG


def project_onto_line(point: Coordinate, line: Sequence[Coordinate]) -> LineProjection:
    """Closest point on a polyline to ``point``.

    Each segment is snapped on its own flat plane around its start vertex;
    distances are haversine to the snapped point and the nearest segment wins.
    """
    if line is None or len(line) < 2:
        raise InvalidGeometry("need at least 2 coordinates to project onto a line")

    seg_lengths = [distance_between(line[i], line[i + 1]) for i in range(len(line) - 1)]
    total = sum(seg_lengths)

    best: Optional[LineProjection] = None
    travelled = 0.0
    for i, seg_m in enumerate(seg_lengths):
        origin = tuple(line[i])
        seg = LineString([(0.0, 0.0), _local_xy(origin, line[i + 1])])
        if seg.length > 0:
            along = seg.project(Point(_local_xy(origin, point)))
            snapped = seg.interpolate(along)
            t = along / seg.length
            closest = _from_local_xy(origin, snapped.x, snapped.y)
        else:
            t, closest = 0.0, origin
        d = distance_between(point, closest)
        if best is None or d < best.distance_m:
            best = LineProjection(
                distance_m=d,
                fraction=(travelled + t * seg_m) / total if total > 0 else 0.0,
                segment_index=i,
                point=closest,
            )
        travelled += seg_m
    return best


def point_to_line_distance(point: Coordinate, line: Sequence[Coordinate]) -> float:
    return project_onto_line(point, line).distance_m


def is_off_route(
    point: Coordinate,
    line: Sequence[Coordinate],
    threshold_m: float = OFF_ROUTE_THRESHOLD_M,
) -> bool:
    return point_to_line_distance(point, line) > threshold_m


# ---------------------------------------------------------------------------
# Reroute heading
# ---------------------------------------------------------------------------

def trend_bearing(
    history: List[Tuple[Coordinate, float]],
    now_ms: float,
    last_heading: Optional[float] = None,
) -> float:
    """
    Direction of travel for a reroute request.

    ``history`` is ``[(coord, timestamp_ms), ...]`` with the latest fix last.
    Uses the fix closest to 4 s ago when it is more than 5 m from the latest
    fix; otherwise falls back to the device heading, then 0.
    """
    if history:
        current = history[-1][0]
        target = now_ms - TREND_LOOKBACK_MS
        prev = min(history, key=lambda h: abs(h[1] - target))[0]
        if distance_between(prev, current) > TREND_MIN_MOVE_M:
            return bearing_between(prev, current)
    if last_heading is not None:
        return float(last_heading) % 360.0
    return 0.0


def bearings_param(bearing: float, n_waypoints: int) -> str:
    """Directions ``bearings`` value constraining only the first waypoint, e.g. ``"90,45;;"``."""
    deg = int(floor(bearing + 0.5))
    return f"{deg},{BEARING_TOLERANCE_DEG}" + ";" * max(0, n_waypoints - 1)

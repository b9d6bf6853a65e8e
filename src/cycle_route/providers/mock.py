from __future__ import annotations

import math
from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence

from cycle_route.core.errors import CollaboratorUnavailable
from cycle_route.core.geo import line_length
from cycle_route.core.models import (
    Coordinate,
    ElevationPoint,
    RouteAlternative,
    RouteLeg,
    StepAnnotation,
    WeatherObservation,
)
from cycle_route.providers.base import (
    DirectionsProvider,
    ElevationProvider,
    WeatherProvider,
    elevation_sample_points,
)

MOCK_SPEED_MPS = 5.0  # ~18 km/h

# Road names for each synthesized variant: direct main road, canal/park detour, wide fast detour
_VARIANT_STEPS = (
    ("High Street", "A10", "Station Road"),
    ("Regent's Canal Towpath", "Victoria Park Road", "Greenway"),
    ("Forest Road", "M11", "Lakeside Drive"),
)


def _bowed_line(a: Coordinate, b: Coordinate, bow: float, n: int = 60) -> List[Coordinate]:
    """Polyline from a to b bent sideways by ``bow`` (fraction of the a-b span) at the middle."""
    dx, dy = b[0] - a[0], b[1] - a[1]
    out: List[Coordinate] = []
    for i in range(n + 1):
        t = i / n
        off = bow * math.sin(math.pi * t)
        out.append((a[0] + t * dx - off * dy, a[1] + t * dy + off * dx))
    return out


class MockDirectionsProvider(DirectionsProvider):
    """
    Deterministic fake directions so the pipeline runs end-to-end without APIs.

    Returns ``routes`` verbatim when given, otherwise synthesizes three
    alternatives per leg with different road mixes.
    """

    def __init__(self, routes: Optional[List[RouteAlternative]] = None, fail: bool = False):
        self.routes = routes
        self.fail = fail
        self.calls: List[Dict] = []

    def get_routes(
        self,
        waypoints: Sequence[Coordinate],
        avoid_highways: bool = False,
        bearings: Optional[str] = None,
    ) -> List[RouteAlternative]:
        self.calls.append({"waypoints": list(waypoints), "avoid_highways": avoid_highways, "bearings": bearings})
        if self.fail:
            raise CollaboratorUnavailable("directions", "mock failure")
        if self.routes is not None:
            return list(self.routes)

        out: List[RouteAlternative] = []
        for variant, bow in enumerate((0.0, 0.12, -0.2)):
            if avoid_highways and variant == 2:
                continue
            geometry: List[Coordinate] = []
            legs: List[RouteLeg] = []
            for a, b in zip(waypoints, waypoints[1:]):
                leg_line = _bowed_line(tuple(a), tuple(b), bow)
                geometry.extend(leg_line if not geometry else leg_line[1:])
                leg_len = line_length(leg_line)
                names = _VARIANT_STEPS[variant]
                legs.append(
                    RouteLeg(
                        steps=[
                            StepAnnotation(
                                name=name,
                                ref=name if name[:1] in ("A", "M") and name[1:].isdigit() else "",
                                distance=leg_len / len(names),
                            )
                            for name in names
                        ]
                    )
                )
            distance = line_length(geometry)
            out.append(
                RouteAlternative(
                    geometry=geometry,
                    distance=distance,
                    duration=distance / MOCK_SPEED_MPS,
                    legs=legs,
                )
            )
        return out


class MockWeatherProvider(WeatherProvider):
    """
    Fixed or position-dependent wind.  ``bearing=None`` behaves like a failing service.
    """

    def __init__(
        self,
        bearing: Optional[float] = 225.0,
        speed: float = 5.0,
        bearing_fn: Optional[Callable[[float, float, Optional[datetime]], Optional[float]]] = None,
    ):
        self.bearing = bearing
        self.speed = speed
        self.bearing_fn = bearing_fn
        self.calls: List[tuple] = []

    def weather_at(self, lat: float, lon: float, when: Optional[datetime] = None) -> Optional[WeatherObservation]:
        self.calls.append((lat, lon, when))
        bearing = self.bearing_fn(lat, lon, when) if self.bearing_fn else self.bearing
        if bearing is None:
            return None

        wiggle = math.sin((lat + lon) * 10)
        return WeatherObservation(
            bearing=float(bearing) % 360.0,
            speed=round(self.speed + wiggle, 2),
            gust=round(self.speed + 3 + abs(wiggle), 2),
            temperature=round(12 + 2 * wiggle, 1),
            humidity=70.0,
            timestamp=when,
            description="Partly Cloudy",
        )


class MockElevationProvider(ElevationProvider):
    """
    Terrain from a function of (lon, lat).  The default is rolling hills;
    ``fail=True`` raises like an unreachable service.
    """

    def __init__(
        self,
        height_fn: Optional[Callable[[float, float], float]] = None,
        fail: bool = False,
    ):
        self.height_fn = height_fn or (lambda lon, lat: 40.0 + 25.0 * math.sin((lon + lat) * 60.0))
        self.fail = fail

    def elevation_profile(self, geometry: Sequence[Coordinate]) -> List[ElevationPoint]:
        if self.fail:
            raise CollaboratorUnavailable("elevation", "mock failure")
        return [
            ElevationPoint(distance_km=dist_km, elevation_m=float(self.height_fn(*coord)), coord=coord)
            for dist_km, coord in elevation_sample_points(geometry)
        ]


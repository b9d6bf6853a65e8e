"""
Shared pytest fixtures for cycle-route tests.

Redis is always disabled so tests never depend on a running cache, and the
live providers are never constructed unless a test passes a fake client.
"""

from typing import List, Sequence, Tuple

import pytest

from cycle_route.cache.redis_client import reset_redis
from cycle_route.config import settings
from cycle_route.core.models import RouteAlternative, RouteLeg, StepAnnotation
from cycle_route.providers.base import Providers
from cycle_route.providers.mock import (
    MockDirectionsProvider,
    MockElevationProvider,
    MockWeatherProvider,
    _bowed_line,
)

# Trafalgar Square -> Hackney Wick
LONDON_START = (-0.1276, 51.5072)
LONDON_END = (-0.0235, 51.5454)


@pytest.fixture(autouse=True)
def _no_redis(monkeypatch):
    monkeypatch.setattr(settings, "redis_url", "")
    reset_redis()
    yield
    reset_redis()


def make_route(
    geometry: Sequence[Tuple[float, float]],
    steps: Sequence[Tuple[str, str, float]] = (),
    distance: float = None,
    duration: float = 3600.0,
) -> RouteAlternative:
    """Build an alternative from ``(name, ref, metres)`` step tuples."""
    step_models = [StepAnnotation(name=n, ref=r, distance=d) for n, r, d in steps]
    if distance is None:
        distance = sum(d for _, _, d in steps) or 1000.0
    return RouteAlternative(
        geometry=list(geometry),
        distance=distance,
        duration=duration,
        legs=[RouteLeg(steps=step_models)],
    )


def bowed(a, b, bow: float, n: int = 40) -> List[Tuple[float, float]]:
    return _bowed_line(a, b, bow, n)


@pytest.fixture
def london_routes() -> List[RouteAlternative]:
    """Three alternatives: A-road direct, canal detour, fast road with a motorway stretch."""
    return [
        make_route(
            bowed(LONDON_START, LONDON_END, 0.0),
            [("Strand", "", 4000), ("Commercial Road", "A13", 6000), ("Wick Road", "", 10000)],
            distance=20000,
            duration=3600,
        ),
        make_route(
            bowed(LONDON_START, LONDON_END, 0.15),
            [("Regent's Canal Towpath", "NCN 1", 14000), ("Victoria Park Road", "", 7500)],
            distance=21500,
            duration=3500,
        ),
        make_route(
            bowed(LONDON_START, LONDON_END, -0.25),
            [("Old Street", "", 8000), ("East Cross Route", "M11", 3000), ("Forest Road", "", 12000)],
            distance=23000,
            duration=4200,
        ),
    ]


@pytest.fixture
def mock_providers() -> Providers:
    return Providers(
        directions=MockDirectionsProvider(),
        weather=MockWeatherProvider(bearing=90.0),
        elevation=MockElevationProvider(),
    )

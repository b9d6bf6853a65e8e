"""End-to-end planning tests against fake collaborators."""

import threading
import time
from unittest.mock import MagicMock

import pytest

from conftest import LONDON_END, LONDON_START
from cycle_route.config import settings
from cycle_route.core.engine import (
    RequestTracker,
    plan_routes,
    request_fingerprint,
    reroute_request,
    route_wind_impact,
    summarize,
)
from cycle_route.core.errors import CollaboratorUnavailable, NoRouteFound, StaleRequestDiscarded
from cycle_route.core.models import PlanRequest, RoutePreferences
from cycle_route.providers.base import DirectionsProvider, Providers
from cycle_route.providers.mock import (
    MockDirectionsProvider,
    MockElevationProvider,
    MockWeatherProvider,
)
from cycle_route.providers.open_meteo import OpenMeteoElevationProvider


def _request(**prefs):
    return PlanRequest(waypoints=[LONDON_START, LONDON_END], preferences=RoutePreferences(**prefs))


def _providers(routes=None, weather=None, elevation=None, directions=None):
    return Providers(
        directions=directions or MockDirectionsProvider(routes=routes),
        weather=weather or MockWeatherProvider(bearing=90.0),
        elevation=elevation or MockElevationProvider(),
    )


# ---------------------------------------------------------------------------
# Full pipeline
# ---------------------------------------------------------------------------

class TestPlanRoutes:

    def test_london_three_alternatives_with_easterly(self, london_routes):
        providers = _providers(routes=london_routes)
        result = plan_routes(_request(), providers)

        assert len(result.routes) == 3
        scores = [r.composite_score for r in result.routes]
        assert scores == sorted(scores, reverse=True)
        assert [r.rank for r in result.routes] == [0, 1, 2]
        assert sorted(r.original_index for r in result.routes) == [0, 1, 2]
        for r in result.routes:
            total = r.wind_percentage_tail + r.wind_percentage_head + r.wind_percentage_cross
            assert 99 <= total <= 101
        assert result.wind_bearing_used == 90.0
        assert result.warnings == []

    def test_riding_east_into_easterly_is_mostly_headwind(self, london_routes):
        result = plan_routes(_request(), _providers(routes=london_routes))
        direct = next(r for r in result.routes if r.original_index == 0)
        assert direct.wind_percentage_head > direct.wind_percentage_tail

    def test_motorway_route_ranks_last(self, london_routes):
        result = plan_routes(_request(), _providers(routes=london_routes))
        assert result.routes[-1].original_index == 2
        assert result.routes[-1].motorway_pct > 0

    def test_canal_route_recommended_when_avoiding_a_roads(self, london_routes):
        result = plan_routes(_request(avoid_a_roads=True, prefer_scenic=True), _providers(routes=london_routes))
        assert result.recommended.original_index == 1
        assert result.recommended.recommended

    def test_wind_fetched_once_at_start(self, london_routes):
        weather = MockWeatherProvider(bearing=90.0)
        plan_routes(_request(), _providers(routes=london_routes, weather=weather))
        lon, lat = LONDON_START
        assert weather.calls == [(lat, lon, None)]

    def test_avoid_highways_forwarded(self):
        directions = MockDirectionsProvider()
        result = plan_routes(_request(avoid_highways=True), _providers(directions=directions))
        assert directions.calls[0]["avoid_highways"] is True
        assert len(result.routes) == 2
        assert all(r.motorway_pct == 0 for r in result.routes)

    def test_ascent_comes_from_elevation(self, london_routes):
        result = plan_routes(_request(), _providers(routes=london_routes))
        assert all(r.ascent_meters > 0 for r in result.routes)

    def test_summarize_rows(self, london_routes):
        rows = summarize(plan_routes(_request(), _providers(routes=london_routes)))
        assert [row["rank"] for row in rows] == [0, 1, 2]
        assert rows[0]["distance_km"] in (20.0, 21.5, 23.0)


# ---------------------------------------------------------------------------
# Fallbacks and errors
# ---------------------------------------------------------------------------

class TestFallbacks:

    def test_no_wind_scores_with_north(self, london_routes):
        result = plan_routes(_request(), _providers(routes=london_routes, weather=MockWeatherProvider(bearing=None)))
        assert result.wind_bearing_used == 0.0
        assert len(result.routes) == 3
        assert any("Wind" in w for w in result.warnings)

    def test_nan_wind_scores_with_north(self, london_routes):
        result = plan_routes(_request(), _providers(routes=london_routes, weather=MockWeatherProvider(bearing=float("nan"))))
        assert result.wind_bearing_used == 0.0
        assert any("Wind" in w for w in result.warnings)

    def test_no_elevation_means_zero_ascent(self, london_routes):
        result = plan_routes(_request(), _providers(routes=london_routes, elevation=MockElevationProvider(fail=True)))
        assert all(r.ascent_meters == 0.0 for r in result.routes)
        assert len([w for w in result.warnings if "Elevation" in w]) == 1

    @pytest.mark.parametrize(
        "answer",
        [
            lambda url, params: [1, 2, 3],
            lambda url, params: {"elevation": ["high"] * len(params["latitude"].split(","))},
        ],
    )
    def test_malformed_elevation_means_zero_ascent(self, london_routes, answer):
        client = MagicMock()
        client.get_json.side_effect = answer
        providers = _providers(routes=london_routes, elevation=OpenMeteoElevationProvider(client=client))

        result = plan_routes(_request(), providers)

        assert len(result.routes) == 3
        assert all(r.ascent_meters == 0.0 for r in result.routes)
        assert any("Elevation" in w for w in result.warnings)

    def test_directions_failure_propagates(self):
        providers = _providers(directions=MockDirectionsProvider(fail=True))
        with pytest.raises(CollaboratorUnavailable) as exc:
            plan_routes(_request(), providers)
        assert exc.value.collaborator == "directions"

    def test_no_alternatives(self):
        with pytest.raises(NoRouteFound):
            plan_routes(_request(), _providers(routes=[]))

    def test_directions_timeout(self, monkeypatch):
        class Slow(DirectionsProvider):
            def get_routes(self, waypoints, avoid_highways=False, bearings=None):
                time.sleep(0.5)
                return []

        monkeypatch.setattr(settings, "directions_timeout_s", 0.05)
        with pytest.raises(CollaboratorUnavailable):
            plan_routes(_request(), _providers(directions=Slow()))

    def test_waits_for_slow_elevation(self, london_routes):
        class SlowElevation(MockElevationProvider):
            def elevation_profile(self, geometry):
                time.sleep(0.05)
                return super().elevation_profile(geometry)

        result = plan_routes(_request(), _providers(routes=london_routes, elevation=SlowElevation()))
        assert all(r.ascent_meters > 0 for r in result.routes)


# ---------------------------------------------------------------------------
# Last request wins
# ---------------------------------------------------------------------------

class TestStaleRequests:

    def test_superseded_request_is_discarded(self, london_routes):
        tracker = RequestTracker()

        class Interrupting(DirectionsProvider):
            def get_routes(self, waypoints, avoid_highways=False, bearings=None):
                tracker.begin()  # rider moved a waypoint meanwhile
                return list(london_routes)

        with pytest.raises(StaleRequestDiscarded):
            plan_routes(_request(), _providers(directions=Interrupting()), tracker=tracker)

    def test_latest_request_is_published(self, london_routes):
        tracker = RequestTracker()
        result = plan_routes(_request(), _providers(routes=london_routes), tracker=tracker)
        assert len(result.routes) == 3

    def test_tokens_increase_across_threads(self):
        tracker = RequestTracker()
        tokens = []
        lock = threading.Lock()

        def grab():
            t = tracker.begin()
            with lock:
                tokens.append(t)

        threads = [threading.Thread(target=grab) for _ in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert sorted(tokens) == list(range(1, 21))
        assert tracker.is_current(20)
        assert not tracker.is_current(19)

    def test_fingerprint(self):
        assert request_fingerprint(_request()) == request_fingerprint(_request())
        assert request_fingerprint(_request()) != request_fingerprint(_request(avoid_a_roads=True))


# ---------------------------------------------------------------------------
# Reroute and detailed wind
# ---------------------------------------------------------------------------

class TestReroute:

    def test_starts_at_rider_heading_on(self):
        req = PlanRequest(waypoints=[LONDON_START, (-0.08, 51.52), LONDON_END])
        history = [((-0.1000, 51.5100), 0.0), ((-0.0990, 51.5100), 4000.0)]
        rerouted = reroute_request(req, (-0.0990, 51.5100), history)

        assert rerouted.waypoints[0] == (-0.0990, 51.5100)
        assert rerouted.waypoints[1:] == [(-0.08, 51.52), LONDON_END]
        assert rerouted.bearings == "90,45;;"
        assert req.bearings is None

    def test_rerouted_request_plans(self, london_routes):
        directions = MockDirectionsProvider(routes=london_routes)
        rerouted = reroute_request(_request(), LONDON_START, last_heading=45.0)
        plan_routes(rerouted, _providers(directions=directions))
        assert directions.calls[0]["bearings"] == "45,45;"

    def test_route_wind_impact_uses_samples(self, london_routes):
        weather = MockWeatherProvider(bearing=270.0)
        impact = route_wind_impact(london_routes[0].geometry, _providers(weather=weather))
        assert impact.tail > impact.head
        assert len(weather.calls) >= 3

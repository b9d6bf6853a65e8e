"""Tests for the live collaborator adapters with a faked HTTP layer."""

from unittest.mock import MagicMock, patch

import pytest
import requests

from cycle_route.core.errors import CollaboratorUnavailable
from cycle_route.providers.base import elevation_sample_points
from cycle_route.providers.factory import build_providers
from cycle_route.providers.http import HTTPClient
from cycle_route.providers.mapbox import MapboxDirectionsProvider, parse_routes
from cycle_route.providers.mock import (
    MockDirectionsProvider,
    MockElevationProvider,
    MockWeatherProvider,
)
from cycle_route.providers.open_meteo import OpenMeteoElevationProvider
from cycle_route.providers.xweather import XWeatherProvider, parse_observation

MAPBOX_BODY = {
    "code": "Ok",
    "routes": [
        {
            "distance": 2500.0,
            "duration": 600.0,
            "geometry": {"type": "LineString", "coordinates": [[-0.12, 51.5], [-0.11, 51.51], [-0.1, 51.52]]},
            "legs": [
                {
                    "steps": [
                        {
                            "name": "Regent's Canal Towpath",
                            "ref": "NCN 1",
                            "distance": 1500.0,
                            "maneuver": {"instruction": "Head east", "location": [-0.12, 51.5]},
                        },
                        {"name": "", "distance": 1000.0, "maneuver": {}},
                    ]
                }
            ],
        },
        {"distance": 10.0, "duration": 5.0, "geometry": {"coordinates": [[0.0, 0.0]]}, "legs": []},
    ],
}


def _http_error(status, body):
    resp = MagicMock()
    resp.status_code = status
    resp.json.return_value = body
    return requests.HTTPError(response=resp)


# ---------------------------------------------------------------------------
# Mapbox directions
# ---------------------------------------------------------------------------

class TestMapbox:

    def test_parse_routes_drops_degenerate_geometry(self):
        routes = parse_routes(MAPBOX_BODY)
        assert len(routes) == 1
        route = routes[0]
        assert route.geometry[0] == (-0.12, 51.5)
        assert route.steps[0].ref == "NCN 1"
        assert route.steps[0].instruction == "Head east"
        assert route.steps[1].name == ""

    def test_request_parameters(self):
        client = MagicMock()
        client.get_json.return_value = MAPBOX_BODY
        provider = MapboxDirectionsProvider(token="tok", client=client)

        routes = provider.get_routes([(-0.12, 51.5), (-0.1, 51.52)], avoid_highways=True, bearings="90,45;")

        assert len(routes) == 1
        url = client.get_json.call_args.args[0]
        params = client.get_json.call_args.kwargs["params"]
        assert url.endswith("/-0.12,51.5;-0.1,51.52")
        assert params["alternatives"] == "true"
        assert params["geometries"] == "geojson"
        assert params["overview"] == "full"
        assert params["steps"] == "true"
        assert params["exclude"] == "motorway"
        assert params["bearings"] == "90,45;"
        assert client.get_json.call_args.kwargs["tries"] == 1

    def test_no_exclude_by_default(self):
        client = MagicMock()
        client.get_json.return_value = MAPBOX_BODY
        MapboxDirectionsProvider(token="tok", client=client).get_routes([(0, 0), (1, 1)])
        params = client.get_json.call_args.kwargs["params"]
        assert "exclude" not in params
        assert "bearings" not in params

    def test_no_route_is_empty(self):
        client = MagicMock()
        client.get_json.side_effect = _http_error(422, {"code": "NoRoute", "message": "No route found"})
        assert MapboxDirectionsProvider(token="tok", client=client).get_routes([(0, 0), (1, 1)]) == []

    def test_no_route_code_in_ok_response(self):
        client = MagicMock()
        client.get_json.return_value = {"code": "NoSegment", "routes": []}
        assert MapboxDirectionsProvider(token="tok", client=client).get_routes([(0, 0), (1, 1)]) == []

    @pytest.mark.parametrize(
        "error",
        [requests.ConnectionError("down"), requests.ReadTimeout("slow"), _http_error(500, {"message": "oops"})],
    )
    def test_failures_are_unavailable(self, error):
        client = MagicMock()
        client.get_json.side_effect = error
        with pytest.raises(CollaboratorUnavailable):
            MapboxDirectionsProvider(token="tok", client=client).get_routes([(0, 0), (1, 1)])

    def test_missing_token(self):
        with pytest.raises(CollaboratorUnavailable):
            MapboxDirectionsProvider(token="", client=MagicMock()).get_routes([(0, 0), (1, 1)])


# ---------------------------------------------------------------------------
# Xweather
# ---------------------------------------------------------------------------

OB = {
    "timestamp": 1781424000,
    "tempC": 14.0,
    "humidity": 71,
    "windSpeedMPS": 6.2,
    "windDirDEG": 90,
    "windGustMPS": 9.3,
    "feelslikeC": 12.5,
    "weatherPrimary": "Mostly Cloudy",
    "icon": "mcloudy.png",
}


class TestXweather:

    def test_parse_observation(self):
        obs = parse_observation(OB)
        assert obs.bearing == 90.0
        assert obs.speed == pytest.approx(6.2)
        assert obs.gust == pytest.approx(9.3)
        assert obs.description == "Mostly Cloudy"
        assert obs.timestamp.year == 2026

    def test_parse_missing_fields(self):
        obs = parse_observation({"windDirDEG": None, "tempC": "n/a"})
        assert obs.bearing is None
        assert obs.temperature is None

    def test_parse_non_finite_is_missing(self):
        obs = parse_observation({"windDirDEG": "NaN", "windSpeedMPS": "inf"})
        assert obs.bearing is None
        assert obs.speed is None

    def test_current_observation(self):
        client = MagicMock()
        client.get_json.return_value = {"success": True, "response": {"ob": OB}}
        provider = XWeatherProvider(client_id="id", client_secret="secret", client=client)

        obs = provider.weather_at(51.5, -0.12)

        assert obs.bearing == 90.0
        assert "/observations/51.5,-0.12" in client.get_json.call_args.args[0]
        assert client.get_json.call_args.kwargs["params"]["units"] == "metric"

    def test_forecast_period(self):
        from datetime import datetime, timezone

        client = MagicMock()
        client.get_json.return_value = {"success": True, "response": [{"periods": [OB]}]}
        provider = XWeatherProvider(client_id="id", client_secret="secret", client=client)

        obs = provider.weather_at(51.5, -0.12, datetime(2026, 6, 14, 9, tzinfo=timezone.utc))

        assert obs.speed == pytest.approx(6.2)
        params = client.get_json.call_args.kwargs["params"]
        assert params["filter"] == "1hr"
        assert params["limit"] == 1

    def test_failure_is_none(self):
        client = MagicMock()
        client.get_json.side_effect = requests.ConnectionError("down")
        provider = XWeatherProvider(client_id="id", client_secret="secret", client=client)
        assert provider.weather_at(51.5, -0.12) is None

    def test_unsuccessful_response_is_none(self):
        client = MagicMock()
        client.get_json.return_value = {"success": False, "error": {"code": "invalid_location"}}
        provider = XWeatherProvider(client_id="id", client_secret="secret", client=client)
        assert provider.weather_at(51.5, -0.12) is None

    def test_missing_credentials(self):
        client = MagicMock()
        provider = XWeatherProvider(client_id="", client_secret="", client=client)
        assert provider.weather_at(51.5, -0.12) is None
        client.get_json.assert_not_called()

    def test_weather_along_keeps_order(self):
        weather = MockWeatherProvider(bearing_fn=lambda lat, lon, when: lat * 10)
        out = weather.weather_along([(1.0, 0.0, None), (2.0, 0.0, None), (3.0, 0.0, None)])
        assert [o.bearing for o in out] == [10.0, 20.0, 30.0]


# ---------------------------------------------------------------------------
# Open-Meteo elevation
# ---------------------------------------------------------------------------

class TestOpenMeteo:

    def test_profile_batches_requests(self):
        client = MagicMock()
        client.get_json.side_effect = lambda url, params: {
            "elevation": [10.0] * len(params["latitude"].split(","))
        }
        geometry = [(i * 0.001, 51.5) for i in range(150)]

        profile = OpenMeteoElevationProvider(client=client).elevation_profile(geometry)

        assert len(profile) == 150
        assert client.get_json.call_count == 2
        assert profile[0].distance_km == 0.0
        assert profile[-1].distance_km > profile[1].distance_km

    def test_malformed_response(self):
        client = MagicMock()
        client.get_json.return_value = {"error": True, "reason": "bad"}
        with pytest.raises(CollaboratorUnavailable):
            OpenMeteoElevationProvider(client=client).elevation_profile([(0.0, 0.0), (0.01, 0.0)])

    @pytest.mark.parametrize("body", [["not", "a", "dict"], {"elevation": ["high", "low"]}])
    def test_unusable_body_is_unavailable(self, body):
        client = MagicMock()
        client.get_json.return_value = body
        with pytest.raises(CollaboratorUnavailable):
            OpenMeteoElevationProvider(client=client).elevation_profile([(0.0, 0.0), (0.01, 0.0)])

    def test_network_failure(self):
        client = MagicMock()
        client.get_json.side_effect = requests.ReadTimeout("slow")
        with pytest.raises(CollaboratorUnavailable):
            OpenMeteoElevationProvider(client=client).elevation_profile([(0.0, 0.0), (0.01, 0.0)])

    def test_sample_points_capped(self):
        samples = elevation_sample_points([(i * 0.0001, 0.0) for i in range(250)], max_points=100)
        assert len(samples) == 125
        kms = [km for km, _ in samples]
        assert kms == sorted(kms)

    def test_sample_points_clamp_latitude(self):
        samples = elevation_sample_points([(0.0, 89.0), (0.0, 89.5)])
        assert all(abs(lat) <= 85.0 for _, (_, lat) in samples)


# ---------------------------------------------------------------------------
# HTTP client and factory
# ---------------------------------------------------------------------------

class TestHTTPClient:

    def test_retries_timeouts(self):
        client = HTTPClient(user_agent="test", backoff_s=0.0, tries=3)
        ok = MagicMock()
        ok.json.return_value = {"ok": True}
        with patch.object(client.s, "get", side_effect=[requests.ReadTimeout("slow"), ok]) as get:
            assert client.get_json("https://example.test") == {"ok": True}
        assert get.call_count == 2

    def test_gives_up(self):
        client = HTTPClient(user_agent="test", backoff_s=0.0, tries=2)
        with patch.object(client.s, "get", side_effect=requests.ConnectionError("down")):
            with pytest.raises(requests.ConnectionError):
                client.get_json("https://example.test")

    def test_http_errors_not_retried(self):
        client = HTTPClient(user_agent="test", backoff_s=0.0, tries=3)
        bad = MagicMock()
        bad.raise_for_status.side_effect = _http_error(500, {})
        with patch.object(client.s, "get", return_value=bad) as get:
            with pytest.raises(requests.HTTPError):
                client.get_json("https://example.test")
        assert get.call_count == 1


class TestFactory:

    def test_mock_alias(self):
        providers = build_providers("mock")
        assert isinstance(providers.directions, MockDirectionsProvider)
        assert isinstance(providers.weather, MockWeatherProvider)
        assert isinstance(providers.elevation, MockElevationProvider)

    def test_mix_and_match(self):
        providers = build_providers("mock-directions+xweather+mock-elevation")
        assert isinstance(providers.weather, XWeatherProvider)

    def test_missing_slot(self):
        with pytest.raises(ValueError):
            build_providers("mock-directions+mock-weather")

    def test_unknown_token(self):
        with pytest.raises(ValueError):
            build_providers("mock+darksky")

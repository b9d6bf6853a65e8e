from __future__ import annotations

from cycle_route.providers.base import Providers

ALIASES = {
    "live": "mapbox+xweather+openmeteo",
    "mock": "mock-directions+mock-weather+mock-elevation",
}


def build_providers(provider_str: str = "live") -> Providers:
    """
    Build the collaborator set from a string like:
      "live"                          -> mapbox+xweather+openmeteo
      "mock"                          -> all fakes
      "mock-directions+xweather+openmeteo"  (mix and match per slot)
    """
    expanded = ALIASES.get(provider_str.strip().lower(), provider_str)
    tokens = [t.strip().lower() for t in expanded.split("+") if t.strip()]

    # Local imports so the mock path never touches network code
    slots = {}
    for t in tokens:
        if t == "mapbox":
            from cycle_route.providers.mapbox import MapboxDirectionsProvider
            slots["directions"] = MapboxDirectionsProvider()
        elif t == "xweather":
            from cycle_route.providers.xweather import XWeatherProvider
            slots["weather"] = XWeatherProvider()
        elif t in ("openmeteo", "open-meteo"):
            from cycle_route.providers.open_meteo import OpenMeteoElevationProvider
            slots["elevation"] = OpenMeteoElevationProvider()
        elif t == "mock-directions":
            from cycle_route.providers.mock import MockDirectionsProvider
            slots["directions"] = MockDirectionsProvider()
        elif t == "mock-weather":
            from cycle_route.providers.mock import MockWeatherProvider
            slots["weather"] = MockWeatherProvider()
        elif t == "mock-elevation":
            from cycle_route.providers.mock import MockElevationProvider
            slots["elevation"] = MockElevationProvider()
        else:
            raise ValueError(
                f"Unknown provider token: '{t}' (supported: live, mock, mapbox, xweather, openmeteo, "
                "mock-directions, mock-weather, mock-elevation)"
            )

    missing = [s for s in ("directions", "weather", "elevation") if s not in slots]
    if missing:
        raise ValueError(f"Provider string '{provider_str}' leaves {', '.join(missing)} unset")
    return Providers(**slots)

"""Redis key naming conventions for the cycle-route cache layer."""
from __future__ import annotations

import hashlib
from datetime import datetime
from typing import Optional, Sequence

_PREFIX = "cr"


def _digest(text: str) -> str:
    return hashlib.sha256(text.encode()).hexdigest()[:16]


# ── Weather ──────────────────────────────────────────────────────────────

def weather_obs(lat: float, lon: float) -> str:
    """Current observation near a point (~1 km grid)."""
    return f"{_PREFIX}:wx:obs:{lat:.2f},{lon:.2f}"


def weather_forecast(lat: float, lon: float, when: datetime) -> str:
    """Forecast period for a point, keyed to the hour."""
    return f"{_PREFIX}:wx:fc:{lat:.2f},{lon:.2f}:{when.strftime('%Y%m%d%H')}"


# ── Elevation ────────────────────────────────────────────────────────────

def elevation_batch(coords: Sequence[Sequence[float]]) -> str:
    text = ";".join(f"{c[0]:.5f},{c[1]:.5f}" for c in coords)
    return f"{_PREFIX}:elev:{_digest(text)}"


# ── Directions ───────────────────────────────────────────────────────────

def directions(
    waypoints: Sequence[Sequence[float]],
    avoid_highways: bool,
    bearings: Optional[str],
) -> str:
    text = ";".join(f"{w[0]:.6f},{w[1]:.6f}" for w in waypoints)
    text += f"|{int(avoid_highways)}|{bearings or ''}"
    return f"{_PREFIX}:dir:{_digest(text)}"

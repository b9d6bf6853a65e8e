from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional, Tuple

from pydantic import BaseModel, Field

# (longitude, latitude) in decimal degrees, WGS84
Coordinate = Tuple[float, float]

WindClass = Literal["tailwind", "headwind", "crosswind"]
TimeMode = Literal["depart", "arrive"]


class StepAnnotation(BaseModel):
    """One maneuver from the directions service.  Only the text and distance are scored."""

    name: str = ""
    ref: str = ""
    distance: float = 0.0  # metres

    # Navigation extras, not used by scoring
    instruction: Optional[str] = None
    location: Optional[Coordinate] = None


class RouteLeg(BaseModel):
    steps: List[StepAnnotation] = Field(default_factory=list)


class RouteAlternative(BaseModel):
    geometry: List[Coordinate]
    distance: float  # metres
    duration: float  # seconds
    legs: List[RouteLeg] = Field(default_factory=list)

    @property
    def steps(self) -> List[StepAnnotation]:
        return [s for leg in self.legs for s in leg.steps]


class WeatherObservation(BaseModel):
    bearing: Optional[float] = None  # wind-origin direction, degrees [0, 360)
    speed: Optional[float] = None    # m/s
    gust: Optional[float] = None     # m/s
    temperature: Optional[float] = None  # °C
    humidity: Optional[float] = None     # %
    timestamp: Optional[datetime] = None

    # Display-only extras
    feels_like: Optional[float] = None
    description: Optional[str] = None
    icon: Optional[str] = None


class ElevationPoint(BaseModel):
    distance_km: float
    elevation_m: float
    coord: Coordinate


class WindImpact(BaseModel):
    model_config = {"frozen": True}

    tail: int = 0
    head: int = 0
    cross: int = 100


class WindScore(BaseModel):
    model_config = {"frozen": True}

    percentage: int = 0
    rating: str = "N/A"


class RouteCharacteristics(BaseModel):
    model_config = {"frozen": True}

    a_road_pct: int = 0
    motorway_pct: int = 0
    cycle_lane_pct: int = 0
    scenic_pct: int = 0


class RoutePreferences(BaseModel):
    avoid_a_roads: bool = False
    prefer_scenic: bool = False
    avoid_highways: bool = False  # forwarded to directions as exclude=motorway
    pace_kmh: float = Field(default=20.0, gt=0)


class RouteScoreResult(BaseModel):
    model_config = {"frozen": True}

    wind_percentage_tail: int
    wind_percentage_head: int
    wind_percentage_cross: int
    a_road_pct: int
    motorway_pct: int
    cycle_lane_pct: int
    scenic_pct: int
    ascent_meters: float
    composite_score: float
    rank: int = 0

    # Explanation
    reasons: List[str] = Field(default_factory=list)
    wind_score: WindScore = Field(default_factory=WindScore)
    duration_delta_min: float = 0.0
    calories_kcal: int = 0
    original_index: int = 0
    route: Optional[RouteAlternative] = None

    @property
    def recommended(self) -> bool:
        return self.rank == 0


class PlanRequest(BaseModel):
    """Immutable snapshot of everything the UI owns that planning depends on."""

    model_config = {"frozen": True}

    waypoints: List[Coordinate] = Field(..., min_length=2)
    preferences: RoutePreferences = Field(default_factory=RoutePreferences)

    # Reroute constraint in directions syntax, e.g. "90,45;"
    bearings: Optional[str] = None

    # Schedule (used only by the timeline helpers)
    time_anchor: Optional[datetime] = None
    time_mode: TimeMode = "depart"


class PlanResult(BaseModel):
    routes: List[RouteScoreResult]
    warnings: List[str] = Field(default_factory=list)
    wind_bearing_used: float = 0.0
    fingerprint: str = ""

    @property
    def recommended(self) -> Optional[RouteScoreResult]:
        return self.routes[0] if self.routes else None

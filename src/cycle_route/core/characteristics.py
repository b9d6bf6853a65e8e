from __future__ import annotations

import re

from cycle_route.core.models import RouteAlternative, RouteCharacteristics
from cycle_route.core.wind import round_half_up

# Road numbers are upper-case in UK signage ("A406", "M25"); "a1" is not a road class.
A_ROAD_RE = re.compile(r"\bA\d+\b")
MOTORWAY_RE = re.compile(r"\bM\d+\b")

CYCLE_KEYWORDS = ("cycle", "path", "greenway", "towpath")
CYCLE_REF_KEYWORDS = ("ncn",)  # National Cycle Network
SCENIC_KEYWORDS = ("park", "forest", "wood", "common", "trail", "river", "canal", "lake")


def is_a_road(name: str, ref: str) -> bool:
    return bool(A_ROAD_RE.search(ref) or A_ROAD_RE.search(name))


def is_motorway(name: str, ref: str) -> bool:
    return bool(MOTORWAY_RE.search(ref) or MOTORWAY_RE.search(name))


def is_cycle_friendly(name: str, ref: str) -> bool:
    lname, lref = name.lower(), ref.lower()
    if any(k in lname or k in lref for k in CYCLE_KEYWORDS):
        return True
    return any(k in lref for k in CYCLE_REF_KEYWORDS)


def is_scenic(name: str) -> bool:
    lname = name.lower()
    return any(k in lname for k in SCENIC_KEYWORDS)


def analyze_route_characteristics(route: RouteAlternative) -> RouteCharacteristics:
    """
    Percent of route distance on A-roads, motorways, cycle infrastructure and
    scenic ways, judged from step names/refs.

    A step can count towards several categories, so the four figures are
    independent and may add up to more than 100.
    """
    total = route.distance or 1.0
    a_road = motorway = cycle = scenic = 0.0

    for step in route.steps:
        d = step.distance or 0.0
        name = step.name or ""
        ref = step.ref or ""

        if is_a_road(name, ref):
            a_road += d
        if is_motorway(name, ref):
            motorway += d
        if is_cycle_friendly(name, ref):
            cycle += d
        if is_scenic(name):
            scenic += d

    return RouteCharacteristics(
        a_road_pct=round_half_up(a_road / total * 100),
        motorway_pct=round_half_up(motorway / total * 100),
        cycle_lane_pct=round_half_up(cycle / total * 100),
        scenic_pct=round_half_up(scenic / total * 100),
    )

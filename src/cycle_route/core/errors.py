"""Error taxonomy for the scoring core.

Only ``NoRouteFound`` and an unavailable directions service ever reach the
rider.  Everything else is recovered where it is raised.
"""
from __future__ import annotations


class CycleRouteError(Exception):
    """Base class for all planner errors."""


class InvalidGeometry(CycleRouteError, ValueError):
    """Fewer than two coordinates, or a zero-length segment where a bearing is needed."""


class CollaboratorUnavailable(CycleRouteError):
    """A directions/weather/elevation call failed or timed out."""

    def __init__(self, collaborator: str, reason: str = ""):
        self.collaborator = collaborator
        self.reason = reason
        msg = f"{collaborator} unavailable"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class NoRouteFound(CycleRouteError):
    """The directions service answered, but with zero alternatives."""


class StaleRequestDiscarded(CycleRouteError):
    """A newer planning request superseded this one; drop its results."""

    def __init__(self, fingerprint: str, token: int, latest: int):
        self.fingerprint = fingerprint
        self.token = token
        self.latest = latest
        super().__init__(f"request {token} ({fingerprint}) superseded by {latest}")

"""Preconditions checked before running the projection or the optimizer."""
from __future__ import annotations

import math
from numbers import Integral

from .models import ScenarioInput


class InvalidInput(ValueError):
    """Raised when a scenario violates a precondition of the engine."""


def validate_scenario(scenario: ScenarioInput) -> None:
    """Reject scenarios the year loop cannot handle.

    Only structural preconditions are enforced: the horizon must be a
    non-negative integer and the overhaul interval strictly positive.
    Negative rates and prices are legitimate (compounding growth) and go
    through unchanged.
    """

    years = scenario.years
    if isinstance(years, bool) or not isinstance(years, Integral):
        raise InvalidInput(f"years must be an integer, got {years!r}")
    if years < 0:
        raise InvalidInput(f"years must be >= 0, got {years}")

    interval = scenario.overhaul_interval_distance
    if interval is ... or interval is None:
        raise InvalidInput("overhaul_interval_distance is missing")
    interval = float(interval)
    if math.isnan(interval) or interval <= 0.0:
        raise InvalidInput(f"overhaul_interval_distance must be > 0, got {interval}")

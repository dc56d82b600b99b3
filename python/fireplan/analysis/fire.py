"""FIRE reporting metrics derived from a simulation result.

The FIRE number never enters the simulation itself. These helpers compare
the percentile bands against it for display and scenario comparison.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import numpy as np

from fireplan.analysis.statistics import percentile_rank

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from fireplan.simulation.params import SimulationParams, SimulationResult

SOLID_SUCCESS_RATE = 0.85
MODERATE_SUCCESS_RATE = 0.70


def fire_year(
    result: SimulationResult,
    fire_number: float,
    start_calendar_year: int = 0,
    band: str = "p50",
) -> int | None:
    """Find the first calendar year a percentile band reaches the FIRE number.

    Args:
        result: Simulation result.
        fire_number: Target portfolio value.
        start_calendar_year: Calendar year of simulated year 0.
        band: Percentile band key, e.g. "p50" or "p25".

    Returns:
        The calendar year, or None if the band never reaches the target.

    """
    for offset, value in enumerate(result.percentiles[band]):
        if value >= fire_number:
            return start_calendar_year + offset
    return None


def conservative_fire_year(
    result: SimulationResult,
    fire_number: float,
    start_calendar_year: int = 0,
) -> int | None:
    """Same as :func:`fire_year` on the 25th percentile band."""
    return fire_year(result, fire_number, start_calendar_year, band="p25")


def final_value_percentile_rank(
    final_values: NDArray[np.float64],
    fire_number: float,
) -> float:
    """Percentile rank (0-100) of the FIRE number among final trial values."""
    return percentile_rank(np.asarray(final_values, dtype=np.float64), fire_number)


def success_rating(success_rate: float) -> str:
    """Classify a success rate as "solid", "moderate" or "concerning"."""
    if success_rate >= SOLID_SUCCESS_RATE:
        return "solid"
    if success_rate >= MODERATE_SUCCESS_RATE:
        return "moderate"
    return "concerning"


def summarize(result: SimulationResult, params: SimulationParams) -> dict[str, Any]:
    """Build the headline numbers for one scenario.

    Args:
        result: Simulation result.
        params: The parameters that produced it.

    Returns:
        Dict with success_rate, rating, median_final_value,
        p10_final_value, fire_year and conservative_fire_year.

    """
    return {
        "success_rate": result.success_rate,
        "rating": success_rating(result.success_rate),
        "median_final_value": result.median_final_value,
        "p10_final_value": result.percentiles["p10"][-1],
        "fire_year": fire_year(result, params.fire_number, params.start_calendar_year),
        "conservative_fire_year": conservative_fire_year(
            result, params.fire_number, params.start_calendar_year
        ),
    }


def chart_rows(
    result: SimulationResult,
    start_calendar_year: int = 0,
) -> list[dict[str, float]]:
    """Reshape percentile bands into one row per year for fan charts."""
    keys = list(result.percentiles)
    n_points = len(result.percentiles[keys[0]])
    return [
        {
            "year": start_calendar_year + offset,
            **{key: result.percentiles[key][offset] for key in keys},
        }
        for offset in range(n_points)
    ]

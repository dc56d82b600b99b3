"""Monte Carlo simulation engine.

Projects a household portfolio forward under normally distributed annual
returns, a contribution/withdrawal policy that switches at retirement,
inflation, and user-defined life events. Trials are vectorized with NumPy:
one row per trial, one column per year.

Default: 10,000 trials. Percentile bands use nearest rank, so every band
value is a value some trial actually produced.

"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

from fireplan.analysis.statistics import (
    nearest_rank_percentiles,
    normal_returns,
    portfolio_moments,
)
from fireplan.errors import ComputationFailureError
from fireplan.simulation.life_events import build_cash_flow_schedule
from fireplan.simulation.params import SimulationParams, SimulationResult

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from fireplan.analysis.statistics import NormalSource
    from fireplan.simulation.life_events import CashFlowSchedule

logger = logging.getLogger(__name__)

_PERCENTILE_LEVELS = {"p10": 0.10, "p25": 0.25, "p50": 0.50, "p75": 0.75, "p90": 0.90}


@dataclass(frozen=True)
class TrialPaths:
    """Raw trial output before aggregation.

    Attributes:
        portfolio_values: Array of shape (n_trials, years+1), clamped at 0.
        survived: Boolean array of shape (n_trials,), False for trials that
            hit a non-positive balance at any point.

    """

    portfolio_values: NDArray[np.float64]
    survived: NDArray[np.bool_]


def simulate(
    params: SimulationParams,
    seed: int | None = None,
    rng: NormalSource | None = None,
) -> SimulationResult:
    """Run a Monte Carlo projection and summarize it.

    Args:
        params: Simulation parameters.
        seed: Random seed for reproducibility. Ignored when rng is given.
        rng: Source of standard-normal draws. Defaults to
            ``np.random.default_rng(seed)``.

    Returns:
        Percentile bands for years 0..N, success rate, and median final value.

    Raises:
        InvalidParametersError: If params fail validation. No trial runs.
        ComputationFailureError: If the run produces non-finite values or
            runs out of memory.

    """
    return aggregate(simulate_paths(params, seed=seed, rng=rng))


def simulate_paths(
    params: SimulationParams,
    seed: int | None = None,
    rng: NormalSource | None = None,
) -> TrialPaths:
    """Run every trial and return the raw year-by-year paths.

    Args:
        params: Simulation parameters.
        seed: Random seed for reproducibility. Ignored when rng is given.
        rng: Source of standard-normal draws.

    Returns:
        TrialPaths with one row per trial.

    """
    params.validate()
    started = time.perf_counter()

    schedule = build_cash_flow_schedule(params)
    mean, std = portfolio_moments(params.equity_pct, params.bond_pct)
    generator = rng if rng is not None else np.random.default_rng(seed)

    try:
        returns = normal_returns(
            generator,
            n_samples=params.num_simulations,
            n_years=params.years,
            mean=mean,
            std=std,
        )
        trials = _run_trials(params.starting_portfolio, returns, schedule)
    except MemoryError as exc:
        msg = (
            f"Out of memory running {params.num_simulations} trials "
            f"over {params.years} years"
        )
        raise ComputationFailureError(msg) from exc

    logger.debug(
        "Simulated %d trials over %d years in %.3fs",
        params.num_simulations,
        params.years,
        time.perf_counter() - started,
    )
    return trials


def aggregate(trials: TrialPaths) -> SimulationResult:
    """Fold trial paths into percentile bands and a success rate.

    Args:
        trials: Output of :func:`simulate_paths`.

    Returns:
        The summarized SimulationResult.

    """
    values = trials.portfolio_values
    bands = nearest_rank_percentiles(values, list(_PERCENTILE_LEVELS.values()))
    percentiles = {key: bands[level].tolist() for key, level in _PERCENTILE_LEVELS.items()}

    return SimulationResult(
        percentiles=percentiles,
        success_rate=float(np.count_nonzero(trials.survived)) / len(trials.survived),
        median_final_value=percentiles["p50"][-1],
    )


def _run_trials(
    starting_portfolio: float,
    returns: NDArray[np.float64],
    schedule: CashFlowSchedule,
) -> TrialPaths:
    """Step every trial through the horizon.

    A trial fails the first year its balance is <= 0, checked before
    clamping. From then on it stays at 0 even if later cash flows are
    positive.

    """
    n_trials, n_years = returns.shape

    portfolio_values = np.empty((n_trials, n_years + 1), dtype=np.float64)
    portfolio_values[:, 0] = starting_portfolio

    portfolio = np.full(n_trials, starting_portfolio, dtype=np.float64)
    survived = np.ones(n_trials, dtype=np.bool_)

    with np.errstate(over="ignore", invalid="ignore"):
        for yr in range(n_years):
            grown = portfolio * (1.0 + returns[:, yr])
            updated = grown + schedule.contributions[yr] - schedule.expenses[yr]
            if not np.all(np.isfinite(updated[survived])):
                msg = f"Non-finite portfolio value in simulated year {yr + 1}"
                raise ComputationFailureError(msg)

            survived &= updated > 0.0
            portfolio = np.where(survived, updated, 0.0)
            portfolio_values[:, yr + 1] = portfolio

    return TrialPaths(portfolio_values=portfolio_values, survived=survived)

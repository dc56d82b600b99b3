"""Statistical building blocks for the projection engine.

Provides the fixed two-asset return model, standard-normal return draws,
nearest-rank percentile bands, and percentile ranking.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, Protocol

import numpy as np
from scipy import stats

if TYPE_CHECKING:
    from collections.abc import Sequence

    from numpy.typing import NDArray

# Annualized return model (fixed, not calibrated to market data)
EQUITY_MEAN = 0.10
EQUITY_STD = 0.17
BOND_MEAN = 0.04
BOND_STD = 0.06


class NormalSource(Protocol):
    """Anything that can produce standard-normal draws, e.g. ``np.random.Generator``."""

    def standard_normal(self, size: tuple[int, int]) -> NDArray[np.float64]: ...


def portfolio_moments(equity_pct: float, bond_pct: float) -> tuple[float, float]:
    """Blend the equity and bond return models into one portfolio model.

    Assets are treated as uncorrelated, so variances add.

    Args:
        equity_pct: Equity weight in [0, 1].
        bond_pct: Bond weight in [0, 1].

    Returns:
        Tuple of (mean, standard deviation) of the annual portfolio return.

    """
    mean = equity_pct * EQUITY_MEAN + bond_pct * BOND_MEAN
    std = math.sqrt((equity_pct * EQUITY_STD) ** 2 + (bond_pct * BOND_STD) ** 2)
    return mean, std


def normal_returns(
    rng: NormalSource,
    n_samples: int,
    n_years: int,
    mean: float,
    std: float,
) -> NDArray[np.float64]:
    """Generate normally distributed annual return sequences.

    Every draw is independent across samples and years.

    Args:
        rng: Source of standard-normal variates.
        n_samples: Number of return sequences (trials).
        n_years: Length of each sequence in years.
        mean: Mean annual return.
        std: Standard deviation of the annual return.

    Returns:
        NDArray of shape (n_samples, n_years).

    """
    z = np.asarray(rng.standard_normal((n_samples, n_years)), dtype=np.float64)
    return mean + std * z


def nearest_rank_percentiles(
    paths: NDArray[np.float64],
    levels: Sequence[float],
) -> dict[float, NDArray[np.float64]]:
    """Compute per-column nearest-rank percentiles.

    Each column is sorted ascending and the value at zero-based index
    ``floor(n_rows * p)`` is taken. No interpolation, so every band value
    is one of the observed values.

    Args:
        paths: Array of shape (n_rows, n_cols), one row per trial.
        levels: Percentile levels as fractions in [0, 1).

    Returns:
        Dict mapping each level to an array of shape (n_cols,).

    Raises:
        ValueError: If paths has no rows or a level is outside [0, 1).

    """
    n_rows = paths.shape[0]
    if n_rows == 0:
        msg = "paths must contain at least one row"
        raise ValueError(msg)

    ordered = np.sort(paths, axis=0)
    bands: dict[float, NDArray[np.float64]] = {}
    for p in levels:
        if not 0.0 <= p < 1.0:
            msg = f"percentile level must be in [0, 1), got {p}"
            raise ValueError(msg)
        bands[p] = ordered[math.floor(n_rows * p)]
    return bands


def percentile_rank(
    values: NDArray[np.float64],
    target: float,
) -> float:
    """Calculate the percentile rank of a target value within a distribution.

    Uses scipy.stats.percentileofscore with "rank" interpolation.

    Args:
        values: Array of observed values.
        target: The value to rank.

    Returns:
        Percentile rank as a float between 0 and 100.

    """
    return float(stats.percentileofscore(values, target, kind="rank"))

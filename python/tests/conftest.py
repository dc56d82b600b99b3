"""Shared pytest fixtures for fireplan tests."""

from __future__ import annotations

import numpy as np
import pytest
from numpy.typing import NDArray

from fireplan.simulation.params import SimulationParams


class FixedNormal:
    """Stand-in random source that always draws the same z value."""

    def __init__(self, z: float = 0.0) -> None:
        self.z = z
        self.calls = 0

    def standard_normal(self, size: tuple[int, int]) -> NDArray[np.float64]:
        self.calls += 1
        return np.full(size, self.z, dtype=np.float64)


@pytest.fixture
def zero_normal() -> FixedNormal:
    """Provide a random source whose draws are all exactly zero."""
    return FixedNormal(0.0)


@pytest.fixture
def fixed_normal() -> type[FixedNormal]:
    """Provide the fixed-draw random source class for custom z values."""
    return FixedNormal


@pytest.fixture
def reproducible_rng() -> np.random.Generator:
    """Provide a seeded random number generator for deterministic tests."""
    return np.random.default_rng(seed=42)


@pytest.fixture
def one_year_params() -> SimulationParams:
    """All-equity, single-year, single-trial scenario with a $1M portfolio."""
    return SimulationParams(
        starting_portfolio=1_000_000.0,
        annual_contribution=0.0,
        annual_spend=40_000.0,
        retirement_spend=40_000.0,
        equity_pct=1.0,
        bond_pct=0.0,
        inflation_rate=0.0,
        years=1,
        fire_number=1_000_000.0,
        num_simulations=1,
    )


@pytest.fixture
def household_params() -> SimulationParams:
    """A realistic mid-career household (the dashboard's default inputs)."""
    return SimulationParams(
        starting_portfolio=3_360_000.0,
        annual_contribution=85_000.0,
        annual_spend=120_000.0,
        retirement_spend=96_000.0,
        equity_pct=0.8,
        bond_pct=0.2,
        inflation_rate=0.03,
        years=25,
        fire_number=3_000_000.0,
        num_simulations=500,
    )

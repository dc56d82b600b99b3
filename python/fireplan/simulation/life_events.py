"""Life event modeling and the per-year cash-flow schedule.

Life events and the retirement switch depend only on the simulated year,
never on market returns, so the contribution and expense for every year
can be worked out once per run and shared by all trials.

Event effects, applied in list order within a year:

    quit, layoff   retire; contribution = severance (or partTimeIncome);
                   expense = retirement spend from this year on
    college        expense += annualCost - plan529
    windfall       contribution += amount
    expense        expense += amount
    purchase       expense += downPayment

"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING

import numpy as np

from fireplan.errors import InvalidParametersError

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from numpy.typing import NDArray

    from fireplan.simulation.params import LifeEvent, SimulationParams

DEFAULT_COLLEGE_COST = 55_000.0

EVENT_LABELS: dict[str, str] = {
    "quit": "Quit / Retire",
    "college": "Child College",
    "layoff": "Layoff",
    "windfall": "Windfall",
    "expense": "Major Expense",
    "purchase": "Home Purchase",
}

# Amounts the dashboard pre-fills when a user adds an event
_DEFAULT_EVENT_PARAMS: dict[str, dict[str, float]] = {
    "quit": {"severance": 0.0},
    "layoff": {"severance": 50_000.0},
    "college": {"annualCost": DEFAULT_COLLEGE_COST, "plan529": 20_000.0},
    "windfall": {"amount": 100_000.0},
    "expense": {"amount": 50_000.0},
    "purchase": {"downPayment": 200_000.0},
}


@dataclass(frozen=True)
class YearCashFlow:
    """Cash flows for one simulated year.

    Attributes:
        contribution: Amount added to the portfolio this year.
        expense: Amount withdrawn from the portfolio this year.
        retired: Retirement status once this year's events are applied.

    """

    contribution: float
    expense: float
    retired: bool


@dataclass(frozen=True)
class CashFlowSchedule:
    """Contributions and expenses for years 1..N (index 0 is year 1)."""

    contributions: NDArray[np.float64]
    expenses: NDArray[np.float64]
    retired: NDArray[np.bool_]


def default_event_params(event_type: str) -> dict[str, float]:
    """Return the default amounts for a new event of the given type.

    Args:
        event_type: One of the supported event types.

    Returns:
        A fresh dict of param name to amount.

    Raises:
        InvalidParametersError: If event_type is not recognized.

    """
    if event_type not in _DEFAULT_EVENT_PARAMS:
        msg = f"Unknown life event type '{event_type}'"
        raise InvalidParametersError(msg)
    return dict(_DEFAULT_EVENT_PARAMS[event_type])


def index_events(events: Iterable[LifeEvent]) -> dict[int, list[LifeEvent]]:
    """Group events by year, preserving their order within each year."""
    events_by_year: dict[int, list[LifeEvent]] = {}
    for event in events:
        events_by_year.setdefault(event.year, []).append(event)
    return events_by_year


def apply_event(
    event: LifeEvent,
    flow: YearCashFlow,
    retirement_spend: float,
) -> YearCashFlow:
    """Apply a single life event to a year's cash flows.

    Args:
        event: The event to apply.
        flow: Cash flows after the events applied so far this year.
        retirement_spend: Post-retirement yearly spend baseline.

    Returns:
        The updated cash flows.

    """
    params = event.params

    if event.type in ("quit", "layoff"):
        return YearCashFlow(
            contribution=_first(params, "severance", "partTimeIncome"),
            expense=retirement_spend,
            retired=True,
        )
    if event.type == "college":
        cost = params.get("annualCost", DEFAULT_COLLEGE_COST)
        covered = _first(params, "plan529", "plan529Annual")
        return replace(flow, expense=flow.expense + cost - covered)
    if event.type == "windfall":
        return replace(flow, contribution=flow.contribution + params.get("amount", 0.0))
    if event.type == "expense":
        return replace(flow, expense=flow.expense + params.get("amount", 0.0))
    if event.type == "purchase":
        return replace(flow, expense=flow.expense + params.get("downPayment", 0.0))

    msg = f"Unknown life event type '{event.type}'"
    raise InvalidParametersError(msg)


def build_cash_flow_schedule(params: SimulationParams) -> CashFlowSchedule:
    """Work out contributions and expenses for every simulated year.

    Before retirement the expense is the inflation-indexed spend baseline
    and the contribution is the annual contribution. After a quit or
    layoff event the contribution is zero and the expense is the fixed
    retirement spend. The pre-retirement baseline keeps inflating every
    year whether or not the household has retired.

    Args:
        params: Simulation parameters.

    Returns:
        Schedule arrays of length ``params.years``.

    """
    events_by_year = index_events(params.life_events)

    contributions = np.empty(params.years, dtype=np.float64)
    expenses = np.empty(params.years, dtype=np.float64)
    retired_flags = np.empty(params.years, dtype=np.bool_)

    spend = params.annual_spend
    retired = False
    for year in range(1, params.years + 1):
        if retired:
            flow = YearCashFlow(0.0, params.retirement_spend, retired=True)
        else:
            flow = YearCashFlow(params.annual_contribution, spend, retired=False)

        for event in events_by_year.get(params.start_calendar_year + year, []):
            flow = apply_event(event, flow, params.retirement_spend)

        retired = flow.retired
        contributions[year - 1] = flow.contribution
        expenses[year - 1] = flow.expense
        retired_flags[year - 1] = retired
        spend *= 1.0 + params.inflation_rate

    return CashFlowSchedule(
        contributions=contributions,
        expenses=expenses,
        retired=retired_flags,
    )


def _first(params: Mapping[str, float], *keys: str) -> float:
    """Return the first present param among keys, else 0."""
    for key in keys:
        if key in params:
            return params[key]
    return 0.0

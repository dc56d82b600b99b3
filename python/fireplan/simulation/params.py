"""Input and output value types for the projection engine.

``SimulationParams.from_dict`` accepts both the snake_case keys of the
sidecar protocol and the camelCase keys the dashboard UI sends, so either
side can build a request without a translation layer.

"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Any

from fireplan.errors import InvalidParametersError

if TYPE_CHECKING:
    from collections.abc import Mapping

EVENT_TYPES = frozenset({"quit", "layoff", "college", "purchase", "windfall", "expense"})

DEFAULT_NUM_SIMULATIONS = 10_000

PERCENTILE_KEYS = ("p10", "p25", "p50", "p75", "p90")

# camelCase (dashboard) -> snake_case (engine)
_CAMEL_KEYS = {
    "startingPortfolio": "starting_portfolio",
    "annualContribution": "annual_contribution",
    "annualSpend": "annual_spend",
    "retirementSpend": "retirement_spend",
    "equityPct": "equity_pct",
    "bondPct": "bond_pct",
    "inflationRate": "inflation_rate",
    "fireNumber": "fire_number",
    "lifeEvents": "life_events",
    "numSimulations": "num_simulations",
    "startCalendarYear": "start_calendar_year",
}

_REQUIRED_FIELDS = (
    "starting_portfolio",
    "annual_contribution",
    "annual_spend",
    "retirement_spend",
    "equity_pct",
    "bond_pct",
    "inflation_rate",
    "years",
)


@dataclass(frozen=True)
class LifeEvent:
    """A one-time or state-changing cash-flow shock.

    Attributes:
        id: Caller-assigned identifier.
        type: One of "quit", "layoff", "college", "purchase", "windfall",
            "expense".
        year: Calendar year the event applies to, matched against
            ``start_calendar_year + elapsed_years``.
        params: Event amounts keyed by name (e.g. "severance", "amount").
        label: Display label; ignored by the engine.

    """

    id: str
    type: str
    year: int
    params: Mapping[str, float] = field(default_factory=dict, hash=False)
    label: str = ""

    def __post_init__(self) -> None:
        """Validate the event and copy its params as floats."""
        if self.type not in EVENT_TYPES:
            msg = f"Unknown life event type '{self.type}' (event {self.id!r})"
            raise InvalidParametersError(msg)
        if isinstance(self.year, bool) or not isinstance(self.year, int):
            msg = f"Life event year must be an integer, got {self.year!r}"
            raise InvalidParametersError(msg)
        amounts: dict[str, float] = {}
        for key, value in self.params.items():
            if not _is_number(value):
                msg = f"Life event param '{key}' must be numeric, got {value!r}"
                raise InvalidParametersError(msg)
            amounts[key] = float(value)
        object.__setattr__(self, "params", amounts)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> LifeEvent:
        """Build an event from its wire form."""
        try:
            return cls(
                id=str(data.get("id", "")),
                type=data["type"],
                year=data["year"],
                params=data.get("params") or {},
                label=str(data.get("label", "")),
            )
        except KeyError as exc:
            msg = f"Life event is missing required field {exc.args[0]!r}"
            raise InvalidParametersError(msg) from exc

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "year": self.year,
            "params": dict(self.params),
            "label": self.label,
        }


@dataclass(frozen=True)
class SimulationParams:
    """Immutable input to a projection run.

    ``equity_pct + bond_pct == 1`` is the caller's responsibility and is
    not checked. ``fire_number`` is carried for reporting only.

    """

    starting_portfolio: float
    annual_contribution: float
    annual_spend: float
    retirement_spend: float
    equity_pct: float
    bond_pct: float
    inflation_rate: float
    years: int
    fire_number: float = 0.0
    life_events: tuple[LifeEvent, ...] = ()
    num_simulations: int = DEFAULT_NUM_SIMULATIONS
    start_calendar_year: int = 0

    def __post_init__(self) -> None:
        """Normalize the event sequence to a tuple."""
        object.__setattr__(self, "life_events", tuple(self.life_events))

    def validate(self) -> None:
        """Check the preconditions of a run.

        Raises:
            InvalidParametersError: If any field is missing, non-finite,
                or out of range.

        """
        for name in (*_REQUIRED_FIELDS, "fire_number"):
            value = getattr(self, name)
            if not _is_number(value) or not math.isfinite(value):
                msg = f"{name} must be a finite number, got {value!r}"
                raise InvalidParametersError(msg)
        for name in ("years", "num_simulations", "start_calendar_year"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                msg = f"{name} must be an integer, got {value!r}"
                raise InvalidParametersError(msg)
        if self.years < 1:
            msg = f"years must be >= 1, got {self.years}"
            raise InvalidParametersError(msg)
        if self.num_simulations < 1:
            msg = f"num_simulations must be >= 1, got {self.num_simulations}"
            raise InvalidParametersError(msg)
        if self.starting_portfolio < 0:
            msg = f"starting_portfolio must be >= 0, got {self.starting_portfolio}"
            raise InvalidParametersError(msg)
        for name in ("equity_pct", "bond_pct"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                msg = f"{name} must be in [0, 1], got {value}"
                raise InvalidParametersError(msg)
        for event in self.life_events:
            if not isinstance(event, LifeEvent):
                msg = f"life_events must contain LifeEvent values, got {event!r}"
                raise InvalidParametersError(msg)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> SimulationParams:
        """Build params from snake_case or camelCase wire keys.

        Args:
            data: Request mapping. Unknown keys are ignored.

        Returns:
            A SimulationParams with life events converted.

        Raises:
            InvalidParametersError: If a required field is missing.

        """
        normalized = {_CAMEL_KEYS.get(key, key): value for key, value in data.items()}
        missing = [name for name in _REQUIRED_FIELDS if name not in normalized]
        if missing:
            msg = f"Missing required simulation parameters: {', '.join(missing)}"
            raise InvalidParametersError(msg)

        events = tuple(
            event if isinstance(event, LifeEvent) else LifeEvent.from_dict(event)
            for event in normalized.get("life_events") or ()
        )
        kwargs = {
            name: normalized[name]
            for name in cls.__dataclass_fields__
            if name in normalized and name != "life_events"
        }
        return cls(**kwargs, life_events=events)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["life_events"] = [event.to_dict() for event in self.life_events]
        return data


@dataclass(frozen=True)
class SimulationResult:
    """Percentile bands and success rate of a projection run.

    Attributes:
        percentiles: Maps "p10", "p25", "p50", "p75", "p90" to one value
            per year, years 0..N inclusive.
        success_rate: Share of trials that never hit a non-positive balance.
        median_final_value: ``percentiles["p50"][-1]``.

    """

    percentiles: dict[str, list[float]]
    success_rate: float
    median_final_value: float

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> SimulationResult:
        """Rebuild a result from its ``to_dict`` form."""
        try:
            return cls(
                percentiles={
                    key: [float(value) for value in values]
                    for key, values in data["percentiles"].items()
                },
                success_rate=float(data["success_rate"]),
                median_final_value=float(data["median_final_value"]),
            )
        except KeyError as exc:
            msg = f"Simulation result is missing required field {exc.args[0]!r}"
            raise InvalidParametersError(msg) from exc

    def to_dict(self) -> dict[str, Any]:
        return {
            "percentiles": {key: list(values) for key, values in self.percentiles.items()},
            "success_rate": self.success_rate,
            "median_final_value": self.median_final_value,
        }


def _is_number(value: Any) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)

"""Error taxonomy for the projection engine.

Every failure a caller can observe from :func:`fireplan.simulation.monte_carlo.simulate`
or :class:`fireplan.simulation.dispatcher.SimulationDispatcher` is one of these,
whether the run happened inline or on a background worker.
"""

from __future__ import annotations


class SimulationError(Exception):
    """Base class for projection engine errors."""


class InvalidParametersError(SimulationError, ValueError):
    """Input is malformed or out of range. Raised before any trial runs."""


class ComputationFailureError(SimulationError):
    """Unexpected fault while trials were executing."""


class SimulationCancelledError(SimulationError):
    """The request was superseded by a newer one or the dispatcher shut down."""

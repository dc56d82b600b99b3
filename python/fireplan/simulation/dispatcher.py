"""Background dispatcher for projection runs.

Runs :func:`fireplan.simulation.monte_carlo.simulate` off the caller's
thread and guarantees the caller only ever sees the outcome of its most
recent request.

State machine::

    IDLE -> RUNNING -> COMPLETED | FAILED | CANCELLED
    (any state but shut down) --submit--> RUNNING

Superseded requests are cancelled at the scheduling layer when they have
not started yet. A stale run that already started finishes in the
background and its result is dropped.

"""

from __future__ import annotations

import asyncio
import logging
import threading
from concurrent.futures import CancelledError, Executor, Future, ThreadPoolExecutor
from enum import Enum
from typing import TYPE_CHECKING, cast

from fireplan.errors import (
    ComputationFailureError,
    SimulationCancelledError,
    SimulationError,
)
from fireplan.simulation.monte_carlo import simulate

if TYPE_CHECKING:
    from collections.abc import Callable

    from fireplan.simulation.params import SimulationParams, SimulationResult

logger = logging.getLogger(__name__)


class DispatchState(Enum):
    """Lifecycle of the dispatcher's current request."""

    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class SimulationDispatcher:
    """Run simulations on a background executor, latest request wins.

    Each call to :meth:`submit` returns a future that resolves exactly
    once: with the result, with the run's error, or with
    :class:`SimulationCancelledError` if a newer request superseded it.
    The optional ``on_result`` / ``on_error`` callbacks only ever fire for
    the latest request and run on the worker thread that finished it.
    Cancelling the returned future (or the task awaiting :meth:`run`)
    abandons the request: nothing is delivered for it and the state moves
    to CANCELLED once its run settles.

    Args:
        on_result: Called with each delivered SimulationResult.
        on_error: Called with each delivered SimulationError.
        executor: Executor to run simulations on. Defaults to an owned
            single-worker thread pool. A ProcessPoolExecutor works too.
        simulate_fn: Simulation entry point, injectable for tests.

    """

    def __init__(
        self,
        on_result: Callable[[SimulationResult], None] | None = None,
        on_error: Callable[[SimulationError], None] | None = None,
        executor: Executor | None = None,
        simulate_fn: Callable[..., SimulationResult] = simulate,
    ) -> None:
        self._on_result = on_result
        self._on_error = on_error
        self._simulate = simulate_fn
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="fireplan-sim"
        )
        self._lock = threading.Lock()
        self._generation = 0
        self._state = DispatchState.IDLE
        self._closed = False
        self._inflight: Future[SimulationResult] | None = None
        self._pending: Future[SimulationResult] | None = None

    @property
    def state(self) -> DispatchState:
        with self._lock:
            return self._state

    def submit(
        self,
        params: SimulationParams,
        seed: int | None = None,
    ) -> Future[SimulationResult]:
        """Start a simulation, superseding any request still in flight.

        Args:
            params: Simulation parameters.
            seed: Random seed passed through to the simulation.

        Returns:
            A future for this request's outcome.

        Raises:
            RuntimeError: If the dispatcher has been shut down or the
                executor refuses new work. In the latter case the
                previous request is still cancelled.

        """
        delivery: Future[SimulationResult] = Future()
        rejected: RuntimeError | None = None
        with self._lock:
            if self._closed:
                msg = "Cannot submit a simulation after shutdown"
                raise RuntimeError(msg)

            self._generation += 1
            generation = self._generation
            stale_inflight, stale_pending = self._inflight, self._pending
            self._inflight = self._pending = None
            try:
                inflight = self._executor.submit(self._simulate, params, seed=seed)
            except RuntimeError as exc:
                rejected = exc
                self._state = DispatchState.FAILED
            else:
                self._state = DispatchState.RUNNING
                self._pending = delivery
                self._inflight = inflight

        # The older request is stale even when the new one could not be scheduled
        if stale_pending is not None:
            self._supersede(stale_inflight, stale_pending)
        if rejected is not None:
            logger.warning("Executor rejected simulation #%d: %s", generation, rejected)
            raise rejected

        logger.debug(
            "Dispatched simulation #%d (%d trials, %d years)",
            generation,
            params.num_simulations,
            params.years,
        )
        inflight.add_done_callback(
            lambda done: self._finish(generation, done, delivery)
        )
        delivery.add_done_callback(lambda done: self._abandon(inflight, done))
        return delivery

    async def run(
        self,
        params: SimulationParams,
        seed: int | None = None,
    ) -> SimulationResult:
        """Submit a simulation and await its outcome.

        Raises:
            SimulationCancelledError: If a newer request superseded this one.
            InvalidParametersError: If params fail validation.
            ComputationFailureError: If the background run faulted.

        """
        return await asyncio.wrap_future(self.submit(params, seed=seed))

    def shutdown(self, wait: bool = True) -> None:
        """Cancel outstanding work and release the background executor.

        Args:
            wait: Block until a run that already started has finished.

        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._generation += 1
            inflight, pending = self._inflight, self._pending
            self._inflight = self._pending = None
            if pending is not None and not pending.done():
                self._state = DispatchState.CANCELLED

        if pending is not None:
            self._supersede(inflight, pending)
        if self._owns_executor:
            self._executor.shutdown(wait=wait, cancel_futures=True)
        logger.debug("Simulation dispatcher shut down")

    def __enter__(self) -> SimulationDispatcher:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.shutdown()

    def _supersede(
        self,
        inflight: Future[SimulationResult] | None,
        pending: Future[SimulationResult],
    ) -> None:
        if inflight is not None and inflight.cancel():
            logger.debug("Cancelled superseded simulation before it started")
        # False when the caller already cancelled the request itself
        if pending.set_running_or_notify_cancel():
            pending.set_exception(
                SimulationCancelledError("Simulation superseded by a newer request")
            )

    def _abandon(
        self,
        inflight: Future[SimulationResult],
        delivery: Future[SimulationResult],
    ) -> None:
        """Drop the queued run when the caller cancels its request."""
        if delivery.cancelled() and inflight.cancel():
            logger.debug("Cancelled simulation whose caller gave up before it started")

    def _finish(
        self,
        generation: int,
        done: Future[SimulationResult],
        delivery: Future[SimulationResult],
    ) -> None:
        """Deliver a finished run if it is still the latest request."""
        result: SimulationResult | None = None
        error: SimulationError | None = None
        with self._lock:
            if generation != self._generation:
                logger.debug("Discarding result of superseded simulation #%d", generation)
                return

            self._inflight = self._pending = None
            # Claims the delivery so the caller can no longer cancel it
            if not delivery.set_running_or_notify_cancel():
                logger.debug("Discarding result of caller-cancelled simulation #%d", generation)
                self._state = DispatchState.CANCELLED
                return

            try:
                result = done.result()
            except CancelledError:
                error = SimulationCancelledError("Simulation was cancelled")
            except SimulationError as exc:
                error = exc
            except Exception as exc:  # noqa: BLE001 - background faults must reach the caller
                msg = f"Simulation failed: {exc}"
                error = ComputationFailureError(msg)
                error.__cause__ = exc

            if error is None:
                self._state = DispatchState.COMPLETED
            elif isinstance(error, SimulationCancelledError):
                self._state = DispatchState.CANCELLED
            else:
                self._state = DispatchState.FAILED

        if error is not None:
            logger.warning("Simulation #%d failed: %s", generation, error)
            delivery.set_exception(error)
            if self._on_error is not None:
                self._on_error(error)
            return

        delivered = cast("SimulationResult", result)
        delivery.set_result(delivered)
        if self._on_result is not None:
            self._on_result(delivered)

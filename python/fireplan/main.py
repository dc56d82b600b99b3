"""fireplan sidecar entry point.

Communicates with the dashboard host process via stdin/stdout using
newline-delimited JSON messages. Simulation requests run on a background
dispatcher so a superseded ``simulation.run`` never answers with stale
numbers: its response carries a ``SimulationCancelledError`` instead.

Protocol:
    Request:  {"id": "uuid", "method": "string", "params": {}}
    Response: {"id": "uuid", "result": {}}
    Error:    {"id": "uuid", "error": {"message": "string", "type": "string"}}
"""

from __future__ import annotations

import json
import logging
import sys
import threading
import traceback
from concurrent.futures import Future
from typing import Any

import numpy as np

from fireplan import log_config
from fireplan.analysis.fire import (
    chart_rows,
    final_value_percentile_rank,
    summarize,
)
from fireplan.export.csv_export import export_bands_csv
from fireplan.export.json_export import build_scenario_payload, export_scenario_json
from fireplan.simulation.dispatcher import SimulationDispatcher
from fireplan.simulation.life_events import EVENT_LABELS, default_event_params
from fireplan.simulation.monte_carlo import aggregate, simulate, simulate_paths
from fireplan.simulation.params import SimulationParams, SimulationResult

logger = logging.getLogger(__name__)

# Responses are written from the main loop and from dispatcher worker threads
_STDOUT_LOCK = threading.Lock()


class _NumpyEncoder(json.JSONEncoder):
    """JSON encoder that handles NumPy types."""

    def default(self, o: Any) -> Any:
        """Convert NumPy types to JSON-serializable Python types."""
        if isinstance(o, np.ndarray):
            return o.tolist()
        if isinstance(o, np.integer):
            return int(o)
        if isinstance(o, np.floating):
            return float(o)
        return super().default(o)


def _handle_simulation_run(seed: int | None = None, **params: Any) -> dict[str, Any]:
    """Run one projection inline and return the raw result.

    Synchronous path for direct :func:`dispatch` callers. The stdin loop
    answers ``simulation.run`` from the background dispatcher instead.
    """
    return simulate(SimulationParams.from_dict(params), seed=seed).to_dict()


def _handle_simulation_metrics(seed: int | None = None, **params: Any) -> dict[str, Any]:
    """Run one projection and add FIRE metrics and chart rows."""
    sim_params = SimulationParams.from_dict(params)
    trials = simulate_paths(sim_params, seed=seed)
    result = aggregate(trials)
    return {
        **result.to_dict(),
        "summary": summarize(result, sim_params),
        "fire_number_percentile": final_value_percentile_rank(
            trials.portfolio_values[:, -1], sim_params.fire_number
        ),
        "chart": chart_rows(result, sim_params.start_calendar_year),
    }


def _handle_simulation_compare(
    scenarios: list[dict[str, Any]],
    seed: int | None = None,
) -> list[dict[str, Any]]:
    """Run several named scenarios and summarize them side by side.

    Args:
        scenarios: List of dicts with "name" and "params" keys.
        seed: Random seed shared by every scenario so differences come
            from the parameters, not the draws.

    Returns:
        One summary dict per scenario, in input order.

    """
    rows: list[dict[str, Any]] = []
    for scenario in scenarios:
        sim_params = SimulationParams.from_dict(scenario["params"])
        result = simulate(sim_params, seed=seed)
        rows.append({"name": scenario["name"], **summarize(result, sim_params)})
    return rows


def _handle_default_event_params(event_type: str) -> dict[str, Any]:
    return {
        "type": event_type,
        "label": EVENT_LABELS.get(event_type, event_type),
        "params": default_event_params(event_type),
    }


def _handle_export_scenario_json(
    name: str,
    params: dict[str, Any],
    result: dict[str, Any],
    output_path: str | None = None,
) -> str:
    return export_scenario_json(
        name,
        SimulationParams.from_dict(params),
        SimulationResult.from_dict(result),
        output_path=output_path,
    )


def _handle_scenario_payload(
    name: str,
    params: dict[str, Any],
    result: dict[str, Any],
) -> dict[str, Any]:
    return build_scenario_payload(
        name, SimulationParams.from_dict(params), SimulationResult.from_dict(result)
    )


def _handle_export_bands_csv(
    result: dict[str, Any],
    start_calendar_year: int = 0,
    output_path: str | None = None,
) -> str:
    return export_bands_csv(
        SimulationResult.from_dict(result),
        start_calendar_year=start_calendar_year,
        output_path=output_path,
    )


_HANDLERS: dict[str, Any] = {
    # Simulation
    "simulation.run": _handle_simulation_run,
    "simulation.metrics": _handle_simulation_metrics,
    "simulation.compare": _handle_simulation_compare,
    "simulation.default_event_params": _handle_default_event_params,
    # Export
    "export.scenario_payload": _handle_scenario_payload,
    "export.scenario_json": _handle_export_scenario_json,
    "export.bands_csv": _handle_export_bands_csv,
}


def dispatch(method: str, params: dict[str, Any]) -> Any:
    """Route a method call to the appropriate handler.

    Args:
        method: The method name (e.g., "simulation.run").
        params: The parameters for the method.

    Returns:
        The result of the method call.

    Raises:
        ValueError: If the method is not recognized.

    """
    if method not in _HANDLERS:
        msg = f"Unknown method: {method}"
        raise ValueError(msg)
    return _HANDLERS[method](**params)


def _error_response(request_id: Any, exc: BaseException) -> dict[str, Any]:
    return {
        "id": request_id,
        "error": {
            "message": str(exc),
            "type": type(exc).__name__,
            "traceback": "".join(traceback.format_exception(exc)),
        },
    }


def _write(response: dict[str, Any]) -> None:
    line = json.dumps(response, cls=_NumpyEncoder) + "\n"
    with _STDOUT_LOCK:
        sys.stdout.write(line)
        sys.stdout.flush()


class _SimulationChannel:
    """Answers ``simulation.run`` requests from a background dispatcher."""

    def __init__(self) -> None:
        self._dispatcher = SimulationDispatcher()
        self._answered: threading.Event | None = None

    def submit(self, request_id: Any, params: dict[str, Any]) -> None:
        """Queue a simulation; its response is written when it settles."""
        run_params = dict(params)
        seed = run_params.pop("seed", None)
        delivery = self._dispatcher.submit(SimulationParams.from_dict(run_params), seed=seed)
        answered = threading.Event()
        self._answered = answered

        def respond(done: Future[SimulationResult]) -> None:
            exc = done.exception()
            if exc is not None:
                _write(_error_response(request_id, exc))
            else:
                _write({"id": request_id, "result": done.result().to_dict()})
            answered.set()

        delivery.add_done_callback(respond)

    def close(self) -> None:
        """Wait for the newest simulation to answer, then stop the worker."""
        if self._answered is not None:
            self._answered.wait()
        self._dispatcher.shutdown()


def main() -> None:
    """Run the sidecar message loop.

    Reads newline-delimited JSON from stdin, dispatches to handlers,
    and writes JSON responses to stdout. ``simulation.run`` answers
    asynchronously from the background dispatcher; every other method
    answers inline. Runs until stdin is closed.
    """
    log_config.setup()
    channel = _SimulationChannel()
    try:
        for raw_line in sys.stdin:
            stripped = raw_line.strip()
            if not stripped:
                continue

            request: dict[str, Any] = {}
            try:
                request = json.loads(stripped)
                request_id = request.get("id", "unknown")
                method = request["method"]
                params = request.get("params", {})
                if method == "simulation.run":
                    channel.submit(request_id, params)
                    continue
                response: dict[str, Any] = {
                    "id": request_id,
                    "result": dispatch(method, params),
                }
            except Exception as exc:  # noqa: BLE001 - dispatcher must catch all errors and return them as JSON
                request_id = (
                    request.get("id", "unknown") if isinstance(request, dict) else "unknown"
                )
                response = _error_response(request_id, exc)
            _write(response)
    finally:
        channel.close()
    logger.debug("stdin closed, sidecar exiting")


if __name__ == "__main__":
    main()

"""JSON export for saved scenarios.

Produces the ``{name, params, result_summary}`` body the dashboard's
scenario-save endpoint stores as opaque data, with export metadata.

"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

import numpy as np

from fireplan.analysis.fire import summarize

if TYPE_CHECKING:
    from fireplan.simulation.params import SimulationParams, SimulationResult


class _ScenarioEncoder(json.JSONEncoder):
    """JSON encoder that handles NumPy types and datetimes."""

    def default(self, o: Any) -> Any:
        """Convert non-serializable types to JSON-safe values."""
        if isinstance(o, np.ndarray):
            return o.tolist()
        if isinstance(o, np.integer):
            return int(o)
        if isinstance(o, np.floating):
            return float(o)
        if isinstance(o, datetime):
            return o.isoformat()
        return super().default(o)


def build_scenario_payload(
    name: str,
    params: SimulationParams,
    result: SimulationResult,
) -> dict[str, Any]:
    """Assemble the body for the scenario-save endpoint.

    Args:
        name: User-facing scenario name.
        params: Parameters the scenario was run with.
        result: Simulation result to summarize.

    Returns:
        Dict with name, params and result_summary keys.

    Raises:
        ValueError: If name is blank.

    """
    if not name.strip():
        msg = "Scenario name must not be empty"
        raise ValueError(msg)

    return {
        "name": name,
        "params": params.to_dict(),
        "result_summary": summarize(result, params),
    }


def export_scenario_json(
    name: str,
    params: SimulationParams,
    result: SimulationResult,
    output_path: str | None = None,
) -> str:
    """Export a scenario to JSON format.

    Args:
        name: User-facing scenario name.
        params: Parameters the scenario was run with.
        result: Simulation result.
        output_path: File path to write. If None, returns JSON string.

    Returns:
        JSON string, or file path if output_path given.

    """
    export_data: dict[str, Any] = {
        "metadata": {
            "export_date": datetime.now(tz=UTC),
            "format_version": "1.0",
            "source": "fireplan",
        },
        **build_scenario_payload(name, params, result),
    }

    content = json.dumps(export_data, cls=_ScenarioEncoder, indent=2)

    if output_path:
        Path(output_path).write_text(content, encoding="utf-8")
        return output_path
    return content

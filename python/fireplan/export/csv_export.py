"""CSV export for simulation percentile bands.

Generates one row per projected year, suitable for fan charts in a
spreadsheet, preceded by ``#`` metadata lines.

"""

from __future__ import annotations

import csv
import io
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

from fireplan.analysis.fire import chart_rows

if TYPE_CHECKING:
    from fireplan.simulation.params import SimulationResult


def export_bands_csv(
    result: SimulationResult,
    start_calendar_year: int = 0,
    output_path: str | None = None,
) -> str:
    """Export simulation percentile bands to CSV.

    Writes columns for year and each band (p10, p25, p50, p75, p90).

    Args:
        result: Simulation result.
        start_calendar_year: Calendar year of simulated year 0.
        output_path: File path to write. If None, returns CSV string.

    Returns:
        The CSV content as a string, or file path if output_path given.

    """
    output = io.StringIO()
    _write_metadata_header(
        output,
        "Simulation Bands Export",
        extra=f"Success Rate: {result.success_rate:.4f}",
    )

    fieldnames = ["year", *result.percentiles]
    writer = csv.DictWriter(output, fieldnames=fieldnames)
    writer.writeheader()
    for row in chart_rows(result, start_calendar_year):
        formatted: dict[str, Any] = {"year": row["year"]}
        for key in result.percentiles:
            formatted[key] = f"{float(row[key]):.2f}"
        writer.writerow(formatted)

    content = output.getvalue()
    if output_path:
        Path(output_path).write_text(content, encoding="utf-8")
        return output_path
    return content


def _write_metadata_header(
    output: io.StringIO,
    title: str,
    extra: str | None = None,
) -> None:
    """Write comment-style metadata lines at the top of a CSV."""
    output.write(f"# {title}\n")
    output.write(f"# Export Date: {datetime.now(tz=UTC).isoformat()}\n")
    if extra:
        output.write(f"# {extra}\n")

"""JSON report output for frame comparisons."""

from __future__ import annotations

import json
from pathlib import Path

from framecast.models.regression import RegressionSummary


def write_regression_report(
    summary: RegressionSummary,
    output_path: Path,
    threshold: float | None = None,
) -> None:
    """Write a machine-readable JSON report of *summary*."""
    report = summary.model_dump(by_alias=True)
    if threshold is not None:
        report["failThreshold"] = threshold
        report["failed"] = summary.exceeds(threshold)

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w") as f:
        json.dump(report, f, indent=2, default=str)

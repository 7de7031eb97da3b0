"""JSON report output."""

from __future__ import annotations

import json
from pathlib import Path

from src.models.test_result import RunResult


def generate_json_report(run_result: RunResult, output_path: Path) -> None:
    """Write a machine-readable JSON report."""
    report = run_result.model_dump()
    report["failures"] = [
        {
            "test_name": r.test_name,
            "device": r.device,
            "mismatch_percent": r.mismatch_percent,
            "image_url": r.image_url,
            "failure_reason": r.failure_reason,
        }
        for r in run_result.test_results if r.result in ("skip", "error")
    ]

    with open(output_path, "w") as f:
        json.dump(report, f, indent=2, default=str)

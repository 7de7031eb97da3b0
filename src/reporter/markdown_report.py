"""Markdown summary report, suitable for CI job summaries."""

from __future__ import annotations

from pathlib import Path

from src.models.test_result import RunResult

from .explanation_table import md_cell, to_markdown_table

_STATUS_LABELS = {
    "pass": "PASS",
    "skip": "MISMATCH",
    "baseline": "BASELINE",
    "error": "ERROR",
}


def generate_markdown_report(run_result: RunResult, output_path: Path) -> None:
    lines = [
        f"# Visual Regression Report ({run_result.device})",
        "",
        f"Run `{run_result.run_id}` ({run_result.mode}) started {run_result.started_at}, "
        f"took {run_result.duration_seconds}s.",
        "",
        f"- Total: {run_result.total_tests}",
        f"- Passed: {run_result.passed}",
        f"- Mismatch (skipped): {run_result.skipped}",
        f"- Baselines created: {run_result.baselines_created}",
        f"- Errors: {run_result.errors}",
        "",
        "| Status | Test | Mismatch | Image |",
        "|---|---|---|---|",
    ]
    for r in run_result.test_results:
        mismatch = f"{r.mismatch_percent:.2f}%" if r.mismatch_percent is not None else "-"
        if r.mismatch_percent is not None and not r.comparison_available:
            mismatch += " (unavailable)"
        image = f"[diff]({r.image_url})" if r.image_url else ""
        lines.append(
            f"| {_STATUS_LABELS.get(r.result, r.result)} | {md_cell(r.test_name)} | {mismatch} | {image} |"
        )

    explained = [r for r in run_result.test_results if r.explanation is not None]
    if explained:
        lines += ["", "## Change Explanations"]
        for r in explained:
            lines += ["", f"### {md_cell(r.test_name)}", "", to_markdown_table(r.explanation)]

    errored = [r for r in run_result.test_results if r.result == "error"]
    if errored:
        lines += ["", "## Errors", ""]
        for r in errored:
            lines.append(f"- **{md_cell(r.test_name)}**: {md_cell(r.failure_reason or 'unknown error')}")

    with open(output_path, "w", encoding="utf-8") as f:
        f.write("\n".join(lines) + "\n")

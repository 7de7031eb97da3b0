"""Table projections of a change explanation for HTML and Markdown reports."""

from __future__ import annotations

import html
from typing import Union

from src.models.visual import ChangeExplanation

_COLUMNS = [
    ("location", "Location"),
    ("baseline_state", "Baseline"),
    ("current_state", "Current"),
    ("description", "Description"),
]


def to_html_table(explanation: Union[ChangeExplanation, str, None]) -> str:
    """Render an explanation as an HTML table with every cell escaped.

    Raw-text explanations are rendered as an escaped paragraph.
    """
    if explanation is None:
        return ""
    if isinstance(explanation, str):
        return f'<p class="explanation-text">{html.escape(explanation)}</p>'

    header = "".join(f"<th>{html.escape(title)}</th>" for _, title in _COLUMNS)
    rows = []
    for change in explanation.changes:
        cells = "".join(
            f"<td>{html.escape(getattr(change, field))}</td>" for field, _ in _COLUMNS
        )
        rows.append(f"<tr>{cells}</tr>")
    return (
        '<table class="explanation">'
        f"<thead><tr>{header}</tr></thead>"
        f"<tbody>{''.join(rows)}</tbody>"
        "</table>"
    )


def md_cell(value: str) -> str:
    return value.replace("\\", "\\\\").replace("|", "\\|").replace("\r\n", " ").replace("\n", " ").strip()


def to_markdown_table(explanation: Union[ChangeExplanation, str, None]) -> str:
    """Render an explanation as a Markdown table with pipes and newlines sanitized."""
    if explanation is None:
        return ""
    if isinstance(explanation, str):
        return md_cell(explanation)

    lines = [
        "| " + " | ".join(title for _, title in _COLUMNS) + " |",
        "|" + "---|" * len(_COLUMNS),
    ]
    for change in explanation.changes:
        lines.append("| " + " | ".join(md_cell(getattr(change, field)) for field, _ in _COLUMNS) + " |")
    return "\n".join(lines)

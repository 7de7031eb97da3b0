"""OCR text extraction via Tesseract."""

from __future__ import annotations

import logging
from pathlib import Path

import pytesseract
from PIL import Image

from src.models.visual import TextDifference

logger = logging.getLogger(__name__)


class TesseractOCR:
    """Extracts visible text from a screenshot."""

    def extract_text(self, image_path: str | Path, lang: str = "eng") -> str:
        path = Path(image_path)
        if not path.exists():
            raise FileNotFoundError(f"Screenshot not found: {path}")
        with Image.open(path) as img:
            text = pytesseract.image_to_string(img, lang=lang)
        logger.debug("OCR extracted %d chars from %s", len(text), path.name)
        return text


def compare_text(baseline_text: str, current_text: str) -> list[TextDifference]:
    """Line-by-line comparison of two OCR outputs.

    Every index up to the longer of the two line counts is compared; a line
    missing on the current side is reported with ``current_line=None``.
    """
    baseline_lines = baseline_text.split("\n")
    current_lines = current_text.split("\n")
    differences = []
    for i in range(max(len(baseline_lines), len(current_lines))):
        baseline_line = baseline_lines[i] if i < len(baseline_lines) else None
        current_line = current_lines[i] if i < len(current_lines) else None
        if baseline_line != current_line:
            differences.append(TextDifference(
                line_index=i, baseline_line=baseline_line, current_line=current_line,
            ))
    return differences

"""Merge per-run result files into one JSON document per device."""

from __future__ import annotations

import json
import logging
from pathlib import Path

logger = logging.getLogger(__name__)


def find_result_files(root: str | Path, filename: str = "result.json") -> list[Path]:
    """Every ``filename`` under ``root``, in a stable order."""
    return sorted(Path(root).rglob(filename))


def merge_results(root: str | Path, device: str = "desktop", filename: str = "result.json") -> Path:
    """Concatenate result files under ``root`` into ``merged-results-<device>.json``.

    Files holding a JSON list are flattened into the merged list; anything
    else is appended as one entry.
    """
    root = Path(root)
    if not root.is_dir():
        raise FileNotFoundError(f"Results directory not found: {root}")

    logger.info("Merging results for device type: %s", device)
    files = find_result_files(root, filename)
    merged: list = []
    for path in files:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        if isinstance(data, list):
            merged.extend(data)
        else:
            merged.append(data)

    output = root / f"merged-results-{device}.json"
    with open(output, "w", encoding="utf-8") as f:
        json.dump(merged, f, indent=2)
    logger.info("Merged %d result files into %s", len(files), output)
    return output

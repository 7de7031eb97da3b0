"""Side-by-side composition of current, baseline and diff screenshots."""

from __future__ import annotations

import logging
from pathlib import Path

from PIL import Image

logger = logging.getLogger(__name__)

_BACKGROUND = (255, 255, 255)


def merge_images(image_paths: list[str | Path], output_path: str | Path, gap: int = 0) -> Path:
    """Place the images left to right on one canvas and write it to ``output_path``.

    The output may be one of the inputs; all inputs are read before writing.
    """
    images = []
    for path in image_paths:
        with Image.open(path) as img:
            images.append(img.convert("RGB"))

    width = sum(img.width for img in images) + gap * max(0, len(images) - 1)
    height = max(img.height for img in images)
    canvas = Image.new("RGB", (width, height), _BACKGROUND)
    x = 0
    for img in images:
        canvas.paste(img, (x, 0))
        x += img.width + gap

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    canvas.save(output_path, "PNG")
    logger.debug("Merged %d images into %s (%dx%d)", len(images), output_path, width, height)
    return output_path

"""Quantifies and localizes differences between a capture and its baseline."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from src.models.config import OCRConfig, PixelDiffConfig
from src.models.visual import DiffResult, TextDifference

from .compose import merge_images
from .ocr import TesseractOCR, compare_text
from .pixel_diff import PixelDiffProvider

logger = logging.getLogger(__name__)


def mismatch_percentage(different: int | None, total: int | None) -> float | None:
    """Differing pixels over total pixels, rounded to two decimals; None when undefined."""
    if different is None or not total:
        return None
    return min(100.0, max(0.0, round(different / total * 100, 2)))


class DiffEngine:
    """Pixel comparison plus independent OCR text comparison.

    Text differences are informational and never feed the mismatch score.
    """

    def __init__(
        self,
        pixel_config: PixelDiffConfig | None = None,
        ocr_config: OCRConfig | None = None,
        pixel_provider: PixelDiffProvider | None = None,
        ocr_provider: TesseractOCR | None = None,
    ):
        self.pixel_config = pixel_config or PixelDiffConfig()
        self.ocr_config = ocr_config or OCRConfig()
        self.pixel_provider = pixel_provider or PixelDiffProvider()
        self.ocr_provider = ocr_provider or TesseractOCR()

    async def compare(
        self,
        current_path: str | Path,
        baseline_path: str | Path,
        diff_path: str | Path,
    ) -> DiffResult:
        pixel, text_differences = await asyncio.gather(
            asyncio.to_thread(
                self.pixel_provider.compare, current_path, baseline_path, self.pixel_config,
            ),
            self._compare_text(current_path, baseline_path),
        )

        mismatch = mismatch_percentage(pixel.different_pixels, pixel.total_pixels)
        if mismatch is None:
            logger.warning(
                "Pixel counts unavailable for %s, reporting mismatch as 0",
                Path(current_path).name,
            )
            return DiffResult(
                mismatch_percent=0.0,
                different_pixel_count=pixel.different_pixels,
                total_pixel_count=pixel.total_pixels,
                equal=pixel.equal,
                comparison_available=False,
                text_differences=text_differences,
            )

        result = DiffResult(
            mismatch_percent=mismatch,
            different_pixel_count=pixel.different_pixels,
            total_pixel_count=pixel.total_pixels,
            equal=pixel.equal,
            clusters=pixel.diff_clusters,
            text_differences=text_differences,
        )

        if not pixel.equal and pixel.diff_image is not None:
            await asyncio.to_thread(
                self._persist_diff, pixel.diff_image, current_path, baseline_path, diff_path,
            )
            result.diff_artifact_path = str(diff_path)

        logger.info(
            "Compared %s: %.2f%% mismatch (%s/%s pixels, %d cluster(s), %d text line(s) differ)",
            Path(current_path).name, mismatch, pixel.different_pixels, pixel.total_pixels,
            len(result.clusters), len(text_differences),
        )
        return result

    async def _compare_text(
        self, current_path: str | Path, baseline_path: str | Path,
    ) -> list[TextDifference]:
        if not self.ocr_config.enabled:
            return []
        lang = self.ocr_config.lang
        try:
            baseline_text, current_text = await asyncio.gather(
                asyncio.to_thread(self.ocr_provider.extract_text, baseline_path, lang),
                asyncio.to_thread(self.ocr_provider.extract_text, current_path, lang),
            )
        except Exception as e:
            logger.warning("OCR text comparison skipped: %s", e)
            return []

        if baseline_text == current_text:
            return []
        differences = compare_text(baseline_text, current_text)
        for diff in differences:
            if diff.current_line is None:
                logger.debug("Missing line %d: %r", diff.line_index + 1, diff.baseline_line)
            else:
                logger.debug("Line %d differs: %r -> %r",
                             diff.line_index + 1, diff.baseline_line, diff.current_line)
        return differences

    @staticmethod
    def _persist_diff(diff_image, current_path, baseline_path, diff_path) -> None:
        diff_path = Path(diff_path)
        diff_path.parent.mkdir(parents=True, exist_ok=True)
        diff_image.save(diff_path, "PNG")
        merge_images([current_path, baseline_path, diff_path], diff_path)

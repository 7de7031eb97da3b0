"""Turns a mismatch score into a recorded verdict."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Optional

from src.ledger.baseline_ledger import BaselineLedger
from src.models.test_result import VisualTestResult
from src.screenshot_paths import ScreenshotIdentity, storage_key
from src.storage.supabase_storage import SupabaseStorage

logger = logging.getLogger(__name__)


class MismatchValidator:
    """Passes strictly below tolerance; anything at or above it is a soft failure.

    A failure attaches the diff artifact to the result, records a failed verdict,
    uploads the diff and marks the check skipped rather than failed.
    """

    def __init__(
        self,
        ledger: BaselineLedger,
        storage: SupabaseStorage,
        tolerance: float = 1.0,
        on_mismatch: Optional[Callable[[str], None]] = None,
    ):
        self.ledger = ledger
        self.storage = storage
        self.tolerance = tolerance
        self.on_mismatch = on_mismatch

    def validate(
        self,
        result: VisualTestResult,
        identity: ScreenshotIdentity,
        mismatch: float,
        diff_path: str | Path,
    ) -> str:
        result.mismatch_percent = mismatch
        result.tolerance = self.tolerance

        if mismatch < self.tolerance:
            logger.info("Passed: mismatch %s%% is below tolerance %s%%", mismatch, self.tolerance)
            self.ledger.record_verdict(identity, "passed", diff_path)
            result.result = "pass"
            return "passed"

        message = f"Mismatch for {result.test_name}: {mismatch}%"
        logger.error("%s (device=%s, diff=%s)", message, identity.device, diff_path)
        result.attach("Screenshot", str(diff_path))

        image_url = self.ledger.record_verdict(identity, "failed", diff_path)
        uploaded_url = self.storage.upload(storage_key(diff_path, identity.root), diff_path)
        result.image_url = image_url or uploaded_url

        result.result = "skip"
        result.failure_reason = message
        if self.on_mismatch is not None:
            self.on_mismatch(message)
        return "failed"

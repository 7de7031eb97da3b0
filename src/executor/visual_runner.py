"""Drives navigate, readiness, capture, baseline and comparison for every target."""

from __future__ import annotations

import asyncio
import logging
import time
import uuid

from playwright.async_api import BrowserContext, async_playwright

from src.diff.engine import DiffEngine
from src.explain.chain import ExplanationChain
from src.ledger.baseline_ledger import BaselineLedger
from src.models.config import FrameworkConfig, VisualTarget
from src.models.test_result import RunResult, VisualTestResult
from src.readiness.detector import PageReadinessDetector
from src.screenshot_paths import ScreenshotIdentity, create_folders, storage_key
from src.storage.supabase_storage import SupabaseStorage
from src.utils.browser import create_device_context, launch_browser
from src.validator.mismatch_validator import MismatchValidator

from .session import PageSession

logger = logging.getLogger(__name__)

MODES = ("setup", "validate")


class VisualRunner:
    """Runs every configured target on the configured device.

    ``setup`` captures and (re)creates baselines; ``validate`` compares against
    existing baselines, creating any that are missing.
    """

    def __init__(
        self,
        config: FrameworkConfig,
        ledger: BaselineLedger,
        storage: SupabaseStorage,
        engine: DiffEngine | None = None,
        detector: PageReadinessDetector | None = None,
        explainer: ExplanationChain | None = None,
        validator: MismatchValidator | None = None,
    ):
        self.config = config
        self.device = config.device
        self.ledger = ledger
        self.storage = storage
        self.engine = engine or DiffEngine(config.pixel_diff, config.ocr)
        self.detector = detector or PageReadinessDetector(config.readiness)
        self.explainer = explainer if explainer is not None else ExplanationChain.from_config(config.explanation)
        self.validator = validator or MismatchValidator(ledger, storage, config.mismatch_threshold)
        self.run_id = f"run_{uuid.uuid4().hex[:8]}"

    async def run(self, mode: str = "validate") -> RunResult:
        if mode not in MODES:
            raise ValueError(f"Unknown run mode: {mode}")

        started_at = time.strftime("%Y-%m-%dT%H:%M:%SZ")
        start_time = time.time()
        targets = self.config.targets_for(self.device)
        total = len(targets)
        logger.info("Starting %s run %s on %s (%d targets)", mode, self.run_id, self.device, total)
        create_folders(self.config.screenshots_dir)

        test_results: list[VisualTestResult] = []
        if targets:
            async with async_playwright() as p:
                browser = await launch_browser(p, headless=self.config.headless)
                semaphore = asyncio.Semaphore(self.config.max_parallel_contexts)
                viewport = self.config.viewport_for(self.device)

                async def _run_one(index: int, target: VisualTarget) -> VisualTestResult:
                    async with semaphore:
                        logger.info("Running target [%d/%d]: %s", index + 1, total, target.name)
                        context = await create_device_context(browser, viewport)
                        try:
                            result = await self.run_target(context, target, mode)
                        finally:
                            await context.close()
                        logger.info("[%s] %s (%.1fs)", result.result.upper(), target.name,
                                    result.duration_seconds)
                        return result

                test_results = list(await asyncio.gather(
                    *(_run_one(i, t) for i, t in enumerate(targets))
                ))
                await browser.close()

        duration = time.time() - start_time
        run_result = RunResult(
            run_id=self.run_id,
            device=self.device,
            mode=mode,
            started_at=started_at,
            completed_at=time.strftime("%Y-%m-%dT%H:%M:%SZ"),
            ci=self.config.ledger.ci,
            total_tests=len(test_results),
            passed=sum(1 for r in test_results if r.result == "pass"),
            skipped=sum(1 for r in test_results if r.result == "skip"),
            baselines_created=sum(1 for r in test_results if r.result == "baseline"),
            errors=sum(1 for r in test_results if r.result == "error"),
            duration_seconds=round(duration, 2),
            test_results=test_results,
        )
        logger.info(
            "Run complete: %d passed, %d skipped (mismatch), %d baselines, %d errors (%.1fs)",
            run_result.passed, run_result.skipped, run_result.baselines_created,
            run_result.errors, duration,
        )
        return run_result

    async def run_target(
        self, context: BrowserContext, target: VisualTarget, mode: str,
    ) -> VisualTestResult:
        """One navigation + capture cycle; failures become an ``error`` result."""
        start = time.time()
        identity = ScreenshotIdentity(target.name, self.device, self.config.screenshots_dir)
        result = VisualTestResult(
            test_name=target.name,
            device=self.device,
            url=target.url,
            selector=target.selector,
            result="pass",
            current_path=str(identity.current_path),
            baseline_path=str(identity.baseline_path),
        )

        try:
            page = await context.new_page()
            session = PageSession(page, identity)
            await session.navigate(target.url)
            result.readiness = await self.detector.wait_until_ready(session)
            current = await session.capture(target.selector, target.full_page)

            if mode == "setup":
                await self._setup_baseline(identity, current, result)
            elif not self.ledger.has_baseline(identity):
                await asyncio.to_thread(self.ledger.create_baseline, identity, current)
                result.result = "baseline"
                logger.info("Baseline created for %s. Run again for comparisons.", identity.key)
            else:
                await self._validate(identity, current, result)
        except Exception as e:
            logger.error("Target %s failed: %s", target.name, e)
            result.result = "error"
            result.failure_reason = str(e)

        result.duration_seconds = round(time.time() - start, 2)
        return result

    async def _setup_baseline(
        self, identity: ScreenshotIdentity, current: str, result: VisualTestResult,
    ) -> None:
        baseline = await asyncio.to_thread(self.ledger.create_baseline, identity, current)
        key = storage_key(baseline, identity.root)
        result.image_url = await asyncio.to_thread(self.storage.upload, key, baseline)
        result.result = "baseline"

    async def _validate(
        self, identity: ScreenshotIdentity, current: str, result: VisualTestResult,
    ) -> None:
        baseline = identity.baseline_path
        diff_path = identity.diff_path
        diff = await self.engine.compare(current, baseline, diff_path)

        result.comparison_available = diff.comparison_available
        result.text_differences = diff.text_differences
        result.diff_path = diff.diff_artifact_path

        if (
            not diff.equal
            and diff.diff_artifact_path
            and diff.mismatch_percent >= self.validator.tolerance
            and self.explainer.enabled
        ):
            result.explanation = await asyncio.to_thread(
                self.explainer.explain, baseline, current, diff.diff_artifact_path,
            )

        await asyncio.to_thread(
            self.validator.validate, result, identity, diff.mismatch_percent, diff_path,
        )

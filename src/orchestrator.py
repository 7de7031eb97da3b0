"""Pipeline orchestrator: owns the run's ledger store and coordinates capture, compare and report."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from pathlib import Path

from src.ai.client import set_debug_dir
from src.executor.visual_runner import VisualRunner
from src.ledger.baseline_ledger import BaselineIndex, BaselineLedger
from src.ledger.store import LedgerStore
from src.models.config import FrameworkConfig
from src.models.ledger import BaselineRecord, VerdictRecord
from src.models.test_result import RunResult
from src.reporter.merge_results import merge_results
from src.reporter.reporter import Reporter
from src.screenshot_paths import DEVICES
from src.storage.supabase_storage import SupabaseStorage

logger = logging.getLogger(__name__)


class Orchestrator:
    """Coordinates the visual regression pipeline for one device."""

    def __init__(self, config: FrameworkConfig, results_dir: str | Path = "test-results"):
        self.config = config
        self.results_dir = Path(results_dir)
        self.storage = SupabaseStorage(config.storage)

        set_debug_dir(Path(config.report_output_dir) / "debug")

    def open_store(self) -> LedgerStore:
        return LedgerStore.from_config(self.config.ledger, self.config.device)

    def build_ledger(self, store: LedgerStore) -> BaselineLedger:
        index = BaselineIndex(self.config.ledger.resolve_index_path(self.config.device))
        return BaselineLedger(store, public_url=self.config.storage.public_url, index=index)

    def run(self, mode: str = "validate") -> dict:
        """Run setup or validation for every target, then write reports."""
        return asyncio.run(self._run(mode))

    async def _run(self, mode: str) -> dict:
        start = time.time()
        context = "CI" if self.config.ledger.ci else "Local"
        logger.info("=== Starting visual %s [%s] on %s ===", mode, context, self.config.device)

        with self.open_store() as store:
            store.install_teardown_hooks()
            runner = VisualRunner(self.config, self.build_ledger(store), self.storage)
            run_result = await runner.run(mode)

        self._save_run_result(run_result)
        reports = Reporter(self.config).generate_reports(
            run_result, output_dir=Path(self.config.report_output_dir),
        )

        duration = time.time() - start
        logger.info("=== Visual %s complete in %.1fs ===", mode, duration)
        return {
            "run_id": run_result.run_id,
            "device": run_result.device,
            "duration": round(duration, 2),
            "results": {
                "total": run_result.total_tests,
                "passed": run_result.passed,
                "skipped": run_result.skipped,
                "baselines": run_result.baselines_created,
                "errors": run_result.errors,
            },
            "reports": reports,
        }

    def _save_run_result(self, run_result: RunResult) -> None:
        """Persist per-target results so runs can be merged per device later."""
        path = self.results_dir / run_result.run_id / "result.json"
        path.parent.mkdir(parents=True, exist_ok=True)
        logger.debug("Saving run result to %s", path)
        with open(path, "w") as f:
            json.dump([r.model_dump() for r in run_result.test_results], f, indent=2, default=str)

    def pull_baselines(self) -> int:
        """Download baseline images for every device from storage into the screenshots tree."""
        total = 0
        for device in DEVICES:
            total += len(self.storage.download_folder(f"baseline/{device}", self.config.screenshots_dir))
        return total

    def ledger_records(self) -> tuple[list[BaselineRecord], list[VerdictRecord]]:
        with self.open_store() as store:
            return store.baseline_records(), store.verdict_records()

    def merge_results(self) -> Path:
        return merge_results(self.results_dir, self.config.device)

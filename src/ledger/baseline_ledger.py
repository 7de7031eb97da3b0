"""Baseline ledger: baseline lifecycle and verdict bookkeeping per test identity and device."""

from __future__ import annotations

import json
import logging
import shutil
from pathlib import Path

from src.ledger.store import LedgerStore
from src.screenshot_paths import ScreenshotIdentity, storage_key

logger = logging.getLogger(__name__)

VERDICT_STATUSES = ("passed", "failed")


class BaselineIndex:
    """Flat JSON list of baseline image paths kept alongside the ledger database."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def load(self) -> list[str]:
        if not self.path.exists():
            return []
        try:
            content = self.path.read_text(encoding="utf-8").strip()
            if not content:
                return []
            data = json.loads(content)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Invalid JSON in %s (%s), starting with empty list", self.path, e)
            return []
        if not isinstance(data, list):
            logger.warning("Baseline index %s is not a list, starting with empty list", self.path)
            return []
        return [str(item) for item in data]

    def add(self, baseline_path: str) -> bool:
        """Append a path if not already present; returns True when the file changed."""
        entries = self.load()
        if baseline_path in entries:
            return False
        entries.append(baseline_path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(entries, f, indent=2)
        logger.debug("Added %s to baseline index %s", baseline_path, self.path)
        return True


class BaselineLedger:
    """NoBaseline -> BaselineCreated -> Passing/Failing, recorded per identity.

    Baseline files are written regardless of execution context; records are only
    persisted when the injected store is enabled.
    """

    def __init__(self, store: LedgerStore, public_url: str = "", index: BaselineIndex | None = None):
        self.store = store
        self.public_url = public_url.rstrip("/")
        self.index = index

    def has_baseline(self, identity: ScreenshotIdentity) -> bool:
        return identity.baseline_path.exists()

    def create_baseline(self, identity: ScreenshotIdentity, source_image: str | Path) -> Path:
        """Copy the capture over the baseline location and append a baseline record."""
        dest = identity.baseline_path
        dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(source_image, dest)
        logger.info("Baseline image not found, stored current capture as baseline: %s", dest)

        if self.store.enabled:
            try:
                self.store.insert_baseline(identity.key)
            except Exception as e:
                logger.error("Failed to record baseline for %s: %s", identity.key, e)
        else:
            logger.debug("Ledger disabled, baseline record for %s not persisted", identity.key)

        if self.index is not None:
            try:
                self.index.add(dest.as_posix())
            except OSError as e:
                logger.warning("Failed to update baseline index %s: %s", self.index.path, e)
        return dest

    def image_url_for(self, diff_path: str | Path, root: str | Path) -> str:
        key = storage_key(diff_path, root)
        return f"{self.public_url}/{key}" if self.public_url else key

    def record_verdict(
        self,
        identity: ScreenshotIdentity,
        status: str,
        diff_path: str | Path | None = None,
    ) -> str:
        """Append a verdict record and return the image URL it carries."""
        if status not in VERDICT_STATUSES:
            raise ValueError(f"Invalid test status: {status}")

        image_url = ""
        if status == "failed" and diff_path is not None:
            image_url = self.image_url_for(diff_path, identity.root)

        self.store.insert_verdict(identity.key, identity.device, status, image_url)
        logger.debug("Recorded %s verdict for %s", status, identity.key)
        return image_url

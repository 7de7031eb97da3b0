"""Pytest configuration and shared fixtures."""

from pathlib import Path
from unittest.mock import AsyncMock, Mock

import numpy as np
import pytest
from PIL import Image
from playwright.async_api import Browser, BrowserContext, Page

from src.ledger.baseline_ledger import BaselineIndex, BaselineLedger
from src.ledger.store import LedgerStore
from src.models.config import (
    FrameworkConfig,
    LedgerConfig,
    PixelDiffConfig,
    StorageConfig,
    VisualTarget,
)
from src.models.test_result import RunResult, VisualTestResult
from src.models.visual import ChangeExplanation, ChangeItem, ReadinessOutcome, TextDifference
from src.screenshot_paths import ScreenshotIdentity


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def visual_target() -> VisualTarget:
    """Create a test visual target."""
    return VisualTarget(
        name="Computers page Upper Header - Desktop - Validate Mismatch",
        url="https://example.com/computers",
        selector=".header-upper",
    )


@pytest.fixture
def framework_config(visual_target: VisualTarget, tmp_path: Path) -> FrameworkConfig:
    """Create a test framework configuration rooted in tmp_path."""
    return FrameworkConfig(
        targets=[visual_target],
        device="desktop",
        screenshots_dir=str(tmp_path / "screenshots"),
        mismatch_threshold=1.0,
        ledger=LedgerConfig(ci=False, db_file=str(tmp_path / "visual.db")),
        storage=StorageConfig(storage_url="https://cdn.example.com/visual_test"),
        report_output_dir=str(tmp_path / "visual-report"),
    )


@pytest.fixture
def pixel_config() -> PixelDiffConfig:
    return PixelDiffConfig()


# ============================================================================
# Screenshot Fixtures
# ============================================================================


@pytest.fixture
def identity(tmp_path: Path) -> ScreenshotIdentity:
    """Identity for "X/desktop" rooted in tmp_path."""
    return ScreenshotIdentity("X - Desktop - Validate Mismatch", "desktop", str(tmp_path / "screenshots"))


def make_png(path: Path, size=(40, 30), color=(255, 255, 255), rects=()) -> Path:
    """Write a solid PNG with optional filled rectangles ((l, t, r, b), colour)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    img = Image.new("RGB", size, color)
    for (left, top, right, bottom), fill in rects:
        for x in range(left, right + 1):
            for y in range(top, bottom + 1):
                img.putpixel((x, y), fill)
    img.save(path, "PNG")
    return path


@pytest.fixture
def png_factory(tmp_path: Path):
    """Fixture that writes PNGs under tmp_path."""
    def _make(name: str, **kwargs) -> Path:
        return make_png(tmp_path / name, **kwargs)
    return _make


@pytest.fixture
def texture_factory(tmp_path: Path):
    """Fixture that writes a white PNG with a block of seeded random noise.

    ``box`` is (left, top, right, bottom), exclusive of right/bottom; None fills the image.
    """
    def _make(name: str, seed: int, size=(200, 200), box=None) -> Path:
        width, height = size
        left, top, right, bottom = box or (0, 0, width, height)
        pixels = np.full((height, width, 3), 255, dtype=np.uint8)
        rng = np.random.default_rng(seed)
        pixels[top:bottom, left:right] = rng.integers(0, 256, (bottom - top, right - left, 3), dtype=np.uint8)
        path = tmp_path / name
        Image.fromarray(pixels, "RGB").save(path, "PNG")
        return path
    return _make


# ============================================================================
# Ledger Fixtures
# ============================================================================


@pytest.fixture
def persistent_store(tmp_path: Path):
    """An enabled (CI-mode) ledger store backed by a temp SQLite file."""
    store = LedgerStore(tmp_path / "visual_desktop.db", enabled=True)
    yield store
    store.close()


@pytest.fixture
def disabled_store(tmp_path: Path) -> LedgerStore:
    """A local-mode ledger store that persists nothing."""
    return LedgerStore(tmp_path / "visual.db", enabled=False)


@pytest.fixture
def persistent_ledger(persistent_store: LedgerStore, tmp_path: Path) -> BaselineLedger:
    return BaselineLedger(
        persistent_store,
        public_url="https://cdn.example.com/visual_test",
        index=BaselineIndex(tmp_path / "baseline-desktop.json"),
    )


# ============================================================================
# Result Fixtures
# ============================================================================


@pytest.fixture
def change_explanation() -> ChangeExplanation:
    return ChangeExplanation(changes=[
        ChangeItem(
            location="Navigation Bar",
            baseline_state="Button was blue",
            current_state="Button is green",
            description="The 'Submit' button changed color from blue to green.",
        ),
    ])


@pytest.fixture
def visual_result(change_explanation: ChangeExplanation) -> VisualTestResult:
    """A mismatching target result with every optional section filled."""
    return VisualTestResult(
        test_name="Home page - Desktop - Validate Mismatch",
        device="desktop",
        url="https://example.com",
        result="skip",
        duration_seconds=2.5,
        failure_reason="Mismatch for Home page - Desktop - Validate Mismatch: 3.2%",
        mismatch_percent=3.2,
        tolerance=1.0,
        current_path="screenshots/current/desktop/Home-page-current.png",
        baseline_path="screenshots/baseline/desktop/Home-page-baseline.png",
        diff_path="screenshots/diff/desktop/Home-page-diff.png",
        image_url="https://cdn.example.com/visual_test/diff/desktop/Home-page-diff.png",
        text_differences=[TextDifference(line_index=0, baseline_line="Welcome", current_line=None)],
        explanation=change_explanation,
        readiness=ReadinessOutcome(
            satisfied=True, elapsed_ms=812, reason="All readiness signals settled",
            signals={"network": True, "dom": True},
        ),
    )


@pytest.fixture
def run_result(visual_result: VisualTestResult) -> RunResult:
    return RunResult(
        run_id="run_abc12345",
        device="desktop",
        mode="validate",
        started_at="2025-01-01T00:00:00Z",
        completed_at="2025-01-01T00:01:00Z",
        total_tests=2,
        passed=1,
        skipped=1,
        duration_seconds=60.0,
        test_results=[
            visual_result,
            VisualTestResult(test_name="Footer - Desktop", device="desktop", result="pass",
                             mismatch_percent=0.0, tolerance=1.0),
        ],
    )


# ============================================================================
# Mock Fixtures
# ============================================================================


@pytest.fixture
def mock_page() -> AsyncMock:
    """Create a mock Playwright page."""
    page = AsyncMock(spec=Page)
    page.url = "https://example.com"
    page.on = Mock()
    page.goto = AsyncMock()
    page.screenshot = AsyncMock()
    page.wait_for_selector = AsyncMock()
    page.wait_for_function = AsyncMock()
    page.evaluate = AsyncMock()
    return page


@pytest.fixture
def mock_context(mock_page: AsyncMock) -> AsyncMock:
    """Create a mock Playwright browser context."""
    context = AsyncMock(spec=BrowserContext)
    context.new_page = AsyncMock(return_value=mock_page)
    return context


@pytest.fixture
def mock_browser(mock_context: AsyncMock) -> AsyncMock:
    """Create a mock Playwright browser."""
    browser = AsyncMock(spec=Browser)
    browser.new_context = AsyncMock(return_value=mock_context)
    return browser


@pytest.fixture
def mock_storage() -> Mock:
    storage = Mock()
    storage.upload = Mock(return_value="https://cdn.example.com/uploaded.png")
    return storage

"""Page session: one page under test, its request tracker, and its screenshot identity."""

from __future__ import annotations

from playwright.async_api import Page

from src.readiness.request_tracker import RequestTracker
from src.screenshot_paths import ScreenshotIdentity


class PageSession:
    """Owns one navigation + capture cycle for a single test case on one device."""

    def __init__(self, page: Page, identity: ScreenshotIdentity):
        self.page = page
        self.identity = identity
        self.tracker = RequestTracker()
        self.tracker.track(page)

    async def navigate(self, url: str, timeout_ms: int = 60000) -> None:
        await self.page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)

    async def capture(self, selector: str | None = None, full_page: bool = True) -> str:
        """Capture the page (or one element) to the identity's current path."""
        path = self.identity.current_path
        path.parent.mkdir(parents=True, exist_ok=True)
        if selector:
            element = await self.page.wait_for_selector(selector, state="visible", timeout=10000)
            await element.screenshot(path=str(path))
        else:
            await self.page.screenshot(path=str(path), full_page=full_page)
        return str(path)

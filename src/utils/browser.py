"""Browser utilities: launches Chromium and builds per-device contexts for deterministic captures."""

from __future__ import annotations

from playwright.async_api import Browser, BrowserContext, Playwright

from src.models.config import ViewportConfig

# Hides the text caret and disables smooth scrolling.
_STABLE_RENDERING_STYLE = """
(() => {
    const style = document.createElement('style');
    style.textContent = '* { caret-color: transparent !important; scroll-behavior: auto !important; }';
    document.addEventListener('DOMContentLoaded', () => document.head.appendChild(style));
})();
"""


async def launch_browser(playwright: Playwright, headless: bool = True) -> Browser:
    """Launch Chromium for screenshot capture."""
    return await playwright.chromium.launch(
        headless=headless,
        args=["--font-render-hinting=none", "--hide-scrollbars"],
    )


async def create_device_context(browser: Browser, viewport: ViewportConfig) -> BrowserContext:
    """Create a browser context emulating one device viewport."""
    context = await browser.new_context(
        viewport={"width": viewport.width, "height": viewport.height},
        is_mobile=viewport.is_mobile,
        has_touch=viewport.is_mobile,
        device_scale_factor=viewport.device_scale_factor,
        locale="en-US",
        timezone_id="America/New_York",
        extra_http_headers={"Accept-Language": "en-US,en;q=0.9"},
    )
    await context.add_init_script(_STABLE_RENDERING_STYLE)
    return context

"""Readiness signals: independent heuristics for page visual stability.

Each signal is bounded by its own timeout and never raises: errors and timeouts are
logged and reported as ``False`` (not settled) so the remaining signals keep running.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

if TYPE_CHECKING:
    from src.executor.session import PageSession

logger = logging.getLogger(__name__)

_NO_VISIBLE_LOADERS_JS = """(selectors) => !selectors.some((sel) =>
    Array.from(document.querySelectorAll(sel)).some((el) => {
        const r = el.getBoundingClientRect();
        return r.width > 0 && r.height > 0;
    })
)"""

_NO_RUNNING_ANIMATIONS_JS = """() =>
    typeof document.getAnimations !== 'function' ||
    document.getAnimations().every((a) => a.playState !== 'running')
"""

_DOM_STABILITY_JS = """([stability, maxWait]) => new Promise((resolve) => {
    let timer = null;
    let backstop = null;
    const observer = new MutationObserver(() => {
        clearTimeout(timer);
        timer = setTimeout(() => done('stable'), stability);
    });
    function done(reason) {
        observer.disconnect();
        clearTimeout(timer);
        clearTimeout(backstop);
        resolve(reason);
    }
    observer.observe(document.documentElement || document, {
        attributes: true, childList: true, characterData: true, subtree: true,
    });
    timer = setTimeout(() => done('stable'), stability);
    backstop = setTimeout(() => done('max_wait'), maxWait);
})"""

_IMAGES_LOADED_JS = """(timeout) => Promise.race([
    Promise.all(Array.from(document.images).map((img) => img.complete
        ? Promise.resolve(true)
        : new Promise((res) => {
            img.addEventListener('load', () => res(true), { once: true });
            img.addEventListener('error', () => res(true), { once: true });
        })
    )).then(() => true),
    new Promise((res) => setTimeout(() => res(false), timeout)),
])"""


async def wait_for_network_idle(
    session: PageSession,
    timeout_ms: int = 15000,
    poll_ms: int = 100,
    settle_ms: int = 200,
) -> bool:
    """Poll the session's pending API calls until none remain."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout_ms / 1000
    try:
        while True:
            while session.tracker.pending > 0:
                if loop.time() >= deadline:
                    logger.warning(
                        "Network not idle after %dms (%d API call(s) pending), proceeding",
                        timeout_ms, session.tracker.pending,
                    )
                    return False
                await asyncio.sleep(poll_ms / 1000)
            # Catch calls chained right after the last response.
            await asyncio.sleep(settle_ms / 1000)
            if session.tracker.pending == 0:
                logger.debug("Network idle")
                return True
            logger.debug("%d API call(s) started while settling, polling again",
                         session.tracker.pending)
    except Exception as e:
        logger.warning("Network idle check failed: %s", e)
        return False


async def wait_for_loaders_hidden(
    page: Page,
    selectors: list[str],
    timeout_ms: int = 10000,
    poll_ms: int = 200,
) -> bool:
    """Wait until no conventional loader/spinner element has a rendered box."""
    try:
        await page.wait_for_function(
            _NO_VISIBLE_LOADERS_JS, arg=selectors, polling=poll_ms, timeout=timeout_ms,
        )
        logger.debug("No visible loaders")
        return True
    except PlaywrightTimeoutError:
        logger.warning("Loader still visible after %dms, proceeding", timeout_ms)
        return False
    except Exception as e:
        logger.warning("Loader check failed: %s", e)
        return False


async def wait_for_animations(page: Page, timeout_ms: int = 5000, poll_ms: int = 100) -> bool:
    """Wait until no active animation reports a running play state."""
    try:
        await page.wait_for_function(
            _NO_RUNNING_ANIMATIONS_JS, polling=poll_ms, timeout=timeout_ms,
        )
        logger.debug("Animations finished")
        return True
    except PlaywrightTimeoutError:
        logger.warning("Animations still running after %dms, proceeding", timeout_ms)
        return False
    except Exception as e:
        logger.warning("Animation check failed: %s", e)
        return False


async def wait_for_dom_stability(
    page: Page,
    stability_duration_ms: int = 500,
    max_wait_ms: int = 5000,
) -> bool:
    """Wait for a quiet period of ``stability_duration_ms`` with no DOM mutations."""
    try:
        reason = await asyncio.wait_for(
            page.evaluate(_DOM_STABILITY_JS, [stability_duration_ms, max_wait_ms]),
            timeout=(max_wait_ms + 1000) / 1000,
        )
    except asyncio.TimeoutError:
        logger.warning("DOM stability check did not return within %dms, proceeding", max_wait_ms)
        return False
    except Exception as e:
        logger.warning("DOM stability check failed: %s", e)
        return False

    if reason == "max_wait":
        logger.info("DOM still mutating after %dms (constant animation), proceeding", max_wait_ms)
        return False
    logger.debug("DOM stable for %dms", stability_duration_ms)
    return True


async def wait_for_images(page: Page, timeout_ms: int = 10000) -> bool:
    """Wait for every image element to finish loading (or erroring)."""
    try:
        loaded = await asyncio.wait_for(
            page.evaluate(_IMAGES_LOADED_JS, timeout_ms),
            timeout=(timeout_ms + 1000) / 1000,
        )
    except asyncio.TimeoutError:
        logger.warning("Image load check did not return within %dms, proceeding", timeout_ms)
        return False
    except Exception as e:
        logger.warning("Image load check failed: %s", e)
        return False

    if not loaded:
        logger.warning("Images still loading after %dms, proceeding", timeout_ms)
        return False
    logger.debug("All images loaded")
    return True

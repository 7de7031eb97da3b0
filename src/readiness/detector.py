"""Decides when a page is stable enough to screenshot."""

from __future__ import annotations

import asyncio
import logging
import time
from functools import partial
from typing import TYPE_CHECKING, Awaitable, Callable, Optional

from src.models.config import ReadinessConfig
from src.models.visual import ReadinessOutcome

from .signals import (
    wait_for_animations,
    wait_for_dom_stability,
    wait_for_images,
    wait_for_loaders_hidden,
    wait_for_network_idle,
)

if TYPE_CHECKING:
    from src.executor.session import PageSession

logger = logging.getLogger(__name__)

SignalFn = Callable[["PageSession"], Awaitable[bool]]


def default_signals(config: ReadinessConfig) -> dict[str, SignalFn]:
    """Build the five standard signals, ordered by typical resolution speed."""
    return {
        "network": partial(
            wait_for_network_idle,
            timeout_ms=config.network_timeout_ms,
            poll_ms=config.network_poll_ms,
            settle_ms=config.network_settle_ms,
        ),
        "loaders": lambda s: wait_for_loaders_hidden(
            s.page, config.loader_selectors,
            timeout_ms=config.loader_timeout_ms, poll_ms=config.loader_poll_ms,
        ),
        "animations": lambda s: wait_for_animations(
            s.page, timeout_ms=config.animation_timeout_ms, poll_ms=config.animation_poll_ms,
        ),
        "dom": lambda s: wait_for_dom_stability(
            s.page,
            stability_duration_ms=config.stability_duration_ms,
            max_wait_ms=config.stability_max_wait_ms,
        ),
        "images": lambda s: wait_for_images(s.page, timeout_ms=config.image_timeout_ms),
    }


class PageReadinessDetector:
    """Runs every readiness signal concurrently under one overall timeout.

    Readiness is best-effort: when the overall timeout elapses the remaining
    signals are cancelled and the outcome says to proceed anyway.
    """

    def __init__(
        self,
        config: ReadinessConfig | None = None,
        signals: Optional[dict[str, SignalFn]] = None,
    ):
        self.config = config or ReadinessConfig()
        self.signals = signals if signals is not None else default_signals(self.config)

    async def wait_until_ready(
        self, session: PageSession, overall_timeout_ms: int | None = None,
    ) -> ReadinessOutcome:
        timeout_ms = overall_timeout_ms if overall_timeout_ms is not None else self.config.overall_timeout_ms
        start = time.monotonic()
        logger.debug("Waiting for page readiness (%d signals, timeout=%dms)",
                     len(self.signals), timeout_ms)

        tasks = {
            name: asyncio.create_task(signal(session), name=f"readiness:{name}")
            for name, signal in self.signals.items()
        }
        if tasks:
            _, pending = await asyncio.wait(tasks.values(), timeout=timeout_ms / 1000)
        else:
            pending = set()

        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        results: dict[str, bool] = {}
        for name, task in tasks.items():
            if task in pending or task.cancelled():
                results[name] = False
            elif task.exception() is not None:
                logger.warning("Readiness signal '%s' raised: %s", name, task.exception())
                results[name] = False
            else:
                results[name] = bool(task.result())

        elapsed_ms = int((time.monotonic() - start) * 1000)
        abandoned = sorted(name for name, task in tasks.items() if task in pending)
        unsettled = sorted(name for name, ok in results.items() if not ok)

        if abandoned:
            reason = (f"Overall timeout of {timeout_ms}ms reached waiting for "
                      f"{', '.join(abandoned)}; proceeding anyway")
            logger.warning("Page readiness: %s", reason)
        elif unsettled:
            reason = f"Proceeding with unsettled signals: {', '.join(unsettled)}"
            logger.info("Page readiness: %s (%dms)", reason, elapsed_ms)
        else:
            reason = "All readiness signals settled"
            logger.info("Page ready in %dms", elapsed_ms)

        return ReadinessOutcome(
            satisfied=not abandoned,
            elapsed_ms=elapsed_ms,
            reason=reason,
            signals=results,
        )

"""Request tracker: counts in-flight API calls on a page session."""

from __future__ import annotations

import logging

from playwright.async_api import Page, Request

logger = logging.getLogger(__name__)

# Static assets and scripts are covered by the image-load and DOM-stability signals.
TRACKED_RESOURCE_TYPES = frozenset({"fetch", "xhr"})


class RequestTracker:
    """Tracks pending fetch/XHR requests for a single page."""

    def __init__(self):
        self._pending: set[Request] = set()
        self._page: Page | None = None

    def track(self, page: Page) -> None:
        """Attach request lifecycle listeners to a page."""
        if self._page is page:
            return
        self._page = page
        page.on("request", self._on_request)
        page.on("requestfinished", self._on_done)
        page.on("requestfailed", self._on_done)
        logger.debug("Request tracking attached to %s", getattr(page, "url", "page"))

    @property
    def pending(self) -> int:
        return len(self._pending)

    def _on_request(self, request: Request) -> None:
        if request.resource_type in TRACKED_RESOURCE_TYPES:
            self._pending.add(request)

    def _on_done(self, request: Request) -> None:
        # Failure counts as completion for quiescence purposes.
        self._pending.discard(request)

"""Metadata extraction from a fully rendered page.

Expensive: used only when the static HTML does not carry a title.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from app.core.config import Settings
from app.models.metadata.document import Metadata
from app.workers.browser import BrowserEngine, BrowserPage, NetworkIdle, PageProfile
from app.workers.errors import ScrapeError
from app.workers.favicon import resolve_favicon

logger = logging.getLogger(__name__)

BLOCKED_RESOURCE_TYPES = frozenset({"image", "media", "font", "stylesheet", "other"})

LOADING_TITLE_KEYWORDS = ["loading", "please wait", "请稍候", "加载中", "wait"]

DEFAULT_FAVICON = "/favicon.ico"

# At most two connections left open, like long-polls and analytics beacons.
NAVIGATION_IDLE = NetworkIdle(max_inflight=2, quiet_ms=500)

DOCUMENT_COMPLETE = "() => document.readyState === 'complete'"

TITLE_SETTLED = """
(keywords) => {
    const title = (document.title || '').toLowerCase();
    return !keywords.some((keyword) => title.includes(keyword.toLowerCase()));
}
"""

# Returns the raw favicon href; it is resolved against ``url`` afterwards.
EXTRACT_METADATA = """
() => {
    const meta = (key) => {
        const el = document.querySelector(`meta[name="${key}"]`)
            || document.querySelector(`meta[property="${key}"]`);
        return (el && el.getAttribute('content')) || '';
    };
    const icon = document.querySelector('link[rel="icon"]')
        || document.querySelector('link[rel="shortcut icon"]')
        || document.querySelector('link[rel="apple-touch-icon"]');

    const ogTitle = meta('og:title');
    const ogDescription = meta('og:description');
    const twitterTitle = meta('twitter:title');
    const twitterDescription = meta('twitter:description');

    return {
        title: ogTitle || twitterTitle || document.title || '',
        description: ogDescription || twitterDescription || meta('description'),
        keywords: meta('keywords'),
        url: window.location.href,
        favicon: (icon && icon.getAttribute('href')) || '',
        ogTitle: ogTitle,
        ogDescription: ogDescription,
        ogImage: meta('og:image'),
        ogType: meta('og:type'),
        ogUrl: meta('og:url'),
        twitterCard: meta('twitter:card'),
        twitterTitle: twitterTitle,
        twitterDescription: twitterDescription,
        twitterImage: meta('twitter:image'),
        author: meta('author'),
        publisher: meta('publisher'),
        charset: document.characterSet || '',
        language: document.documentElement.lang || '',
        robots: meta('robots'),
    };
}
"""


@dataclass(frozen=True)
class BrowserTimeouts:
    """Seconds allowed for navigation and each readiness step."""

    navigation: float = 20.0
    head: float = 5.0
    ready_state: float = 10.0
    settle: float = 2.0
    title: float = 5.0

    @classmethod
    def from_settings(cls, settings: Settings) -> BrowserTimeouts:
        return cls(
            navigation=settings.browser_navigation_timeout,
            head=settings.browser_head_timeout,
            ready_state=settings.browser_ready_state_timeout,
            settle=settings.browser_settle_delay,
            title=settings.browser_title_timeout,
        )


class DynamicExtractor:
    """Renders the page in a headless browser and reads metadata from the DOM."""

    def __init__(
        self,
        engine: BrowserEngine,
        timeouts: BrowserTimeouts | None = None,
        profile: PageProfile | None = None,
    ) -> None:
        self._engine = engine
        self._timeouts = timeouts or BrowserTimeouts()
        self._profile = profile or PageProfile()

    async def fetch(self, url: str) -> Metadata:
        """Render *url* and return its metadata.

        Raises:
            ScrapeError: the browser could not open the page, navigation
                failed or timed out, or in-page evaluation failed.
        """
        page = await self._engine.new_page(self._profile)
        try:
            await page.block_resources(BLOCKED_RESOURCE_TYPES)
            await page.navigate(
                url,
                idle=NAVIGATION_IDLE,
                timeout_ms=self._timeouts.navigation * 1000,
            )
            await self._wait_until_ready(page, url)
            raw = await page.evaluate(EXTRACT_METADATA)
        finally:
            await page.close()

        if not isinstance(raw, dict):
            raise ScrapeError(f"Unexpected metadata payload for {url}: {type(raw).__name__}")

        metadata = Metadata.model_validate(raw)
        final_url = metadata.url or url
        return metadata.model_copy(
            update={
                "url": final_url,
                "favicon": resolve_favicon(metadata.favicon or DEFAULT_FAVICON, final_url),
            }
        )

    async def close(self) -> None:
        """Shut down the shared browser."""
        await self._engine.close()

    async def _wait_until_ready(self, page: BrowserPage, url: str) -> None:
        # Each step only improves the odds; a miss still proceeds to extraction.
        t = self._timeouts
        if not await page.wait_for_selector("head", timeout_ms=t.head * 1000):
            logger.debug("No <head> after %.1fs on %s", t.head, url)
        if not await page.wait_for_function(DOCUMENT_COMPLETE, timeout_ms=t.ready_state * 1000):
            logger.debug("readyState not complete after %.1fs on %s", t.ready_state, url)
        await asyncio.sleep(t.settle)
        if not await page.wait_for_function(
            TITLE_SETTLED, arg=LOADING_TITLE_KEYWORDS, timeout_ms=t.title * 1000
        ):
            logger.debug("Title still looks like a placeholder on %s", url)

from __future__ import annotations

import logging

from pydantic import AnyHttpUrl, ValidationError

from app.core.config import Settings
from app.models.metadata.document import Metadata
from app.services.scrape.cache import MetadataCache
from app.workers.browser import PlaywrightBrowserEngine
from app.workers.dynamic_extractor import BrowserTimeouts, DynamicExtractor
from app.workers.errors import InvalidURLError, ScrapeError
from app.workers.static_extractor import StaticExtractor, close_http_client

logger = logging.getLogger(__name__)

SCRAPE_FAILED = "Failed to scrape metadata"


class ScrapeService:
    """Cache-first metadata lookup with a static → browser fallback.

    One instance lives for the whole process and owns the cache and the
    shared browser.
    """

    def __init__(
        self,
        cache: MetadataCache,
        static: StaticExtractor,
        dynamic: DynamicExtractor,
    ) -> None:
        self._cache = cache
        self._static = static
        self._dynamic = dynamic

    @classmethod
    def from_settings(cls, settings: Settings) -> ScrapeService:
        """Production wiring: httpx for static pages, Playwright for the rest."""
        return cls(
            cache=MetadataCache(ttl_seconds=settings.cache_ttl_seconds),
            static=StaticExtractor(timeout=settings.static_fetch_timeout),
            dynamic=DynamicExtractor(
                PlaywrightBrowserEngine(executable_path=settings.browser_executable_path),
                timeouts=BrowserTimeouts.from_settings(settings),
            ),
        )

    @property
    def cache(self) -> MetadataCache:
        return self._cache

    async def get_metadata(self, url: str, use_cache: bool = True) -> Metadata:
        """Return metadata for *url*.

        Cached results younger than the TTL are returned without touching the
        network.  Otherwise the raw HTML is tried first and accepted if it
        yields a title; the headless browser handles everything else.

        Raises:
            InvalidURLError: *url* is not an absolute http(s) URL.
            ScrapeError: the browser fallback failed or found neither a
                title nor a description.
        """
        try:
            AnyHttpUrl(url)
        except (ValidationError, TypeError) as exc:
            raise InvalidURLError(f"Invalid URL: {url!r}") from exc

        if use_cache:
            cached = self._cache.get(url)
            if cached is not None:
                logger.info("Metadata cache hit for %s", url)
                return cached

        partial = await self._static.fetch(url)
        if partial is not None and partial.title:
            metadata = partial.to_metadata()
            if use_cache:
                self._cache.put(url, metadata)
            return metadata

        logger.info("Static extraction insufficient for %s, rendering in browser", url)
        try:
            metadata = await self._dynamic.fetch(url)
            if not metadata.is_usable():
                raise ScrapeError(f"no title or description found at {url}")
        except Exception as exc:
            raise ScrapeError(f"{SCRAPE_FAILED}: {exc}") from exc

        if use_cache:
            self._cache.put(url, metadata)
        return metadata

    async def close(self) -> None:
        """Release the shared HTTP client and the browser."""
        await close_http_client()
        await self._dynamic.close()

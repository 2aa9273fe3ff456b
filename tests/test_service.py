from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from app.models.metadata.document import Metadata, PartialMetadata
from app.services.scrape.cache import MetadataCache
from app.services.scrape.service import ScrapeService
from app.workers.dynamic_extractor import BrowserTimeouts, DynamicExtractor
from app.workers.errors import BrowserError, InvalidURLError, ScrapeError
from app.workers.static_extractor import StaticExtractor
from tests.fakes import FakeEngine, FakePage

URL = "https://example.com/"

_STATIC = PartialMetadata(title="Static Title", description="Static desc", url=URL)
_DYNAMIC = Metadata(title="Rendered Title", url="https://example.com/final")


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return MetadataCache(clock=clock)


@pytest.fixture
def static():
    mock = AsyncMock(spec=StaticExtractor)
    mock.fetch.return_value = _STATIC
    return mock


@pytest.fixture
def dynamic():
    mock = AsyncMock(spec=DynamicExtractor)
    mock.fetch.return_value = _DYNAMIC
    return mock


@pytest.fixture
def service(cache, static, dynamic):
    return ScrapeService(cache, static, dynamic)


class TestScrapeService:
    async def test_static_result_with_title_is_used_and_cached(
        self, service, cache, static, dynamic
    ):
        result = await service.get_metadata(URL)

        assert result.title == "Static Title"
        assert result.keywords == ""
        static.fetch.assert_called_once_with(URL)
        dynamic.fetch.assert_not_called()
        assert cache.get(URL) == result

    async def test_cache_hit_skips_both_extractors(self, service, static, dynamic):
        first = await service.get_metadata(URL)
        second = await service.get_metadata(URL)

        assert second is first
        assert static.fetch.call_count == 1
        assert dynamic.fetch.call_count == 0

    async def test_expired_entry_triggers_new_extraction(self, service, clock, static):
        await service.get_metadata(URL)
        clock.now += 300
        await service.get_metadata(URL)

        assert static.fetch.call_count == 2

    async def test_use_cache_false_neither_reads_nor_writes(self, service, cache, static):
        await service.get_metadata(URL, use_cache=False)
        await service.get_metadata(URL, use_cache=False)

        assert static.fetch.call_count == 2
        assert len(cache) == 0

    async def test_static_without_title_falls_back_to_browser(
        self, service, cache, static, dynamic
    ):
        static.fetch.return_value = PartialMetadata(url=URL)

        result = await service.get_metadata(URL)

        assert result == _DYNAMIC
        dynamic.fetch.assert_called_once_with(URL)
        assert cache.get(URL) == _DYNAMIC

    async def test_static_failure_falls_back_to_browser(self, service, static, dynamic):
        static.fetch.return_value = None

        result = await service.get_metadata(URL)

        assert result == _DYNAMIC
        assert dynamic.fetch.call_count == 1

    async def test_browser_failure_is_wrapped_and_not_cached(
        self, service, cache, static, dynamic
    ):
        static.fetch.return_value = None
        dynamic.fetch.side_effect = BrowserError("Navigation to x timed out after 20s")

        with pytest.raises(ScrapeError) as exc_info:
            await service.get_metadata(URL)

        assert "failed to scrape metadata" in str(exc_info.value).lower()
        assert "timed out" in str(exc_info.value)
        assert URL not in cache

    async def test_browser_failure_is_left_to_the_caller_to_log(
        self, service, static, dynamic
    ):
        static.fetch.return_value = None
        dynamic.fetch.side_effect = BrowserError("Navigation to x timed out after 20s")

        with patch("app.services.scrape.service.logger") as mock_logger:
            with pytest.raises(ScrapeError):
                await service.get_metadata(URL)
        mock_logger.error.assert_not_called()

    async def test_browser_result_without_title_or_description_is_failure(
        self, service, cache, static, dynamic
    ):
        static.fetch.return_value = None
        dynamic.fetch.return_value = Metadata(url=URL, charset="UTF-8")

        with pytest.raises(ScrapeError, match="Failed to scrape metadata"):
            await service.get_metadata(URL)
        assert len(cache) == 0

    @pytest.mark.parametrize("bad", ["", "not-a-url", "example.com", "ftp://example.com/x"])
    async def test_invalid_url_rejected_before_extraction(self, service, static, bad):
        with pytest.raises(InvalidURLError):
            await service.get_metadata(bad)
        static.fetch.assert_not_called()

    async def test_very_long_url_is_accepted(self, service, cache, static):
        long_url = "https://example.com/search?q=" + "a" * 2100

        result = await service.get_metadata(long_url)

        assert result.title == "Static Title"
        static.fetch.assert_called_once_with(long_url)
        assert long_url in cache

    async def test_concurrent_misses_for_same_url_both_complete(
        self, service, cache, static
    ):
        async def _slow_fetch(url):
            await asyncio.sleep(0.01)
            return _STATIC

        static.fetch.side_effect = _slow_fetch

        first, second = await asyncio.gather(
            service.get_metadata(URL), service.get_metadata(URL)
        )

        assert first.title == second.title == "Static Title"
        assert static.fetch.call_count == 2
        assert len(cache) == 1

    async def test_close_releases_http_client_and_browser(self, service, dynamic):
        with patch(
            "app.services.scrape.service.close_http_client", new_callable=AsyncMock
        ) as mock_close:
            await service.close()
        mock_close.assert_awaited_once()
        dynamic.close.assert_awaited_once()


class TestScrapeServiceWithBrowserDouble:
    """Full orchestrator path with a fake browser engine instead of mocks."""

    async def test_navigation_timeout_surfaces_marker_and_skips_cache(self, cache, static):
        static.fetch.return_value = PartialMetadata(url=URL)
        page = FakePage(navigate_error=BrowserError("Navigation to url timed out after 20s"))
        dynamic = DynamicExtractor(FakeEngine(page), timeouts=BrowserTimeouts(settle=0))
        service = ScrapeService(cache, static, dynamic)

        with pytest.raises(ScrapeError, match="Failed to scrape metadata"):
            await service.get_metadata(URL)

        assert page.closed
        assert URL not in cache

"""Headless browser engine behind a small async interface.

``BrowserEngine`` / ``BrowserPage`` are the contract the dynamic extractor
depends on; ``PlaywrightBrowserEngine`` is the production implementation.
Tests substitute hand-written fakes.

Readiness waits return ``True``/``False`` instead of raising: a timeout there
is an expected outcome, not an error.  Only ``navigate`` and ``evaluate``
raise, always as ``BrowserError``.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Collection, Protocol

from playwright.async_api import Browser, BrowserContext, Page, Playwright, Route, async_playwright
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from app.core.constants import BROWSER_HEADERS, DESKTOP_USER_AGENT, USER_AGENT_METADATA
from app.workers.errors import BrowserError

logger = logging.getLogger(__name__)

LAUNCH_ARGS: list[str] = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-accelerated-2d-canvas",
    "--disable-gpu",
]


@dataclass(frozen=True)
class PageProfile:
    """How a freshly opened page presents itself to the site."""

    viewport_width: int = 1920
    viewport_height: int = 1080
    user_agent: str = DESKTOP_USER_AGENT
    user_agent_metadata: dict[str, Any] = field(default_factory=lambda: dict(USER_AGENT_METADATA))
    extra_headers: dict[str, str] = field(default_factory=lambda: dict(BROWSER_HEADERS))


@dataclass(frozen=True)
class NetworkIdle:
    """Navigation settles once no more than ``max_inflight`` requests stay
    open for ``quiet_ms``."""

    max_inflight: int = 2
    quiet_ms: float = 500.0


class InflightRequests:
    """Counts requests a page has started but not yet finished or failed."""

    POLL_SECONDS = 0.05

    def __init__(self) -> None:
        self.count = 0

    def attach(self, page: Page) -> None:
        page.on("request", self._started)
        page.on("requestfinished", self._settled)
        page.on("requestfailed", self._settled)

    def _started(self, request: Any) -> None:
        self.count += 1

    def _settled(self, request: Any) -> None:
        self.count = max(0, self.count - 1)

    async def wait_until_idle(self, max_inflight: int, quiet_seconds: float) -> None:
        """Return once the count has stayed at or below *max_inflight* for
        *quiet_seconds*.  Has no timeout of its own."""
        loop = asyncio.get_running_loop()
        quiet_since: float | None = None
        while True:
            now = loop.time()
            if self.count <= max_inflight:
                if quiet_since is None:
                    quiet_since = now
                if now - quiet_since >= quiet_seconds:
                    return
            else:
                quiet_since = None
            await asyncio.sleep(self.POLL_SECONDS)


class BrowserPage(Protocol):
    async def block_resources(self, resource_types: Collection[str]) -> None: ...

    async def navigate(self, url: str, *, idle: NetworkIdle, timeout_ms: float) -> None: ...

    async def wait_for_selector(self, selector: str, *, timeout_ms: float) -> bool: ...

    async def wait_for_function(
        self, expression: str, *, arg: Any = None, timeout_ms: float
    ) -> bool: ...

    async def evaluate(self, expression: str) -> Any: ...

    async def close(self) -> None: ...


class BrowserEngine(Protocol):
    async def new_page(self, profile: PageProfile) -> BrowserPage: ...

    async def close(self) -> None: ...


class PlaywrightPage:
    """``BrowserPage`` over a Playwright page living in its own context."""

    def __init__(self, context: BrowserContext, page: Page) -> None:
        self._context = context
        self._page = page

    async def block_resources(self, resource_types: Collection[str]) -> None:
        blocked = frozenset(resource_types)

        async def _handle(route: Route) -> None:
            if route.request.resource_type in blocked:
                await route.abort()
            else:
                await route.continue_()

        await self._page.route("**/*", _handle)

    async def navigate(self, url: str, *, idle: NetworkIdle, timeout_ms: float) -> None:
        """Load *url*, then wait for the network to go quiet, all within *timeout_ms*."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout_ms / 1000
        inflight = InflightRequests()
        inflight.attach(self._page)
        try:
            await self._page.goto(url, wait_until="load", timeout=timeout_ms)
            await asyncio.wait_for(
                inflight.wait_until_idle(idle.max_inflight, idle.quiet_ms / 1000),
                timeout=max(deadline - loop.time(), 0),
            )
        except (PlaywrightTimeoutError, asyncio.TimeoutError) as exc:
            raise BrowserError(
                f"Navigation to {url} timed out after {timeout_ms / 1000:.0f}s"
            ) from exc
        except PlaywrightError as exc:
            raise BrowserError(f"Navigation to {url} failed: {exc}") from exc

    async def wait_for_selector(self, selector: str, *, timeout_ms: float) -> bool:
        try:
            await self._page.wait_for_selector(selector, state="attached", timeout=timeout_ms)
        except PlaywrightError:
            return False
        return True

    async def wait_for_function(
        self, expression: str, *, arg: Any = None, timeout_ms: float
    ) -> bool:
        try:
            await self._page.wait_for_function(expression, arg=arg, timeout=timeout_ms)
        except PlaywrightError:
            return False
        return True

    async def evaluate(self, expression: str) -> Any:
        try:
            return await self._page.evaluate(expression)
        except PlaywrightError as exc:
            raise BrowserError(f"In-page evaluation failed: {exc}") from exc

    async def close(self) -> None:
        try:
            await self._page.close()
            await self._context.close()
        except PlaywrightError as exc:
            logger.warning("Failed to close browser page: %s", exc)


class PlaywrightBrowserEngine:
    """One lazily launched Chromium shared by every page.

    The browser survives across requests; only ``close`` shuts it down.
    """

    def __init__(self, executable_path: str | None = None) -> None:
        self._executable_path = executable_path
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._lock = asyncio.Lock()

    async def _get_browser(self) -> Browser:
        async with self._lock:
            if self._browser is None or not self._browser.is_connected():
                try:
                    if self._playwright is None:
                        self._playwright = await async_playwright().start()
                    self._browser = await self._playwright.chromium.launch(
                        headless=True,
                        args=LAUNCH_ARGS,
                        executable_path=self._executable_path,
                    )
                except PlaywrightError as exc:
                    raise BrowserError(f"Failed to launch browser: {exc}") from exc
                logger.info(
                    "Browser launched (executable=%s).", self._executable_path or "bundled"
                )
            return self._browser

    async def new_page(self, profile: PageProfile) -> BrowserPage:
        browser = await self._get_browser()
        context: BrowserContext | None = None
        try:
            context = await browser.new_context(
                viewport={"width": profile.viewport_width, "height": profile.viewport_height},
                user_agent=profile.user_agent,
                extra_http_headers=profile.extra_headers,
            )
            page = await context.new_page()
            cdp = await context.new_cdp_session(page)
            await cdp.send(
                "Emulation.setUserAgentOverride",
                {
                    "userAgent": profile.user_agent,
                    "acceptLanguage": profile.extra_headers.get("Accept-Language", ""),
                    "userAgentMetadata": profile.user_agent_metadata,
                },
            )
        except PlaywrightError as exc:
            if context is not None:
                await context.close()
            raise BrowserError(f"Failed to open browser page: {exc}") from exc
        return PlaywrightPage(context, page)

    async def close(self) -> None:
        async with self._lock:
            if self._browser is not None:
                await self._browser.close()
                self._browser = None
            if self._playwright is not None:
                await self._playwright.stop()
                self._playwright = None
                logger.info("Browser closed.")

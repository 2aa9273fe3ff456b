"""Cheap metadata extraction from the raw HTML response.

Uses httpx.AsyncClient which is meant to be long-lived and reused.
A single shared client is managed by the module; see ``get_http_client``
and ``close_http_client`` for lifecycle hooks.

Failures here are routine (bot walls, slow hosts, SPA shells) and only mean
"try the browser next", so ``StaticExtractor.fetch`` never raises.
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Optional

import httpx
from bs4 import BeautifulSoup

from app.core.config import settings
from app.core.constants import BROWSER_HEADERS, DESKTOP_USER_AGENT
from app.models.metadata.document import PartialMetadata
from app.workers.favicon import resolve_favicon

logger = logging.getLogger(__name__)

REQUEST_HEADERS: dict[str, str] = {"User-Agent": DESKTOP_USER_AGENT, **BROWSER_HEADERS}

_CHARSET_RE = re.compile(r"charset\s*=\s*([\w-]+)", re.IGNORECASE)

_FAVICON_RELS = (["icon"], ["shortcut", "icon"], ["apple-touch-icon"])

# Module-level shared client
_http_client: Optional[httpx.AsyncClient] = None


def get_http_client() -> httpx.AsyncClient:
    """Return the shared AsyncClient.  Creates one if missing."""
    global _http_client  # noqa: PLW0603
    if _http_client is None or _http_client.is_closed:
        _http_client = httpx.AsyncClient(
            timeout=httpx.Timeout(settings.static_fetch_timeout),
            follow_redirects=True,
            headers=REQUEST_HEADERS,
        )
    return _http_client


async def close_http_client() -> None:
    """Close the shared AsyncClient gracefully."""
    global _http_client  # noqa: PLW0603
    if _http_client is not None and not _http_client.is_closed:
        await _http_client.aclose()
        _http_client = None
        logger.info("HTTP client closed.")


def _meta_content(soup: BeautifulSoup, key: str) -> str | None:
    """Content of ``<meta name=key>`` or ``<meta property=key>``, if non-empty."""
    pattern = re.compile(f"^{re.escape(key)}$", re.IGNORECASE)
    for attr in ("name", "property"):
        tag = soup.find("meta", attrs={attr: pattern})
        if tag is not None and tag.get("content"):
            return tag["content"].strip()
    return None


def _charset(soup: BeautifulSoup) -> str | None:
    tag = soup.find("meta", charset=True)
    if tag is not None:
        return tag["charset"].strip()
    tag = soup.find("meta", attrs={"http-equiv": re.compile("^content-type$", re.IGNORECASE)})
    if tag is not None:
        match = _CHARSET_RE.search(tag.get("content", ""))
        if match:
            return match.group(1)
    return None


def _favicon_href(soup: BeautifulSoup) -> str | None:
    # Exact rel values, in priority order; bs4 splits rel into a list.
    links = soup.find_all("link", href=True)
    for rel in _FAVICON_RELS:
        for tag in links:
            if [v.lower() for v in tag.get("rel", [])] == rel and tag["href"].strip():
                return tag["href"].strip()
    return None


def extract_static_metadata(html: str, url: str) -> PartialMetadata:
    """Parse the standard metadata tags out of *html* served from *url*.

    ``title`` prefers ``og:title``, then ``twitter:title``, then ``<title>``;
    ``description`` prefers ``og:description``, then
    ``twitter:description``, then ``<meta name="description">``.
    """
    soup = BeautifulSoup(html, "html.parser")

    og_title = _meta_content(soup, "og:title")
    og_description = _meta_content(soup, "og:description")
    twitter_title = _meta_content(soup, "twitter:title")
    twitter_description = _meta_content(soup, "twitter:description")
    page_title = soup.title.get_text(strip=True) if soup.title else None

    favicon = _favicon_href(soup)
    language = soup.html.get("lang") if soup.html else None

    return PartialMetadata(
        title=og_title or twitter_title or page_title,
        description=og_description or twitter_description or _meta_content(soup, "description"),
        keywords=_meta_content(soup, "keywords"),
        url=url,
        favicon=resolve_favicon(favicon, url) if favicon else None,
        og_title=og_title,
        og_description=og_description,
        og_image=_meta_content(soup, "og:image"),
        og_type=_meta_content(soup, "og:type"),
        og_url=_meta_content(soup, "og:url"),
        twitter_card=_meta_content(soup, "twitter:card"),
        twitter_title=twitter_title,
        twitter_description=twitter_description,
        twitter_image=_meta_content(soup, "twitter:image"),
        author=_meta_content(soup, "author"),
        publisher=_meta_content(soup, "publisher"),
        charset=_charset(soup),
        language=language,
        robots=_meta_content(soup, "robots"),
    )


class StaticExtractor:
    """Single bounded GET followed by HTML tag parsing."""

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
    ) -> None:
        self._client = client
        self._timeout = settings.static_fetch_timeout if timeout is None else timeout

    async def fetch(self, url: str) -> PartialMetadata | None:
        """Return whatever the raw HTML of *url* declares, or ``None`` on failure.

        The whole request, body included, is cancelled once the timeout
        elapses.  Non-2xx responses count as failures.
        """
        client = self._client or get_http_client()
        try:
            response = await asyncio.wait_for(
                client.get(url, headers=REQUEST_HEADERS),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("Static fetch timed out after %.1fs for %s", self._timeout, url)
            return None
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.warning("Static fetch failed for %s: %s", url, exc)
            return None

        if not response.is_success:
            logger.warning("Static fetch for %s returned HTTP %d", url, response.status_code)
            return None

        return extract_static_metadata(response.text, url)

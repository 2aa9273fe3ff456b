from __future__ import annotations

from urllib.parse import urlsplit


def resolve_favicon(href: str, page_url: str) -> str:
    """Turn a ``<link rel="icon">`` href into an absolute URL.

    Mirrors how a browser would read ``window.location`` for *page_url*:

    - ``data:`` URIs and ``http(s)`` URLs are returned verbatim
    - ``//host/icon.png`` takes the page's scheme
    - ``/icon.png`` is joined to the page origin
    - ``icon.png`` is joined to the page origin with a ``/`` separator
    """
    if href.startswith("data:") or href.startswith("http"):
        return href

    parts = urlsplit(page_url)
    if href.startswith("//"):
        return f"{parts.scheme}:{href}"

    origin = f"{parts.scheme}://{parts.netloc}"
    if href.startswith("/"):
        return f"{origin}{href}"
    return f"{origin}/{href}"

class ScrapeError(Exception):
    """Raised when metadata could not be collected for a URL."""


class InvalidURLError(ScrapeError):
    """Raised before any network access when the URL is not absolute http(s)."""


class BrowserError(ScrapeError):
    """Raised when the headless browser cannot launch or navigate."""

"""
Exception hierarchy for the crawler and search engine.
"""


class CrawlerError(Exception):
    """Base class for all search_crawler errors."""


class InvalidSeedError(CrawlerError):
    """Seed URL cannot be parsed as an absolute http(s) URL."""

    def __init__(self, seed_url: str):
        super().__init__(f"Invalid seed URL: {seed_url!r}")
        self.seed_url = seed_url


class FetchError(CrawlerError):
    """A single URL could not be retrieved as text."""

    def __init__(self, url: str, reason: str, status_code: int = 0):
        super().__init__(f"Failed to fetch {url}: {reason}")
        self.url = url
        self.reason = reason
        self.status_code = status_code


class ParseError(CrawlerError):
    """Markup of a single document could not be processed."""

    def __init__(self, url: str, reason: str):
        super().__init__(f"Failed to parse {url}: {reason}")
        self.url = url
        self.reason = reason


class IndexCorruptionError(CrawlerError):
    """An inverted index invariant does not hold."""

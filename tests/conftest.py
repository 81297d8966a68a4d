"""
Shared fixtures for the search crawler tests.
"""

import asyncio

import pytest

from search_crawler.crawler.fetcher import FetchResult
from search_crawler.exceptions import FetchError
from search_crawler.storage.inverted_index import InvertedIndex


class FakeFetcher:
    """In-memory stand-in for WebFetcher serving a fixed set of pages."""

    def __init__(self, pages, status_codes=None):
        self.pages = dict(pages)
        self.status_codes = dict(status_codes or {})
        self.requested = []
        self.started = False
        self.closed = False

    async def start(self):
        self.started = True

    async def close(self):
        self.closed = True

    async def fetch(self, url):
        self.requested.append(url)
        await asyncio.sleep(0)

        if url in self.status_codes:
            status = self.status_codes[url]
            raise FetchError(url, f"HTTP {status}", status)
        if url not in self.pages:
            raise FetchError(url, "HTTP 404", 404)

        return FetchResult(url=url, status_code=200, content=self.pages[url],
                           content_type='text/html')


def page(body, *links):
    """Build a small HTML page with the given body text and anchors."""
    anchors = ''.join(f'<a href="{link}"></a>' for link in links)
    return f"<html><body><p>{body}</p>{anchors}</body></html>"


@pytest.fixture
def small_index():
    index = InvertedIndex()
    index.add_all(['cat', 'dog'], 'a.html')
    index.add_all(['cat', 'cat', 'bird'], 'b.html')
    index.add_all(['dog'], 'c.html')
    return index

"""
Page fetcher: an aiohttp session with a request timeout, a concurrency limit
and optional robots.txt compliance.
"""

import asyncio
import aiohttp
import logging
import time
from typing import Optional, Dict
from urllib.parse import urlsplit
from urllib.robotparser import RobotFileParser
from dataclasses import dataclass
from aiohttp import ClientSession, ClientTimeout, ClientError

from ..exceptions import FetchError


DEFAULT_USER_AGENT = 'search-crawler/1.0'
DEFAULT_MAX_CONTENT_SIZE = 10 * 1024 * 1024
READ_CHUNK_SIZE = 8192

TEXT_TYPES = (
    'text/html',
    'text/plain',
    'application/xhtml+xml',
)


@dataclass
class FetchResult:
    """A page that was downloaded and decoded."""
    url: str
    status_code: int
    content: str
    content_type: Optional[str] = None
    encoding: Optional[str] = None
    fetch_time: float = 0.0


class RobotsChecker:
    """
    Caches one robots.txt policy per origin for the fetcher's user agent.

    A missing or unreachable robots.txt allows everything. Concurrent first
    requests to an origin share a single robots.txt download.
    """

    def __init__(self, user_agent: str):
        self.user_agent = user_agent
        self.policies: Dict[str, RobotFileParser] = {}
        self._origin_locks: Dict[str, asyncio.Lock] = {}
        self.logger = logging.getLogger(__name__)

    async def can_fetch(self, url: str, session: ClientSession) -> bool:
        parts = urlsplit(url)
        origin = f"{parts.scheme}://{parts.netloc}"

        async with self._origin_locks.setdefault(origin, asyncio.Lock()):
            policy = self.policies.get(origin)
            if policy is None:
                policy = await self._download(origin, session)
                self.policies[origin] = policy

        return policy.can_fetch(self.user_agent, url)

    async def _download(self, origin: str, session: ClientSession) -> RobotFileParser:
        policy = RobotFileParser(f"{origin}/robots.txt")
        try:
            async with session.get(policy.url) as response:
                if response.status != 200:
                    policy.allow_all = True
                    return policy
                policy.parse((await response.text()).splitlines())
        except (ClientError, asyncio.TimeoutError) as e:
            self.logger.warning(f"Could not fetch robots.txt for {origin}: {e}")
            policy.allow_all = True
        return policy


class WebFetcher:
    """
    Downloads text pages for the crawler.

    ``fetch`` either returns the decoded page or raises FetchError; it never
    returns a partial or error result.
    """

    def __init__(self, user_agent: str = DEFAULT_USER_AGENT, request_timeout: float = 10,
                 max_concurrent_requests: int = 10, respect_robots_txt: bool = False,
                 max_content_size: int = DEFAULT_MAX_CONTENT_SIZE):
        self.user_agent = user_agent
        self.request_timeout = request_timeout
        self.max_concurrent_requests = max_concurrent_requests
        self.max_content_size = max_content_size

        self.logger = logging.getLogger(__name__)
        self.robots_checker = RobotsChecker(user_agent) if respect_robots_txt else None

        self.session: Optional[ClientSession] = None
        self.semaphore: Optional[asyncio.Semaphore] = None

        self.stats = {
            'total_requests': 0,
            'successful_requests': 0,
            'failed_requests': 0,
            'robots_blocked': 0,
            'total_bytes_downloaded': 0
        }

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def start(self):
        """Open the HTTP session. Must run inside the crawl's event loop."""
        if self.session is not None:
            return

        self.semaphore = asyncio.Semaphore(self.max_concurrent_requests)
        self.session = aiohttp.ClientSession(
            timeout=ClientTimeout(total=self.request_timeout),
            headers={'User-Agent': self.user_agent},
            connector=aiohttp.TCPConnector(
                limit=self.max_concurrent_requests * 2,
                limit_per_host=10,
                ttl_dns_cache=300,
            )
        )
        self.logger.info(f"WebFetcher session started (timeout={self.request_timeout}s, "
                         f"concurrency={self.max_concurrent_requests})")

    async def close(self):
        if self.session is not None:
            await self.session.close()
            self.session = None
            self.logger.info("WebFetcher session closed")

    async def fetch(self, url: str) -> FetchResult:
        """
        Fetch a single URL as text.

        Args:
            url: Absolute http(s) URL

        Returns:
            FetchResult with the decoded body

        Raises:
            FetchError: On timeout, connection or DNS failure, HTTP status of
                400 or above, non-text content, an oversized body, or when
                robots.txt disallows the URL
        """
        if self.session is None:
            await self.start()

        started = time.time()
        async with self.semaphore:
            if self.robots_checker is not None and \
                    not await self.robots_checker.can_fetch(url, self.session):
                self.stats['robots_blocked'] += 1
                raise FetchError(url, "Blocked by robots.txt", 403)

            self.stats['total_requests'] += 1
            try:
                status, content_type, charset, body = await self._download(url)
            except FetchError:
                self.stats['failed_requests'] += 1
                raise
            except asyncio.TimeoutError as e:
                self.stats['failed_requests'] += 1
                raise FetchError(url, f"Request timeout after {self.request_timeout}s") from e
            except ClientError as e:
                self.stats['failed_requests'] += 1
                raise FetchError(url, f"Client error: {e}") from e

        content = self._decode(body, charset)
        self.stats['successful_requests'] += 1
        self.stats['total_bytes_downloaded'] += len(body)
        self.logger.debug(f"Fetched {url}: {status}, {len(body)} bytes")

        return FetchResult(
            url=url,
            status_code=status,
            content=content,
            content_type=content_type,
            encoding=charset,
            fetch_time=time.time() - started
        )

    async def _download(self, url: str):
        """GET ``url`` and return (status, content type, charset, body bytes)."""
        async with self.session.get(url) as response:
            if response.status >= 400:
                raise FetchError(url, f"HTTP {response.status}", response.status)

            content_type = response.headers.get('content-type', '').lower()
            if not any(text_type in content_type for text_type in TEXT_TYPES):
                raise FetchError(url, f"Non-text content type: {content_type or 'unknown'}",
                                 response.status)

            if response.content_length is not None and response.content_length > self.max_content_size:
                raise FetchError(url, f"Content too large ({response.content_length} bytes)",
                                 response.status)

            body = bytearray()
            async for chunk in response.content.iter_chunked(READ_CHUNK_SIZE):
                body.extend(chunk)
                if len(body) > self.max_content_size:
                    raise FetchError(url, "Content exceeded size limit during reading", response.status)

            return response.status, content_type, response.charset, bytes(body)

    @staticmethod
    def _decode(body: bytes, charset: Optional[str]) -> str:
        try:
            return body.decode(charset or 'utf-8')
        except (UnicodeDecodeError, LookupError):
            return body.decode('utf-8', errors='replace')

    def get_stats(self) -> Dict[str, int]:
        """Snapshot of the request counters."""
        return self.stats.copy()

    def reset_stats(self):
        for key in self.stats:
            self.stats[key] = 0

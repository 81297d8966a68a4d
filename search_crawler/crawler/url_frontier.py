"""
URL Frontier implementation for managing URLs to crawl.
Implements deduplication, the crawl cap and completion tracking.
"""

import asyncio
import logging
import threading
import time
from typing import Dict, Set, Optional, List, Iterable
from dataclasses import dataclass, field
from enum import Enum

from .parser import normalize_url
from ..exceptions import InvalidSeedError


DEFAULT_MAX_PAGES = 50


class URLState(Enum):
    """Lifecycle of a discovered URL."""
    DISCOVERED = "discovered"
    FETCHING = "fetching"
    INDEXED = "indexed"
    FAILED = "failed"


class EnqueueStatus(Enum):
    """Result status for frontier enqueue attempts."""
    ENQUEUED = "enqueued"
    SKIPPED_INVALID_URL = "skipped_invalid_url"
    SKIPPED_SEEN = "skipped_seen"
    SKIPPED_BUDGET = "skipped_budget"
    SKIPPED_CLOSED = "skipped_closed"


@dataclass
class URLTask:
    """Represents a URL crawling task."""
    url: str
    depth: int
    parent_url: Optional[str] = None
    discovered_time: float = field(default_factory=time.time)


class URLFrontier:
    """
    Manages the URLs discovered during one crawl.

    The discovered set and the pending queue are updated together under one
    lock, so a URL is enqueued at most once and the discovered set never grows
    past ``max_pages``. Workers call :meth:`task_done` after every task they
    took, once all links found on that page have been pushed; :meth:`join`
    therefore only returns when the queue is empty and no fetch is in flight.
    """

    def __init__(self, max_pages: int = DEFAULT_MAX_PAGES):
        if max_pages < 1:
            raise ValueError("max_pages must be at least 1")

        self.max_pages = max_pages
        self.logger = logging.getLogger(__name__)

        self._lock = threading.Lock()
        self._queue: asyncio.Queue = asyncio.Queue()
        self._discovered: Set[str] = set()
        self._states: Dict[str, URLState] = {}
        self._closed = False

        self.stats = {
            'enqueued': 0,
            'dequeued': 0,
            'skipped_seen': 0,
            'skipped_budget': 0,
            'skipped_invalid': 0,
        }

    def seed(self, seed_url: str) -> URLTask:
        """
        Add the crawl's seed URL.

        Raises:
            InvalidSeedError: If the seed is not an absolute http(s) URL
        """
        normalized = normalize_url(seed_url)
        if normalized is None:
            raise InvalidSeedError(seed_url)

        task = URLTask(url=normalized, depth=0)
        if self.add_url(task) != EnqueueStatus.ENQUEUED:
            raise InvalidSeedError(seed_url)

        self.logger.info(f"Seeded frontier with {normalized}")
        return task

    def add_url(self, task: URLTask) -> EnqueueStatus:
        """
        Add a URL to the frontier unless already discovered or over the cap.
        """
        normalized = normalize_url(task.url)

        with self._lock:
            if normalized is None:
                self.stats['skipped_invalid'] += 1
                return EnqueueStatus.SKIPPED_INVALID_URL

            if self._closed:
                return EnqueueStatus.SKIPPED_CLOSED

            if normalized in self._discovered:
                self.stats['skipped_seen'] += 1
                return EnqueueStatus.SKIPPED_SEEN

            if len(self._discovered) >= self.max_pages:
                self.stats['skipped_budget'] += 1
                return EnqueueStatus.SKIPPED_BUDGET

            task.url = normalized
            self._discovered.add(normalized)
            self._states[normalized] = URLState.DISCOVERED
            self._queue.put_nowait(task)
            self.stats['enqueued'] += 1

        self.logger.debug(f"Added URL to frontier: {normalized}")
        return EnqueueStatus.ENQUEUED

    def add_urls(self, urls: Iterable[str], depth: int,
                 parent_url: Optional[str] = None) -> int:
        """Add multiple URLs to the frontier. Returns count of added URLs."""
        added_count = 0
        for url in urls:
            task = URLTask(url=url, depth=depth, parent_url=parent_url)
            if self.add_url(task) == EnqueueStatus.ENQUEUED:
                added_count += 1
        return added_count

    async def get_next_url(self) -> URLTask:
        """Wait for the next URL to crawl and mark it as fetching."""
        task = await self._queue.get()
        with self._lock:
            self._states[task.url] = URLState.FETCHING
            self.stats['dequeued'] += 1
        self.logger.debug(f"Retrieved URL from frontier: {task.url}")
        return task

    def mark_indexed(self, url: str):
        """Mark a URL as successfully indexed."""
        with self._lock:
            self._states[url] = URLState.INDEXED

    def mark_failed(self, url: str):
        """Mark a URL as failed. Failed URLs are never retried."""
        with self._lock:
            self._states[url] = URLState.FAILED

    def task_done(self):
        """Signal that a task returned by get_next_url is finished."""
        self._queue.task_done()

    async def join(self):
        """Wait until every enqueued URL has been processed."""
        await self._queue.join()

    def close(self):
        """Stop accepting new URLs."""
        with self._lock:
            self._closed = True

    def is_discovered(self, url: str) -> bool:
        normalized = normalize_url(url)
        with self._lock:
            return normalized in self._discovered

    def discovered_urls(self) -> Set[str]:
        """Snapshot of every URL ever accepted by this frontier."""
        with self._lock:
            return set(self._discovered)

    def state_of(self, url: str) -> Optional[URLState]:
        with self._lock:
            return self._states.get(normalize_url(url))

    def urls_in_state(self, state: URLState) -> List[str]:
        with self._lock:
            return sorted(url for url, s in self._states.items() if s == state)

    def qsize(self) -> int:
        return self._queue.qsize()

    def is_empty(self) -> bool:
        """Check if the pending queue is empty."""
        return self._queue.empty()

    def get_stats(self) -> Dict[str, int]:
        """Get frontier statistics."""
        with self._lock:
            stats = dict(self.stats)
            stats['total_queued'] = self._queue.qsize()
            stats['total_discovered'] = len(self._discovered)
            for state in URLState:
                stats[state.value] = sum(1 for s in self._states.values() if s == state)
        return stats

"""
Crawler scheduler that coordinates crawling tasks and manages the overall crawl process.
"""

import asyncio
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass, replace
from typing import Dict, List, Optional

from .url_frontier import URLFrontier, URLTask
from .fetcher import WebFetcher
from .parser import ContentParser, ParsedContent, TextNormalizer, normalize_url
from ..exceptions import FetchError, InvalidSeedError, ParseError
from ..storage.inverted_index import InvertedIndex
from ..utils.config import Config, validate_config
from ..utils.logger import CrawlerLogAdapter, get_crawler_logger
from ..utils.monitoring import CrawlerMonitor


@dataclass
class CrawlStats:
    """Statistics for crawl operations."""
    start_time: float
    urls_crawled: int = 0
    pages_indexed: int = 0
    words_indexed: int = 0
    links_queued: int = 0
    errors: int = 0
    total_bytes_downloaded: int = 0
    average_response_time: float = 0.0
    urls_in_queue: int = 0

    @property
    def elapsed_time(self) -> float:
        return time.time() - self.start_time

    @property
    def pages_per_minute(self) -> float:
        elapsed_minutes = self.elapsed_time / 60
        return self.pages_indexed / elapsed_minutes if elapsed_minutes > 0 else 0


class CrawlerScheduler:
    """
    Coordinates frontier, fetcher, parser and index for one crawl.

    ``worker_count`` worker coroutines drain the frontier. Fetches are awaited
    on the event loop; parsing and index writes run on a thread pool of the
    same size, so index inserts from different pages happen concurrently.
    """

    def __init__(self, config: Config, index: Optional[InvertedIndex] = None,
                 fetcher: Optional[WebFetcher] = None, monitor: Optional[CrawlerMonitor] = None):
        self.config = config
        self.logger = logging.getLogger(__name__)

        # Components
        self.index = index if index is not None else InvertedIndex(config.index.lock_stripes)
        self.parser = ContentParser(TextNormalizer(config.index.stemming))
        self.fetcher = fetcher
        self.monitor = monitor
        self.url_frontier: Optional[URLFrontier] = None
        self._owns_fetcher = fetcher is None
        self._executor: Optional[ThreadPoolExecutor] = None

        # Crawl state
        self.stats = CrawlStats(start_time=time.time())
        self.is_running = False
        self.workers: List[asyncio.Task] = []
        self._active_workers = 0

    async def initialize(self):
        """Create and start the fetcher unless one was supplied."""
        if self.fetcher is None:
            crawler_config = self.config.crawler
            self.fetcher = WebFetcher(
                user_agent=crawler_config.user_agent,
                request_timeout=crawler_config.request_timeout,
                max_concurrent_requests=crawler_config.worker_count,
                respect_robots_txt=crawler_config.respect_robots_txt,
                max_content_size=crawler_config.max_content_size
            )
        await self.fetcher.start()
        self.logger.info("Crawler scheduler initialized")

    async def start_crawling(self, seed_url: Optional[str] = None) -> InvertedIndex:
        """
        Crawl from ``seed_url`` (or the configured seed) until the frontier
        is drained, and return the index.

        Raises:
            InvalidSeedError: If the seed URL is missing or malformed; raised
                before any worker starts
        """
        if self.is_running:
            raise RuntimeError("Crawler is already running")

        seed_url = seed_url or self.config.crawler.seed_url
        if not seed_url:
            raise InvalidSeedError(seed_url or '')

        self.url_frontier = URLFrontier(self.config.crawler.max_pages)
        self.url_frontier.seed(seed_url)

        if self.fetcher is None:
            await self.initialize()

        self.is_running = True
        self.stats = CrawlStats(start_time=time.time())
        num_workers = self.config.crawler.worker_count
        self._executor = ThreadPoolExecutor(max_workers=num_workers, thread_name_prefix='indexer')

        self.workers = [
            asyncio.create_task(self._worker(f"worker-{i}"))
            for i in range(num_workers)
        ]
        stats_task = asyncio.create_task(self._stats_reporter())
        self.logger.info(f"Started crawling {seed_url} with {num_workers} workers, "
                         f"max {self.config.crawler.max_pages} pages")

        try:
            await self.url_frontier.join()
        finally:
            self.url_frontier.close()
            stats_task.cancel()
            await self._cleanup_workers()
            await asyncio.gather(stats_task, return_exceptions=True)
            self._executor.shutdown(wait=True)
            self._executor = None
            self.is_running = False

        self._log_final_stats()
        return self.index

    async def _worker(self, worker_id: str):
        """
        Worker coroutine that processes URLs from the frontier until cancelled.
        """
        logger = get_crawler_logger(__name__, worker_id=worker_id)
        logger.debug("Worker started")

        while True:
            url_task = await self.url_frontier.get_next_url()
            self._set_active_workers(1)
            try:
                await self._process_url(url_task, logger)
            except Exception as e:
                logger.error(f"Unexpected error processing {url_task.url}: {e}", exc_info=True)
                self.url_frontier.mark_failed(url_task.url)
                self._record_error('unexpected')
            finally:
                self._set_active_workers(-1)
                self.url_frontier.task_done()

    async def _process_url(self, url_task: URLTask, logger: CrawlerLogAdapter):
        """Fetch, index and expand a single URL."""
        url = url_task.url

        try:
            fetch_result = await self.fetcher.fetch(url)
        except FetchError as e:
            logger.warning(f"{e}")
            self.url_frontier.mark_failed(url)
            self._record_error('fetch')
            return

        self.stats.urls_crawled += 1
        self.stats.total_bytes_downloaded += len(fetch_result.content)
        self.stats.average_response_time = (
            (self.stats.average_response_time * (self.stats.urls_crawled - 1) + fetch_result.fetch_time)
            / self.stats.urls_crawled
        )

        loop = asyncio.get_running_loop()
        try:
            parsed_content = await loop.run_in_executor(
                self._executor, self._index_page, url, fetch_result.content
            )
        except ParseError as e:
            logger.warning(f"{e}")
            self.url_frontier.mark_failed(url)
            self._record_error('parse')
            return

        self.stats.pages_indexed += 1
        self.stats.words_indexed += parsed_content.word_count
        if self.monitor:
            self.monitor.record_page_indexed(url, parsed_content.word_count, fetch_result.fetch_time)

        added_count = self.url_frontier.add_urls(
            parsed_content.links, depth=url_task.depth + 1, parent_url=url
        )
        self.stats.links_queued += added_count
        self.url_frontier.mark_indexed(url)

        logger.log_url_event(logging.DEBUG, url,
                             f"Indexed {parsed_content.word_count} words, queued {added_count} of "
                             f"{len(parsed_content.links)} links")

    def _index_page(self, url: str, html_content: str) -> ParsedContent:
        """Parse a page and add its words to the index. Runs on the thread pool."""
        parsed_content = self.parser.parse(url, html_content)
        self.index.add_all(parsed_content.words, url)
        return parsed_content

    def _record_error(self, error_type: str):
        self.stats.errors += 1
        if self.monitor:
            self.monitor.record_error(error_type)

    def _set_active_workers(self, delta: int):
        self._active_workers += delta
        if self.monitor:
            self.monitor.update_active_workers(self._active_workers)

    async def _stats_reporter(self):
        """Periodically log crawl statistics."""
        while self.is_running:
            await asyncio.sleep(self.config.crawler.stats_interval)
            self._log_current_stats()

    def _log_current_stats(self):
        """Log current crawl statistics."""
        frontier_stats = self.url_frontier.get_stats()
        self.stats.urls_in_queue = frontier_stats['total_queued']
        if self.monitor:
            self.monitor.update_queue_size(self.stats.urls_in_queue)

        self.logger.info(
            f"Crawl Progress: "
            f"Crawled={self.stats.urls_crawled}, "
            f"Indexed={self.stats.pages_indexed}, "
            f"Queued={self.stats.urls_in_queue}, "
            f"Discovered={frontier_stats['total_discovered']}, "
            f"Errors={self.stats.errors}, "
            f"Rate={self.stats.pages_per_minute:.1f} pages/min, "
            f"AvgTime={self.stats.average_response_time:.2f}s"
        )

    def _log_final_stats(self):
        """Log final crawl statistics."""
        frontier_stats = self.url_frontier.get_stats()

        self.logger.info("=== CRAWL COMPLETED ===")
        self.logger.info(f"Total URLs crawled: {self.stats.urls_crawled}")
        self.logger.info(f"Pages indexed: {self.stats.pages_indexed}")
        self.logger.info(f"Words indexed: {self.stats.words_indexed}")
        self.logger.info(f"Distinct words: {self.index.size()}")
        self.logger.info(f"Errors: {self.stats.errors}")
        self.logger.info(f"Total time: {self.stats.elapsed_time:.2f} seconds")
        self.logger.info(f"URLs discovered: {frontier_stats['total_discovered']}")
        self.logger.info(f"Frontier stats: {frontier_stats}")
        if self.fetcher is not None and hasattr(self.fetcher, 'get_stats'):
            self.logger.info(f"Fetcher stats: {self.fetcher.get_stats()}")

    async def _cleanup_workers(self):
        """Cancel and cleanup worker tasks."""
        for worker in self.workers:
            if not worker.done():
                worker.cancel()

        await asyncio.gather(*self.workers, return_exceptions=True)
        self.workers.clear()

    async def close(self):
        """Close the fetcher if this scheduler created it."""
        if self.fetcher is not None and self._owns_fetcher:
            await self.fetcher.close()
        self.logger.info("Crawler scheduler closed")

    def get_stats(self) -> Dict:
        """Get current crawl statistics."""
        stats = asdict(self.stats)
        stats.update(
            elapsed_time=self.stats.elapsed_time,
            pages_per_minute=self.stats.pages_per_minute,
            is_running=self.is_running,
        )
        if self.url_frontier is not None:
            stats['urls_discovered'] = len(self.url_frontier.discovered_urls())
        return stats


def crawl(seed_url: str, max_pages: Optional[int] = None, worker_count: Optional[int] = None, *,
          config: Optional[Config] = None, fetcher=None, index: Optional[InvertedIndex] = None,
          monitor: Optional[CrawlerMonitor] = None) -> InvertedIndex:
    """
    Crawl from a seed URL and return the populated inverted index.

    Blocks until every worker has finished. Per-URL failures are logged and
    skipped, so the index holds whatever could be indexed.

    Args:
        seed_url: Absolute http(s) URL to start from
        max_pages: Cap on discovered URLs, seed included (default 50)
        worker_count: Number of concurrent crawl workers (default 5)
        config: Base configuration; explicit arguments override it
        fetcher: Object with async start/fetch/close, defaults to WebFetcher
        index: Index to add to, a new one is created by default
        monitor: Optional metrics sink

    Raises:
        InvalidSeedError: If the seed is not an absolute http(s) URL
        ValueError: If max_pages or worker_count is below 1
    """
    config = config or Config()
    crawler_config = replace(
        config.crawler,
        seed_url=seed_url,
        max_pages=config.crawler.max_pages if max_pages is None else max_pages,
        worker_count=config.crawler.worker_count if worker_count is None else worker_count,
    )
    config = replace(config, crawler=crawler_config)
    validate_config(config)

    if normalize_url(seed_url or '') is None:
        raise InvalidSeedError(seed_url)

    return asyncio.run(_run_crawl(config, fetcher, index, monitor))


async def _run_crawl(config: Config, fetcher, index: Optional[InvertedIndex],
                     monitor: Optional[CrawlerMonitor]) -> InvertedIndex:
    scheduler = CrawlerScheduler(config, index=index, fetcher=fetcher, monitor=monitor)
    try:
        await scheduler.initialize()
        return await scheduler.start_crawling()
    finally:
        await scheduler.close()

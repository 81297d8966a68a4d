#!/usr/bin/env python3
"""
Main entry point for the search crawler.
"""

import asyncio
import argparse
import logging
import signal
import sys
from dataclasses import replace
from pathlib import Path
from typing import Optional

import yaml

from search_crawler import __version__
from search_crawler.crawler.scheduler import CrawlerScheduler
from search_crawler.exceptions import CrawlerError
from search_crawler.search.query_engine import QueryEngine, read_queries
from search_crawler.crawler.parser import TextNormalizer
from search_crawler.storage.inverted_index import InvertedIndex
from search_crawler.storage.json_writer import write_index, write_results, load_index
from search_crawler.utils.config import Config, load_config, validate_config
from search_crawler.utils.logger import setup_logging
from search_crawler.utils.monitoring import CrawlerMonitor, initialize_monitoring


class CrawlerApp:
    """Main application class for the search crawler."""

    def __init__(self):
        self.scheduler: Optional[CrawlerScheduler] = None
        self.monitor: Optional[CrawlerMonitor] = None
        self.logger = logging.getLogger(__name__)
        self._shutdown_event: Optional[asyncio.Event] = None

    def setup_signal_handlers(self):
        """Setup signal handlers for graceful shutdown. Returns the previous handlers."""
        loop = asyncio.get_running_loop()

        def signal_handler(signum, frame):
            self.logger.info(f"Received signal {signum}, initiating shutdown...")
            loop.call_soon_threadsafe(self._shutdown_event.set)

        previous = {sig: signal.getsignal(sig) for sig in (signal.SIGINT, signal.SIGTERM)}
        for sig in previous:
            signal.signal(sig, signal_handler)
        return previous

    async def run_crawl(self, config: Config) -> InvertedIndex:
        """
        Run a crawl, stopping early on SIGINT/SIGTERM.

        An interrupted crawl still returns what was indexed so far.
        """
        self._shutdown_event = asyncio.Event()
        previous_handlers = self.setup_signal_handlers()

        self.scheduler = CrawlerScheduler(config, monitor=self.monitor)
        try:
            await self.scheduler.initialize()

            crawl_task = asyncio.create_task(self.scheduler.start_crawling())
            shutdown_task = asyncio.create_task(self._shutdown_event.wait())

            # Wait for either crawling to complete or shutdown signal
            done, pending = await asyncio.wait(
                [crawl_task, shutdown_task],
                return_when=asyncio.FIRST_COMPLETED
            )

            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

            if crawl_task in done:
                return crawl_task.result()

            self.logger.info("Shutdown requested, keeping partial index")
            return self.scheduler.index

        finally:
            await self.scheduler.close()
            for sig, handler in previous_handlers.items():
                signal.signal(sig, handler)

    def run(self, config: Config, queries_path: Optional[str] = None,
            index_input: Optional[str] = None) -> int:
        """Crawl (or load an index), then optionally search and write output."""
        setup_logging(config.logging)
        self.monitor = initialize_monitoring(config.monitoring.metrics_enabled,
                                             config.monitoring.prometheus_port)

        self.logger.info("=== SEARCH CRAWLER STARTING ===")
        try:
            if index_input:
                index = load_index(index_input, config.index.lock_stripes)
            else:
                self.logger.info(f"Seed URL: {config.crawler.seed_url}")
                self.logger.info(f"Max pages: {config.crawler.max_pages}")
                self.logger.info(f"Workers: {config.crawler.worker_count}")
                index = asyncio.run(self.run_crawl(config))

            if config.output.index_path:
                write_index(index, config.output.index_path)

            if queries_path:
                engine = QueryEngine(
                    index,
                    exact=config.search.exact,
                    normalizer=TextNormalizer(config.index.stemming),
                    monitor=self.monitor
                )
                results = engine.search_all(read_queries(queries_path), config.search.worker_count)
                self.logger.info(f"Answered {len(results)} queries")
                if config.output.results_path:
                    write_results(results, config.output.results_path)

        except (CrawlerError, OSError, ValueError) as e:
            self.logger.error(f"Fatal error: {e}", exc_info=True)
            return 1

        finally:
            self.logger.info(f"Metrics: {self.monitor.get_summary()['metrics']}")
            self.logger.info("=== SEARCH CRAWLER FINISHED ===")

        return 0


def apply_overrides(config: Config, args: argparse.Namespace) -> Config:
    """Apply command-line overrides on top of the file configuration."""
    crawler = config.crawler
    if args.seed is not None:
        crawler = replace(crawler, seed_url=args.seed)
    if args.max_pages is not None:
        crawler = replace(crawler, max_pages=args.max_pages)
    if args.workers is not None:
        crawler = replace(crawler, worker_count=args.workers)

    search = config.search
    if args.partial:
        search = replace(search, exact=False)
    if args.search_workers is not None:
        search = replace(search, worker_count=args.search_workers)

    output = config.output
    if args.index_output is not None:
        output = replace(output, index_path=args.index_output)
    if args.results_output is not None:
        output = replace(output, results_path=args.results_output)

    config = replace(config, crawler=crawler, search=search, output=output)
    validate_config(config)
    return config


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Search Crawler",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py --seed https://example.com/              # Crawl with defaults
  python main.py --config my_config.yaml                  # Run with custom config
  python main.py --seed URL --max-pages 20 --workers 8    # Bounded crawl
  python main.py --seed URL --queries q.txt --partial     # Crawl then prefix search
  python main.py --index-input index.json --queries q.txt # Search a saved index
        """
    )

    parser.add_argument('--config', default='config.yaml',
                        help='Path to configuration file (default: config.yaml)')
    parser.add_argument('--seed', help='Seed URL to crawl from')
    parser.add_argument('--max-pages', type=int, help='Maximum number of pages to discover')
    parser.add_argument('--workers', type=int, help='Number of crawl workers')
    parser.add_argument('--queries', help='File with one query per line')
    parser.add_argument('--partial', action='store_true', help='Use prefix search instead of exact search')
    parser.add_argument('--search-workers', type=int, help='Number of query threads')
    parser.add_argument('--index-input', help='Search a previously written index instead of crawling')
    parser.add_argument('--index-output', help='Write the index to this JSON file')
    parser.add_argument('--results-output', help='Write search results to this JSON file')
    parser.add_argument('--version', action='version', version=f'Search Crawler {__version__}')
    return parser


def main(argv=None):
    """Main entry point."""
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.config) if Path(args.config).exists() else Config()
        config = apply_overrides(config, args)
    except (OSError, ValueError, yaml.YAMLError) as e:
        print(f"Error: invalid configuration: {e}")
        return 1

    if not args.index_input and not config.crawler.seed_url:
        print("Error: no seed URL. Set crawler.seed_url in the config file or pass --seed")
        return 1

    return CrawlerApp().run(config, queries_path=args.queries, index_input=args.index_input)


if __name__ == '__main__':
    sys.exit(main())

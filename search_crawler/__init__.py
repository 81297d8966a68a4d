"""
Search Crawler

Crawls a bounded set of pages from a seed URL into a thread-safe inverted
index and answers ranked search queries against it.
"""

__version__ = "1.0.0"
__description__ = "Concurrent web crawler with an inverted index and ranked search"

from .exceptions import CrawlerError, InvalidSeedError, FetchError, ParseError, IndexCorruptionError
from .crawler import crawl, CrawlerScheduler, URLFrontier, WebFetcher
from .storage import InvertedIndex, write_index, write_results, load_index
from .search import QueryEngine, SearchResult, search

__all__ = [
    'CrawlerError', 'InvalidSeedError', 'FetchError', 'ParseError', 'IndexCorruptionError',
    'crawl', 'CrawlerScheduler', 'URLFrontier', 'WebFetcher',
    'InvertedIndex', 'write_index', 'write_results', 'load_index',
    'QueryEngine', 'SearchResult', 'search',
]

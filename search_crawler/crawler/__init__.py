"""
Web crawler core components.
"""

from .url_frontier import URLFrontier, URLTask, URLState, EnqueueStatus
from .fetcher import WebFetcher, FetchResult
from .parser import (
    ContentParser, ParsedContent, TextNormalizer,
    extract_links, normalize, normalize_url
)
from .scheduler import CrawlerScheduler, CrawlStats, crawl

__all__ = [
    'URLFrontier', 'URLTask', 'URLState', 'EnqueueStatus',
    'WebFetcher', 'FetchResult',
    'ContentParser', 'ParsedContent', 'TextNormalizer',
    'extract_links', 'normalize', 'normalize_url',
    'CrawlerScheduler', 'CrawlStats', 'crawl'
]

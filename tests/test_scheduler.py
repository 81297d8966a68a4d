"""
Tests for the crawl pipeline, driven by an in-memory fetcher.
"""

import asyncio

import pytest

from search_crawler.crawler.scheduler import CrawlerScheduler, crawl
from search_crawler.crawler.url_frontier import URLState
from search_crawler.exceptions import InvalidSeedError, ParseError
from search_crawler.storage.inverted_index import InvertedIndex
from search_crawler.utils.config import Config, CrawlerConfig
from search_crawler.utils.monitoring import CrawlerMonitor

from .conftest import FakeFetcher, page


SEED = 'http://example.com/'


def run_scheduler(pages, max_pages=50, worker_count=3, status_codes=None, monitor=None):
    """Run one crawl and return the scheduler and fetcher for inspection."""
    config = Config(crawler=CrawlerConfig(seed_url=SEED, max_pages=max_pages,
                                          worker_count=worker_count))
    fetcher = FakeFetcher(pages, status_codes)
    scheduler = CrawlerScheduler(config, fetcher=fetcher, monitor=monitor)

    async def scenario():
        await scheduler.initialize()
        try:
            return await asyncio.wait_for(scheduler.start_crawling(), timeout=10)
        finally:
            await scheduler.close()

    asyncio.run(scenario())
    return scheduler, fetcher


def test_seed_without_links_indexes_one_page():
    index = crawl(SEED, fetcher=FakeFetcher({SEED: page('hello hello world')}))

    assert index.locations() == [SEED]
    assert index.get('hello') == {SEED: (1, 2)}
    assert index.word_count(SEED) == 3
    index.verify()


def test_crawl_follows_links_and_indexes_each_page():
    pages = {
        SEED: page('home', 'a.html', 'b.html'),
        'http://example.com/a.html': page('alpha', '/', 'b.html'),
        'http://example.com/b.html': page('beta'),
    }

    scheduler, fetcher = run_scheduler(pages)

    assert sorted(fetcher.requested) == sorted(pages)
    assert scheduler.index.locations() == sorted(pages)
    assert scheduler.url_frontier.urls_in_state(URLState.INDEXED) == sorted(pages)
    assert scheduler.get_stats()['pages_indexed'] == 3


def test_discovered_set_never_exceeds_cap():
    # Every page links to every other page
    urls = [f'http://example.com/p{i}.html' for i in range(20)]
    pages = {url: page(f'page {i}', *urls) for i, url in enumerate(urls)}
    pages[SEED] = page('home', *urls)

    scheduler, fetcher = run_scheduler(pages, max_pages=5, worker_count=4)

    discovered = scheduler.url_frontier.discovered_urls()
    assert len(discovered) == 5
    assert SEED in discovered
    assert sorted(fetcher.requested) == sorted(discovered)
    assert len(scheduler.index.locations()) == 5


def test_each_url_is_fetched_once():
    pages = {
        SEED: page('home', 'a.html', 'a.html#top', 'A.html', 'http://EXAMPLE.com/a.html'),
        'http://example.com/a.html': page('a', SEED, '#frag'),
        'http://example.com/A.html': page('upper'),
    }

    _, fetcher = run_scheduler(pages, worker_count=5)

    assert sorted(fetcher.requested) == sorted(pages)


def test_failed_urls_are_skipped():
    pages = {
        SEED: page('home', 'missing.html', 'forbidden.html', 'ok.html'),
        'http://example.com/ok.html': page('fine'),
        'http://example.com/forbidden.html': page('secret'),
    }
    monitor = CrawlerMonitor()

    scheduler, _ = run_scheduler(
        pages,
        status_codes={'http://example.com/forbidden.html': 403},
        monitor=monitor
    )

    frontier = scheduler.url_frontier
    assert frontier.urls_in_state(URLState.FAILED) == [
        'http://example.com/forbidden.html',
        'http://example.com/missing.html',
    ]
    assert scheduler.index.locations() == [SEED, 'http://example.com/ok.html']
    assert not scheduler.index.contains_word('secret')
    assert scheduler.get_stats()['errors'] == 2
    assert monitor.metrics.get_metric('errors_total').current_value == 2


def test_parse_error_marks_url_failed():
    pages = {
        SEED: page('home', 'broken.html'),
        'http://example.com/broken.html': page('broken'),
    }
    config = Config(crawler=CrawlerConfig(seed_url=SEED, worker_count=2))
    scheduler = CrawlerScheduler(config, fetcher=FakeFetcher(pages))

    original_parse = scheduler.parser.parse

    def parse(url, html_content):
        if url.endswith('broken.html'):
            raise ParseError(url, "unreadable")
        return original_parse(url, html_content)

    scheduler.parser.parse = parse

    async def scenario():
        await scheduler.initialize()
        return await scheduler.start_crawling()

    index = asyncio.run(scenario())

    assert index.locations() == [SEED]
    assert scheduler.url_frontier.state_of('http://example.com/broken.html') == URLState.FAILED


def test_seed_failure_returns_empty_index():
    index = crawl(SEED, fetcher=FakeFetcher({}))

    assert index.size() == 0
    assert index.locations() == []


def test_repeated_crawls_build_identical_indexes():
    urls = [f'http://example.com/{i}.html' for i in range(12)]
    pages = {url: page(f'shared words page {i} ' * 3, *urls[i:i + 3]) for i, url in enumerate(urls)}
    pages[SEED] = page('start', *urls[:4])

    first = crawl(SEED, max_pages=50, worker_count=6, fetcher=FakeFetcher(pages))
    second = crawl(SEED, max_pages=50, worker_count=1, fetcher=FakeFetcher(pages))

    assert first.to_dict() == second.to_dict()
    assert first.word_counts() == second.word_counts()


def test_many_workers_keep_index_consistent():
    urls = [f'http://example.com/{i}.html' for i in range(40)]
    pages = {url: page('common words everywhere ' * 20, *urls) for url in urls}
    pages[SEED] = page('common', *urls)

    index = crawl(SEED, max_pages=41, worker_count=8, fetcher=FakeFetcher(pages))

    index.verify()
    assert len(index.locations()) == 41
    for url in urls:
        assert index.word_count(url) == 60
        assert len(index.get('common')[url]) == 20


def test_crawl_adds_to_supplied_index():
    existing = InvertedIndex()
    existing.add('old', 'file:///old', 1)

    index = crawl(SEED, fetcher=FakeFetcher({SEED: page('new')}), index=existing)

    assert index is existing
    assert index.contains_word('old')
    assert index.contains_word('new')


@pytest.mark.parametrize('seed', ['', 'not a url', '/relative', 'ftp://example.com/'])
def test_invalid_seed_is_fatal(seed):
    fetcher = FakeFetcher({})

    with pytest.raises(InvalidSeedError):
        crawl(seed, fetcher=fetcher)
    assert fetcher.requested == []


@pytest.mark.parametrize('max_pages, worker_count', [(0, 1), (5, 0), (-1, 3)])
def test_invalid_limits_are_fatal(max_pages, worker_count):
    with pytest.raises(ValueError):
        crawl(SEED, max_pages=max_pages, worker_count=worker_count, fetcher=FakeFetcher({}))


def test_scheduler_does_not_close_supplied_fetcher():
    fetcher = FakeFetcher({SEED: page('x')})
    crawl(SEED, fetcher=fetcher)

    assert fetcher.started
    assert not fetcher.closed

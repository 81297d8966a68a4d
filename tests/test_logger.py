"""
Tests for the logging helpers.
"""

import json
import logging

from search_crawler.utils.config import LoggingConfig
from search_crawler.utils.logger import (
    JSONFormatter,
    PerformanceFilter,
    get_crawler_logger,
    setup_logging,
)


def test_adapter_prefixes_worker_id(caplog):
    logger = get_crawler_logger('search_crawler.test', worker_id='worker-3')

    with caplog.at_level(logging.INFO, logger='search_crawler.test'):
        logger.info("Processing")
        logger.log_url_event(logging.INFO, 'http://example.com/', "Indexed")

    assert caplog.records[0].getMessage() == '[worker-3] Processing'
    assert caplog.records[0].worker_id == 'worker-3'
    assert caplog.records[1].url == 'http://example.com/'
    assert caplog.records[1].getMessage() == '[worker-3] Indexed: http://example.com/'


def test_json_formatter_includes_context():
    record = logging.LogRecord('search_crawler', logging.WARNING, __file__, 10,
                               'Fetch failed %s', ('http://x/',), None)
    record.worker_id = 'worker-0'

    entry = json.loads(JSONFormatter().format(record))

    assert entry['level'] == 'WARNING'
    assert entry['message'] == 'Fetch failed http://x/'
    assert entry['worker_id'] == 'worker-0'
    assert 'url' not in entry


def test_performance_filter_drops_noisy_loggers():
    log_filter = PerformanceFilter()
    noisy = logging.LogRecord('aiohttp.access', logging.INFO, __file__, 1, 'GET /', (), None)
    ours = logging.LogRecord('search_crawler.crawler', logging.INFO, __file__, 1, 'ok', (), None)

    assert log_filter.filter(noisy) is False
    assert log_filter.filter(ours) is True


def test_setup_logging_writes_files(tmp_path):
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    log_file = tmp_path / 'logs' / 'crawler.log'
    for handler in saved_handlers:
        root.removeHandler(handler)

    try:
        setup_logging(LoggingConfig(level='DEBUG', file=str(log_file), json=True))
        logging.getLogger('search_crawler.test').error("something broke")
        for handler in root.handlers:
            handler.flush()

        assert 'something broke' in log_file.read_text(encoding='utf-8')
        line = log_file.read_text(encoding='utf-8').strip().splitlines()[-1]
        assert json.loads(line)['level'] == 'ERROR'
        assert 'something broke' in (log_file.parent / 'errors.log').read_text(encoding='utf-8')
    finally:
        for handler in list(root.handlers):
            root.removeHandler(handler)
            handler.close()
        for handler in saved_handlers:
            root.addHandler(handler)
        root.setLevel(saved_level)

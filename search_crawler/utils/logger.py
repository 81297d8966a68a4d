"""
Logging utilities for the search crawler.
"""

import json
import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from .config import LoggingConfig


# Record attributes set through CrawlerLogAdapter
CONTEXT_FIELDS = ('worker_id', 'url')

NOISY_LOGGERS = ('aiohttp.access', 'aiohttp.client', 'aiohttp.internal', 'urllib3')


class JSONFormatter(logging.Formatter):
    """One JSON object per record, including crawl context when present."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'thread': record.threadName,
        }

        for key in CONTEXT_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                entry[key] = value

        if record.exc_info:
            entry['exception'] = self.formatException(record.exc_info)

        return json.dumps(entry, ensure_ascii=False)


class CrawlerLogAdapter(logging.LoggerAdapter):
    """
    Logger adapter carrying a crawl worker's context.

    Messages are prefixed with ``[worker_id]`` and the context is attached to
    every record so JSONFormatter can emit it as separate fields.
    """

    def __init__(self, logger: logging.Logger, extra: Optional[Dict[str, Any]] = None):
        super().__init__(logger, extra or {})

    def process(self, msg, kwargs):
        context = dict(self.extra)
        context.update(kwargs.get('extra') or {})
        kwargs['extra'] = context

        if context.get('worker_id'):
            msg = f"[{context['worker_id']}] {msg}"
        return msg, kwargs

    def log_url_event(self, level: int, url: str, message: str, **kwargs):
        """Log a message about one URL, attaching the URL as context."""
        kwargs['extra'] = dict(kwargs.get('extra') or {}, url=url)
        self.log(level, f"{message}: {url}", **kwargs)


class PerformanceFilter(logging.Filter):
    """Drops chatty records from HTTP client internals."""

    def __init__(self, suppress_loggers=NOISY_LOGGERS):
        super().__init__()
        self.suppress_loggers = tuple(suppress_loggers)

    def filter(self, record: logging.LogRecord) -> bool:
        return not record.name.startswith(self.suppress_loggers)


def _rotating_handler(path: Path, level: int, max_bytes: int, backup_count: int,
                      formatter: logging.Formatter) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        path, maxBytes=max_bytes, backupCount=backup_count, encoding='utf-8'
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(config: LoggingConfig, enable_performance_filtering: bool = True) -> logging.Logger:
    """
    Configure the root logger for a crawl or search run.

    Installs a console handler (INFO and up), a size-rotating log file with
    every record and an ``errors.log`` next to it for errors only. Any
    handlers installed before are removed.

    Args:
        config: Logging section of the configuration
        enable_performance_filtering: Hide aiohttp/urllib3 internals

    Returns:
        The root logger
    """
    log_file = Path(config.file)
    log_file.parent.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, config.level.upper()))
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    formatter = JSONFormatter() if config.json else logging.Formatter(config.format)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(formatter)

    handlers = [
        console_handler,
        _rotating_handler(log_file, logging.DEBUG, 50 * 1024 * 1024, 5, formatter),
        _rotating_handler(log_file.parent / 'errors.log', logging.ERROR, 10 * 1024 * 1024, 3, formatter),
    ]
    for handler in handlers:
        if enable_performance_filtering:
            handler.addFilter(PerformanceFilter())
        root_logger.addHandler(handler)

    for name in ('aiohttp', 'asyncio', 'urllib3'):
        logging.getLogger(name).setLevel(logging.WARNING)

    root_logger.info(f"Logging to {log_file} at level {config.level} (json={config.json})")
    return root_logger


def get_crawler_logger(name: str, **context) -> CrawlerLogAdapter:
    """Logger for ``name`` that tags every record with ``context`` (e.g. worker_id)."""
    return CrawlerLogAdapter(logging.getLogger(name), context)

"""
Crawl and query metrics, kept in process and mirrored to Prometheus.
"""

import time
import logging
import threading
from typing import Dict, Optional, Any
from dataclasses import dataclass

from prometheus_client import Counter, Histogram, Gauge, CollectorRegistry, generate_latest
from prometheus_client import start_http_server


# name -> (prometheus class, exported name, help text, label names)
METRIC_DEFINITIONS = {
    'pages_indexed_total': (Counter, 'crawler_pages_indexed_total', 'Pages fetched and indexed', ()),
    'words_indexed_total': (Counter, 'crawler_words_indexed_total', 'Word positions indexed', ()),
    'errors_total': (Counter, 'crawler_errors_total', 'URLs that failed, by stage', ('error_type',)),
    'fetch_time_seconds': (Histogram, 'crawler_fetch_time_seconds', 'Page fetch latency', ()),
    'queue_size': (Gauge, 'crawler_queue_size', 'URLs waiting in the frontier', ()),
    'active_workers': (Gauge, 'crawler_active_workers', 'Workers processing a URL', ()),
    'queries_total': (Counter, 'search_queries_total', 'Queries answered', ()),
    'query_time_seconds': (Histogram, 'search_query_time_seconds', 'Query latency', ()),
}


@dataclass
class Metric:
    """In-process view of a metric: its latest value and how often it changed."""
    name: str
    metric_type: str
    current_value: float = 0.0
    observations: int = 0


class MetricsCollector:
    """
    Thread-safe metric store.

    Every update is recorded in process (used for summaries and the final
    log line). Metrics listed in METRIC_DEFINITIONS are also exported through
    a private Prometheus registry; other names stay in process only.
    """

    def __init__(self, enable_prometheus: bool = False, prometheus_port: int = 8000):
        self.logger = logging.getLogger(__name__)
        self.enable_prometheus = enable_prometheus
        self.prometheus_port = prometheus_port
        self.metrics: Dict[str, Metric] = {}
        self._lock = threading.Lock()

        self.prometheus_registry = CollectorRegistry()
        self.prometheus_metrics = {
            name: metric_class(exported, description, labels, registry=self.prometheus_registry)
            for name, (metric_class, exported, description, labels) in METRIC_DEFINITIONS.items()
        }

    def start_prometheus_server(self):
        """Serve the registry over HTTP when Prometheus export is enabled."""
        if not self.enable_prometheus:
            return
        start_http_server(self.prometheus_port, registry=self.prometheus_registry)
        self.logger.info(f"Prometheus metrics server started on port {self.prometheus_port}")

    def _update(self, name: str, metric_type: str, value: float, accumulate: bool):
        with self._lock:
            metric = self.metrics.setdefault(name, Metric(name=name, metric_type=metric_type))
            metric.current_value = metric.current_value + value if accumulate else value
            metric.observations += 1

    def increment_counter(self, name: str, amount: float = 1, labels: Optional[Dict[str, str]] = None):
        self._update(name, 'counter', amount, accumulate=True)
        prom_metric = self.prometheus_metrics.get(name)
        if prom_metric is not None:
            (prom_metric.labels(**labels) if labels else prom_metric).inc(amount)

    def set_gauge(self, name: str, value: float):
        self._update(name, 'gauge', value, accumulate=False)
        if name in self.prometheus_metrics:
            self.prometheus_metrics[name].set(value)

    def observe_histogram(self, name: str, value: float):
        """Record an observation; the in-process value is the latest one."""
        self._update(name, 'histogram', value, accumulate=False)
        if name in self.prometheus_metrics:
            self.prometheus_metrics[name].observe(value)

    def get_metric(self, name: str) -> Optional[Metric]:
        with self._lock:
            return self.metrics.get(name)

    def get_current_values(self) -> Dict[str, float]:
        with self._lock:
            return {name: metric.current_value for name, metric in self.metrics.items()}

    def export_prometheus(self) -> bytes:
        """Metrics in the Prometheus text exposition format."""
        return generate_latest(self.prometheus_registry)


class CrawlerMonitor:
    """Crawl and query events, translated into metric updates."""

    def __init__(self, metrics_collector: Optional[MetricsCollector] = None):
        self.metrics = metrics_collector or MetricsCollector()
        self.start_time = time.time()

    def record_page_indexed(self, url: str, word_count: int, fetch_time: float):
        self.metrics.increment_counter('pages_indexed_total')
        self.metrics.increment_counter('words_indexed_total', word_count)
        self.metrics.observe_histogram('fetch_time_seconds', fetch_time)

    def record_error(self, error_type: str):
        """Count a failed URL; ``error_type`` is fetch, parse or unexpected."""
        self.metrics.increment_counter('errors_total', labels={'error_type': error_type})

    def update_queue_size(self, size: int):
        self.metrics.set_gauge('queue_size', size)

    def update_active_workers(self, count: int):
        self.metrics.set_gauge('active_workers', count)

    def record_query(self, elapsed: float):
        self.metrics.increment_counter('queries_total')
        self.metrics.observe_histogram('query_time_seconds', elapsed)

    def get_summary(self) -> Dict[str, Any]:
        values = self.metrics.get_current_values()
        runtime = time.time() - self.start_time
        pages = values.get('pages_indexed_total', 0)

        return {
            'runtime_seconds': runtime,
            'metrics': values,
            'rates': {
                'pages_per_minute': pages / (runtime / 60) if runtime > 0 else 0,
            }
        }


def initialize_monitoring(enable_prometheus: bool = False, prometheus_port: int = 8000) -> CrawlerMonitor:
    """Create a monitor and start its exporter when Prometheus is enabled."""
    monitor = CrawlerMonitor(MetricsCollector(enable_prometheus, prometheus_port))
    monitor.metrics.start_prometheus_server()
    return monitor

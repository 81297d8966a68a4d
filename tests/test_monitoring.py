"""
Tests for metrics collection.
"""

from search_crawler.utils.monitoring import CrawlerMonitor, MetricsCollector, initialize_monitoring


def test_monitor_records_pages_and_errors():
    monitor = CrawlerMonitor()
    monitor.record_page_indexed('http://example.com/', 120, 0.25)
    monitor.record_page_indexed('http://example.com/a', 30, 0.5)
    monitor.record_error('fetch')
    monitor.update_queue_size(7)

    values = monitor.get_summary()['metrics']

    assert values['pages_indexed_total'] == 2
    assert values['words_indexed_total'] == 150
    assert values['errors_total'] == 1
    assert values['queue_size'] == 7
    assert values['fetch_time_seconds'] == 0.5
    assert monitor.metrics.get_metric('fetch_time_seconds').observations == 2


def test_prometheus_export():
    collector = MetricsCollector()
    monitor = CrawlerMonitor(collector)
    monitor.record_error('parse')
    monitor.record_query(0.01)

    text = collector.export_prometheus().decode('utf-8')

    assert 'crawler_errors_total{error_type="parse"} 1.0' in text
    assert 'search_queries_total 1.0' in text


def test_unknown_metric_is_kept_in_process_only():
    collector = MetricsCollector()
    collector.increment_counter('custom_total', 3)

    assert collector.get_current_values() == {'custom_total': 3}
    assert 'custom_total' not in collector.export_prometheus().decode('utf-8')


def test_initialize_without_prometheus_does_not_serve():
    monitor = initialize_monitoring(enable_prometheus=False)
    assert monitor.metrics.enable_prometheus is False

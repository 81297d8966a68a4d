"""
Configuration management for the search crawler.
"""

import yaml
import logging
from pathlib import Path
from typing import Dict, Any, Optional
from dataclasses import dataclass, field, fields


@dataclass
class CrawlerConfig:
    """Configuration for crawler behavior."""
    seed_url: Optional[str] = None
    max_pages: int = 50
    worker_count: int = 5
    request_timeout: float = 10
    user_agent: str = "search-crawler/1.0"
    respect_robots_txt: bool = False
    max_content_size: int = 10 * 1024 * 1024
    stats_interval: float = 30


@dataclass
class IndexConfig:
    """Configuration for the inverted index and word normalization."""
    lock_stripes: int = 16
    stemming: bool = False


@dataclass
class SearchConfig:
    """Configuration for query processing."""
    exact: bool = True
    worker_count: int = 1


@dataclass
class OutputConfig:
    """Where to write the index and search results (None disables)."""
    index_path: Optional[str] = None
    results_path: Optional[str] = None


@dataclass
class LoggingConfig:
    """Configuration for logging."""
    level: str = 'INFO'
    file: str = 'logs/crawler.log'
    format: str = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    json: bool = False


@dataclass
class MonitoringConfig:
    """Configuration for monitoring."""
    prometheus_port: int = 8000
    metrics_enabled: bool = False


@dataclass
class Config:
    """Main configuration class."""
    crawler: CrawlerConfig = field(default_factory=CrawlerConfig)
    index: IndexConfig = field(default_factory=IndexConfig)
    search: SearchConfig = field(default_factory=SearchConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)


def _section(cls, data: Optional[Dict[str, Any]], name: str):
    """Build a config section, rejecting unknown keys."""
    data = data or {}
    if not isinstance(data, dict):
        raise ValueError(f"Configuration section '{name}' must be a mapping")

    known = {f.name for f in fields(cls)}
    unknown = set(data) - known
    if unknown:
        raise ValueError(f"Unknown keys in '{name}' section: {', '.join(sorted(unknown))}")
    return cls(**data)


class ConfigManager:
    """Manages configuration loading and validation."""

    def __init__(self, config_path: str = "config.yaml"):
        self.config_path = Path(config_path)
        self._config: Optional[Config] = None

    def load_config(self) -> Config:
        """Load configuration from YAML file."""
        if not self.config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

        with open(self.config_path, 'r') as file:
            config_data = yaml.safe_load(file) or {}

        self._config = config_from_dict(config_data)
        return self._config

    @property
    def config(self) -> Config:
        """Get the loaded configuration."""
        if not self._config:
            raise ValueError("Configuration not loaded. Call load_config() first.")
        return self._config


def config_from_dict(config_data: Dict[str, Any]) -> Config:
    """Build and validate a Config from parsed YAML data."""
    unknown = set(config_data) - {f.name for f in fields(Config)}
    if unknown:
        raise ValueError(f"Unknown configuration sections: {', '.join(sorted(unknown))}")

    config = Config(
        crawler=_section(CrawlerConfig, config_data.get('crawler'), 'crawler'),
        index=_section(IndexConfig, config_data.get('index'), 'index'),
        search=_section(SearchConfig, config_data.get('search'), 'search'),
        output=_section(OutputConfig, config_data.get('output'), 'output'),
        logging=_section(LoggingConfig, config_data.get('logging'), 'logging'),
        monitoring=_section(MonitoringConfig, config_data.get('monitoring'), 'monitoring'),
    )
    validate_config(config)
    return config


def validate_config(config: Config):
    """Validate configuration values."""
    if config.crawler.max_pages < 1:
        raise ValueError("max_pages must be at least 1")

    if config.crawler.worker_count < 1:
        raise ValueError("worker_count must be at least 1")

    if config.crawler.request_timeout <= 0:
        raise ValueError("request_timeout must be positive")

    if config.crawler.max_content_size < 1:
        raise ValueError("max_content_size must be at least 1")

    if config.index.lock_stripes < 1:
        raise ValueError("lock_stripes must be at least 1")

    if config.search.worker_count < 1:
        raise ValueError("search worker_count must be at least 1")

    if not hasattr(logging, str(config.logging.level).upper()):
        raise ValueError(f"Unknown log level: {config.logging.level}")

    logging.getLogger(__name__).debug("Configuration validation passed")


def load_config(config_path: str = "config.yaml") -> Config:
    """Load configuration from file."""
    return ConfigManager(config_path).load_config()

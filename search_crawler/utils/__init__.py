"""
Utility modules for the search crawler.
"""

from .config import Config, ConfigManager, load_config, config_from_dict

__all__ = ['Config', 'ConfigManager', 'load_config', 'config_from_dict']

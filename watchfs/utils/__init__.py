# watchfs/utils/__init__.py

"""
watchfs utilities - configuration and logging
"""
from .config import WatchConfig, load_config
from .logger import setup_logging, resolve_log_level, PerformanceLogger

__all__ = [
    'WatchConfig', 'load_config',
    'setup_logging', 'resolve_log_level', 'PerformanceLogger',
]

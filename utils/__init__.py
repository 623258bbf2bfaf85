"""
Utils package for spotiwidget.

This package provides utility functions for the application.
"""

from spotiwidget.utils.logger import setup_logger, get_logger
from spotiwidget.utils.paths import (
    get_data_dir, get_config_dir, get_token_path, get_cache_dir, get_log_file,
    sanitize_filename
)

__all__ = [
    'setup_logger',
    'get_logger',
    'get_data_dir',
    'get_config_dir',
    'get_token_path',
    'get_cache_dir',
    'get_log_file',
    'sanitize_filename',
]

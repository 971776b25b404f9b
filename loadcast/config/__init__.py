"""
Configuration loading and logging initialization.
"""

from loadcast.config.load_config import (
    load_config,
    setup_logging,
    get_config,
    reset_config
)

__all__ = [
    'load_config',
    'setup_logging',
    'get_config',
    'reset_config'
]

"""
Configuration package for Activity Sense
"""

from .settings import (
    Settings,
    get_settings,
    get_test_settings,
    load_settings_from_file,
    validate_settings,
)

__all__ = [
    'Settings',
    'get_settings',
    'get_test_settings',
    'load_settings_from_file',
    'validate_settings',
]

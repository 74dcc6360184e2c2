"""
Utility helpers for Activity Sense
"""

from .assets import load_asset_from_cache

__all__ = ['load_asset_from_cache']

"""
Core application modules.
Contains logging, configuration, metrics and resilience helpers.
"""
from .config import Settings, get_settings

__all__ = ["Settings", "get_settings"]

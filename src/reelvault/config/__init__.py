"""Configuration module for reelvault."""

from .settings import Settings, get_settings
from .store import ConfigStore

__all__ = ["ConfigStore", "Settings", "get_settings"]

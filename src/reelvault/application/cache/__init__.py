"""Definition caches for plugins and scrapers."""

from reelvault.application.cache.base_cache import Definition, DefinitionCache
from reelvault.application.cache.plugin_cache import PluginCache
from reelvault.application.cache.scraper_cache import ScraperCache

__all__ = ["Definition", "DefinitionCache", "PluginCache", "ScraperCache"]

"""Cache of metadata scraper definitions."""

from typing import Any

from reelvault.application.cache.base_cache import Definition, DefinitionCache
from reelvault.domain.exceptions import ScraperError

SUPPORTED_TYPES = ("scene", "gallery", "performer", "movie")


class ScraperCache(DefinitionCache[ScraperError]):
    """Scraper definitions from the configured scrapers directory."""

    kind = "scraper"

    def _make_error(self, message: str, failures: dict[str, str]) -> ScraperError:
        return ScraperError(message, failures)

    def _validate(self, data: dict[str, Any]) -> None:
        super()._validate(data)
        supported = data.get("supports", [])
        unknown = [t for t in supported if t not in SUPPORTED_TYPES]
        if unknown:
            raise ValueError(f"unsupported scraper type(s): {', '.join(unknown)}")

    def for_type(self, content_type: str) -> list[Definition]:
        """Scrapers that declare support for a content type."""
        return [d for d in self.all() if content_type in d.data.get("supports", [])]

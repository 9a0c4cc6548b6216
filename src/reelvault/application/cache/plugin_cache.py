"""Cache of installed plugin definitions.

Plugin execution is handled elsewhere; this cache only knows which plugins
exist and which tasks they declare.
"""

from pathlib import Path
from typing import Any

from reelvault.application.cache.base_cache import Definition, DefinitionCache
from reelvault.application.services.session_store import SessionStore
from reelvault.config import ConfigStore
from reelvault.domain.exceptions import PluginError


class PluginCache(DefinitionCache[PluginError]):
    """Plugin definitions from the configured plugins directory."""

    kind = "plugin"

    def __init__(self, config: ConfigStore) -> None:
        super().__init__(config.get_plugins_path())
        self._config = config
        self._session_store: SessionStore | None = None

    def _make_error(self, message: str, failures: dict[str, str]) -> PluginError:
        return PluginError(message, failures)

    def _validate(self, data: dict[str, Any]) -> None:
        super()._validate(data)
        tasks = data.get("tasks", [])
        if not isinstance(tasks, list) or not all(
            isinstance(t, dict) and t.get("name") for t in tasks
        ):
            raise ValueError("'tasks' must be a list of objects with a 'name'")

    def load_plugins(self) -> None:
        """Reload definitions from the current plugins path."""
        self._directory = Path(self._config.get_plugins_path())
        self.load()

    def register_session_store(self, session_store: SessionStore) -> None:
        """Plugins run with the caller's session; they get it from here."""
        self._session_store = session_store

    @property
    def session_store(self) -> SessionStore | None:
        return self._session_store

    def list_tasks(self, plugin: Definition) -> list[str]:
        return [task["name"] for task in plugin.data.get("tasks", [])]

"""Base class for caches of JSON definition files loaded from a directory."""

import json
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Generic, TypeVar

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Definition:
    """One loaded definition file."""

    id: str
    name: str
    path: str
    data: dict[str, Any]


E = TypeVar("E", bound=Exception)


class DefinitionCache(ABC, Generic[E]):
    """Loads ``*.json`` definitions from a directory, keyed by file stem.

    Hey future me - loading is all-or-something: good files always load, bad
    files are collected and reported together through the subclass's error type
    AFTER the good ones are in the cache. Callers at startup log that error and
    carry on with a partial cache.
    """

    kind = "definition"

    def __init__(self, directory: str | Path) -> None:
        self._directory = Path(directory)
        self._definitions: dict[str, Definition] = {}
        self._lock = threading.Lock()

    @property
    def directory(self) -> Path:
        return self._directory

    @abstractmethod
    def _make_error(self, message: str, failures: dict[str, str]) -> E:
        """Build the error raised when some definitions failed to load."""

    def _validate(self, data: dict[str, Any]) -> None:
        """Raise ValueError if data is not a valid definition."""
        if not isinstance(data.get("name"), str) or not data["name"]:
            raise ValueError("missing 'name'")

    def load(self) -> None:
        """(Re)load every definition in the directory.

        A missing directory yields an empty cache.

        Raises:
            E: If any definition file could not be read or is invalid
        """
        loaded: dict[str, Definition] = {}
        failures: dict[str, str] = {}

        if self._directory.is_dir():
            for path in sorted(self._directory.rglob("*.json")):
                try:
                    data = json.loads(path.read_text(encoding="utf-8"))
                    if not isinstance(data, dict):
                        raise ValueError("definition must be a JSON object")
                    self._validate(data)
                except (OSError, ValueError) as e:
                    failures[str(path)] = str(e)
                    continue
                loaded[path.stem] = Definition(
                    id=path.stem, name=data["name"], path=str(path), data=data
                )
        else:
            logger.debug("%s directory %s does not exist", self.kind, self._directory)

        with self._lock:
            self._definitions = loaded

        logger.info("Loaded %d %s(s) from %s", len(loaded), self.kind, self._directory)

        if failures:
            raise self._make_error(
                f"error reading {self.kind} configs: "
                + "; ".join(f"{p}: {msg}" for p, msg in failures.items()),
                failures,
            )

    def get(self, definition_id: str) -> Definition | None:
        with self._lock:
            return self._definitions.get(definition_id)

    def all(self) -> list[Definition]:
        with self._lock:
            return sorted(self._definitions.values(), key=lambda d: d.name)

    def __len__(self) -> int:
        with self._lock:
            return len(self._definitions)

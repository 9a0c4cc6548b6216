"""Operator configuration store backed by a single JSON file.

Hey future me - this is THE source of truth for operator configuration! The
file holds flat keys (see the constants below). Environment variables named
``REELVAULT_<KEY>`` (dots become underscores) override file values and are
never written back. A system is "new" when no config file was found or when
the mandatory paths (generated, database) are missing; finalize_setup() flips
that once Setup has written a complete file.
"""

from __future__ import annotations

import json
import logging
import os
import secrets
import threading
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from reelvault.domain.entities import LibraryRoot
from reelvault.domain.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

CONFIG_FILE_ENV = "REELVAULT_CONFIG_FILE"
CONFIG_FILE_NAME = "config.json"

# Keys
GENERATED = "generated"
DATABASE = "database"
LIBRARIES = "libraries"
USERNAME = "username"
PASSWORD = "password"
SECURITY_TRIPWIRE_ACCESSED_FROM_PUBLIC_INTERNET = (
    "security_tripwire_accessed_from_public_internet"
)
# Not exposed through any settings surface - only editable by hand
DANGEROUS_ALLOW_PUBLIC_WITHOUT_AUTH = "dangerous_allow_public_without_auth"
LOG_FILE = "log_file"
LOG_OUT = "log_out"
LOG_LEVEL = "log_level"
PLUGINS_PATH = "plugins_path"
SCRAPERS_PATH = "scrapers_path"
DLNA_DEFAULT_ENABLED = "dlna.default_enabled"
JWT_SECRET_KEY = "jwt_secret_key"
SESSION_STORE_KEY = "session_store_key"
MAX_SESSION_AGE = "max_session_age"

MANDATORY_KEYS = (GENERATED, DATABASE)
VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
DEFAULT_MAX_SESSION_AGE = 60 * 60  # 1 hour

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _env_key(key: str) -> str:
    return "REELVAULT_" + key.replace(".", "_").upper()


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_VALUES
    return bool(value)


class ConfigStore:
    """JSON-file configuration with environment overrides."""

    def __init__(
        self,
        config_file: str | Path | None = None,
        *,
        home_dir: str | Path | None = None,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self._env: Mapping[str, str] = os.environ if env is None else env
        self._home_dir = (
            Path(home_dir) if home_dir is not None else Path.home() / ".reelvault"
        )
        self._explicit_file = Path(config_file) if config_file else None
        self._config_file: Path | None = None
        self._values: dict[str, Any] = {}
        self._new_system = True
        self._lock = threading.RLock()

    # =========================================================================
    # Loading / persistence
    # =========================================================================

    def load(self) -> None:
        """Locate and read the config file.

        A missing file is not an error (new system). An unreadable or
        syntactically broken file is.

        Raises:
            ConfigurationError: If the file exists but cannot be parsed
        """
        with self._lock:
            self._config_file = self._resolve_config_file()
            self._values = {}

            if self._config_file is not None and self._config_file.is_file():
                try:
                    raw = self._config_file.read_text(encoding="utf-8")
                except OSError as e:
                    raise ConfigurationError(
                        f"unable to read config file {self._config_file}: {e}"
                    ) from e

                if raw.strip():
                    try:
                        data = json.loads(raw)
                    except json.JSONDecodeError as e:
                        raise ConfigurationError(
                            f"config file {self._config_file} is not valid JSON: {e}"
                        ) from e
                    if not isinstance(data, dict):
                        raise ConfigurationError(
                            f"config file {self._config_file} must contain a JSON object"
                        )
                    self._values = data

            self._new_system = self._config_file is None or not all(
                self.get(key) for key in MANDATORY_KEYS
            )

    def _resolve_config_file(self) -> Path | None:
        if self._explicit_file is not None:
            return self._explicit_file

        env_file = self._env.get(CONFIG_FILE_ENV)
        if env_file:
            return Path(env_file)

        for candidate in (Path.cwd() / CONFIG_FILE_NAME, self._home_dir / CONFIG_FILE_NAME):
            if candidate.is_file():
                return candidate
        return None

    def write(self) -> None:
        """Persist file values (overrides excluded) atomically.

        Raises:
            ConfigurationError: If no config file is set
            OSError: If the file cannot be written
        """
        with self._lock:
            if self._config_file is None:
                raise ConfigurationError("no config file set")

            payload = json.dumps(self._values, indent=2, sort_keys=True)
            tmp_path = self._config_file.with_name(self._config_file.name + ".tmp")
            tmp_path.write_text(payload + "\n", encoding="utf-8")
            os.replace(tmp_path, self._config_file)
            logger.debug("Wrote configuration to %s", self._config_file)

    def set_initial_config(self) -> None:
        """Generate secrets that must exist once the system is configured.

        Writes the file only when something was generated.
        """
        changed = False
        with self._lock:
            for key in (JWT_SECRET_KEY, SESSION_STORE_KEY):
                if not self.get(key):
                    self._values[key] = secrets.token_hex(32)
                    changed = True
        if changed:
            self.write()

    def finalize_setup(self) -> None:
        with self._lock:
            self._new_system = False

    # =========================================================================
    # Generic accessors
    # =========================================================================

    def get(self, key: str, default: Any = None) -> Any:
        env_value = self._env.get(_env_key(key))
        if env_value is not None:
            return env_value
        with self._lock:
            return self._values.get(key, default)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._values[key] = value

    def set_if_unset(self, key: str, value: Any) -> bool:
        """Set key only when it has no (truthy) value yet.

        Returns:
            True if this call stored the value
        """
        with self._lock:
            if self.get(key):
                return False
            self._values[key] = value
            return True

    def has_override(self, key: str) -> bool:
        """Whether an environment variable pins this key."""
        return _env_key(key) in self._env

    def file_env_set(self) -> bool:
        """Whether the config file location is pinned by the environment."""
        return bool(self._env.get(CONFIG_FILE_ENV))

    def is_new_system(self) -> bool:
        return self._new_system

    # =========================================================================
    # Config file location
    # =========================================================================

    def get_config_file(self) -> str:
        return str(self._config_file) if self._config_file is not None else ""

    def get_config_path(self) -> str:
        """Directory holding the config file, or "" when none is set."""
        return str(self._config_file.parent) if self._config_file is not None else ""

    def set_config_file(self, path: str | Path) -> None:
        with self._lock:
            self._config_file = Path(path)

    def get_home_dir(self) -> str:
        return str(self._home_dir)

    # =========================================================================
    # Typed accessors
    # =========================================================================

    def get_generated_path(self) -> str:
        return str(self.get(GENERATED) or "")

    def get_database_path(self) -> str:
        return str(self.get(DATABASE) or "")

    def get_libraries(self) -> list[LibraryRoot]:
        raw = self.get(LIBRARIES) or []
        if isinstance(raw, str):
            # Env override: os.pathsep separated directories
            raw = [p for p in raw.split(os.pathsep) if p]
        libraries = []
        for entry in raw:
            if isinstance(entry, str):
                libraries.append(LibraryRoot(path=entry))
            else:
                libraries.append(
                    LibraryRoot(
                        path=entry["path"],
                        exclude_video=bool(entry.get("exclude_video", False)),
                        exclude_image=bool(entry.get("exclude_image", False)),
                    )
                )
        return libraries

    def get_username(self) -> str:
        return str(self.get(USERNAME) or "")

    def get_password(self) -> str:
        return str(self.get(PASSWORD) or "")

    def has_credentials(self) -> bool:
        return bool(self.get_username()) and bool(self.get_password())

    def get_dangerous_allow_public_without_auth(self) -> bool:
        return _as_bool(self.get(DANGEROUS_ALLOW_PUBLIC_WITHOUT_AUTH, False))

    def get_security_tripwire_accessed_from_public_internet(self) -> str:
        return str(self.get(SECURITY_TRIPWIRE_ACCESSED_FROM_PUBLIC_INTERNET) or "")

    def get_log_file(self) -> str:
        return str(self.get(LOG_FILE) or "")

    def get_log_out(self) -> bool:
        return _as_bool(self.get(LOG_OUT, True))

    def get_log_level(self) -> str:
        return str(self.get(LOG_LEVEL) or "INFO").upper()

    def get_plugins_path(self) -> str:
        return str(self.get(PLUGINS_PATH) or self._default_subdir("plugins"))

    def get_scrapers_path(self) -> str:
        return str(self.get(SCRAPERS_PATH) or self._default_subdir("scrapers"))

    def get_dlna_default_enabled(self) -> bool:
        return _as_bool(self.get(DLNA_DEFAULT_ENABLED, False))

    def get_session_store_key(self) -> str:
        return str(self.get(SESSION_STORE_KEY) or "")

    def get_max_session_age(self) -> int:
        return int(self.get(MAX_SESSION_AGE) or DEFAULT_MAX_SESSION_AGE)

    def _default_subdir(self, name: str) -> str:
        base = self.get_config_path() or str(self._home_dir)
        return str(Path(base) / name)

    # =========================================================================
    # Validation
    # =========================================================================

    def validate(self) -> None:
        """Check that the configuration is complete and coherent.

        Raises:
            ConfigurationError: Describing the first problem found
        """
        missing = [key for key in MANDATORY_KEYS if not self.get(key)]
        if missing:
            raise ConfigurationError(
                f"missing required configuration: {', '.join(missing)}"
            )

        if bool(self.get_username()) != bool(self.get_password()):
            raise ConfigurationError(
                "username and password must both be set, or both be empty"
            )

        if self.get_log_level() not in VALID_LOG_LEVELS:
            raise ConfigurationError(f"invalid log level: {self.get(LOG_LEVEL)}")

    def is_valid(self) -> bool:
        try:
            self.validate()
        except ConfigurationError:
            return False
        return True

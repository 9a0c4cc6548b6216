"""Domain value objects for system lifecycle operations."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class SystemStatusEnum(str, Enum):
    """Overall system state. No other states exist."""

    SETUP = "setup"
    NEEDS_MIGRATION = "needs_migration"
    OK = "ok"


@dataclass(frozen=True)
class SystemStatus:
    """Snapshot of the system state. Never cached - recomputed per query."""

    status: SystemStatusEnum
    database_schema: int
    app_schema: int
    database_path: str
    config_path: str


@dataclass
class LibraryRoot:
    """A library directory to catalog."""

    path: str
    exclude_video: bool = False
    exclude_image: bool = False

    def to_dict(self) -> dict[str, object]:
        return {
            "path": self.path,
            "exclude_video": self.exclude_video,
            "exclude_image": self.exclude_image,
        }


@dataclass
class SetupInput:
    """First-run configuration. Empty locations get defaults during setup."""

    config_location: str = ""
    generated_location: str = ""
    database_file: str = ""
    libraries: list[LibraryRoot] = field(default_factory=list)


@dataclass(frozen=True)
class MigrateInput:
    """Migration request. A caller-supplied backup_path is kept after success."""

    backup_path: str | None = None


@dataclass(frozen=True)
class MigrationRecord:
    """Describes one migration run. Lives only for the duration of migrate()."""

    source_version: int
    target_version: int
    backup_path: str
    caller_supplied_backup: bool


__all__ = [
    "LibraryRoot",
    "MigrateInput",
    "MigrationRecord",
    "SetupInput",
    "SystemStatus",
    "SystemStatusEnum",
]

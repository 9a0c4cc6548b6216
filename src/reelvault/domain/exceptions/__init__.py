"""Domain exceptions."""

from typing import Any


class DomainException(Exception):
    """Base exception for all domain exceptions."""

    # Hey future me, message is kept as an attribute so handlers can read it without
    # parsing str(exception). Always raise a specific subclass, never this one.
    def __init__(self, message: str, *args: Any) -> None:
        super().__init__(message, *args)
        self.message = message


class ConfigurationError(DomainException):
    """Application misconfiguration.

    Raised when the config file cannot be read, or when its contents fail
    validation (missing database/generated paths, half-configured credentials).

    HTTP Status: 503 (Service Unavailable)
    """

    pass


class FatalStartupError(DomainException):
    """Startup cannot continue.

    Raised by ProcessOrchestrator.initialize() when configuration fails to load,
    or fails validation on a system that is not new. The entry point turns this
    into a process exit with status 1. The core itself never exits.
    """

    pass


class SetupError(DomainException):
    """First-run setup failed at a specific step.

    Steps completed before the failure are NOT rolled back.

    HTTP Status: 400
    """

    def __init__(self, step: str, cause: BaseException) -> None:
        super().__init__(f"error {step}: {cause}")
        self.step = step


class AlreadyConfiguredError(DomainException):
    """Setup was requested on a system that is already configured.

    HTTP Status: 409 (Conflict)
    """

    def __init__(self, config_file: str) -> None:
        super().__init__(f"system is already configured (config file: {config_file})")
        self.config_file = config_file


# =============================================================================
# Persistence
# =============================================================================


class DatabaseError(DomainException):
    """Base class for persisted store failures."""

    pass


class DatabaseNotInitializedError(DatabaseError):
    """The database connection is not open (not initialized, or needs migration)."""

    def __init__(self) -> None:
        super().__init__("database not initialized")


class IncompatibleSchemaError(DatabaseError):
    """Database schema is newer than this build understands."""

    def __init__(self, database_schema: int, app_schema: int) -> None:
        super().__init__(
            f"database schema version {database_schema} is incompatible "
            f"with required schema version {app_schema}"
        )
        self.database_schema = database_schema
        self.app_schema = app_schema


class BackupError(DatabaseError):
    """Backing up the database failed. No schema change was attempted."""

    def __init__(self, backup_path: str, cause: BaseException) -> None:
        super().__init__(f"error backing up database to {backup_path}: {cause}")
        self.backup_path = backup_path


class MigrationError(DatabaseError):
    """Schema migration failed.

    Hey future me - check database_inconsistent FIRST! When it is True the
    automatic restore failed too, and the only good copy of the data is the
    file at backup_path. Surface that path to the operator verbatim.

    HTTP Status: 500
    """

    def __init__(
        self,
        message: str,
        backup_path: str,
        database_inconsistent: bool = False,
    ) -> None:
        super().__init__(message)
        self.backup_path = backup_path
        self.database_inconsistent = database_inconsistent


# =============================================================================
# Access policy
# =============================================================================


class AccessPolicyError(DomainException):
    """Base class for request access-policy rejections."""

    pass


class ExternalAccessError(AccessPolicyError):
    """Request originated from (or passed through) a public internet address
    while no authentication is configured.

    HTTP Status: 403
    """

    def __init__(self, address: str) -> None:
        super().__init__(
            f"external access from {address} is not allowed without authentication"
        )
        self.address = address


class MalformedAddressError(AccessPolicyError):
    """Remote or forwarded address could not be parsed.

    HTTP Status: 400
    """

    def __init__(self, address: str, reason: str | None = None) -> None:
        detail = f": {reason}" if reason else ""
        super().__init__(f"unable to parse remote address ({address}){detail}")
        self.address = address


# =============================================================================
# Optional subsystems (logged and degraded at startup)
# =============================================================================


class TranscoderError(DomainException):
    """Transcoder binaries could not be located or downloaded."""

    pass


class PluginError(DomainException):
    """One or more plugin definitions failed to load."""

    def __init__(self, message: str, failures: dict[str, str] | None = None) -> None:
        super().__init__(message)
        self.failures = failures or {}


class ScraperError(DomainException):
    """One or more scraper definitions failed to load."""

    def __init__(self, message: str, failures: dict[str, str] | None = None) -> None:
        super().__init__(message)
        self.failures = failures or {}


__all__ = [
    # Base
    "DomainException",
    # Configuration / startup
    "ConfigurationError",
    "FatalStartupError",
    "SetupError",
    "AlreadyConfiguredError",
    # Persistence
    "DatabaseError",
    "DatabaseNotInitializedError",
    "IncompatibleSchemaError",
    "BackupError",
    "MigrationError",
    # Access policy
    "AccessPolicyError",
    "ExternalAccessError",
    "MalformedAddressError",
    # Optional subsystems
    "TranscoderError",
    "PluginError",
    "ScraperError",
]

"""Database connection, schema versioning, backup and restore.

Hey future me - the schema version IS the alembic revision id. Revisions are
numbered "0001", "0002", ... so int(revision) gives a comparable version and the
script head gives the version this build expects. Version 0 means an empty or
missing database file.

Lifecycle of the connection:
- initialize() on an empty database runs every migration, then opens.
- initialize() on an older database does NOT open - the system reports
  needs_migration until MigrationManager.migrate() runs.
- initialize() on a newer database raises IncompatibleSchemaError.
"""

import logging
import os
import shutil
import threading
from collections.abc import Generator
from contextlib import contextmanager, suppress
from datetime import datetime
from pathlib import Path
from typing import Any

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from sqlalchemy import Engine, create_engine, event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from reelvault.domain.exceptions import (
    BackupError,
    DatabaseNotInitializedError,
    IncompatibleSchemaError,
)

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).parent / "migrations"


class Database:
    """The persisted store: one SQLite file."""

    def __init__(self) -> None:
        self._path = ""
        self._engine: Engine | None = None
        self._session_factory: sessionmaker[Session] | None = None
        self._schema_version = 0
        self._app_schema_version: int | None = None
        self._lock = threading.RLock()

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def path(self) -> str:
        return self._path

    @property
    def schema_version(self) -> int:
        """Schema version of the database file (0 = empty)."""
        return self._schema_version

    @property
    def app_schema_version(self) -> int:
        """Schema version this build of the application expects."""
        if self._app_schema_version is None:
            head = ScriptDirectory.from_config(self.alembic_config()).get_current_head()
            self._app_schema_version = int(head) if head else 0
        return self._app_schema_version

    @property
    def is_ready(self) -> bool:
        """Whether the connection is open (false while a migration is pending)."""
        return self._engine is not None

    def needs_migration(self) -> bool:
        return self._schema_version != self.app_schema_version

    def ready(self) -> None:
        """Raise unless the connection is open."""
        if not self.is_ready:
            raise DatabaseNotInitializedError()

    # =========================================================================
    # Open / close
    # =========================================================================

    def initialize(self, database_path: str) -> None:
        """Point at a database file and open it if its schema is current.

        Raises:
            IncompatibleSchemaError: If the file is newer than this build
            SQLAlchemyError: If the file cannot be read or migrated
        """
        with self._lock:
            self.close()
            self._path = database_path
            Path(database_path).parent.mkdir(parents=True, exist_ok=True)

            self._schema_version = self._read_schema_version()

            if self._schema_version == 0:
                logger.info("New database at %s, creating schema", database_path)
                self.run_migrations()
                return

            if self._schema_version > self.app_schema_version:
                raise IncompatibleSchemaError(
                    self._schema_version, self.app_schema_version
                )

            if self.needs_migration():
                logger.warning(
                    "Database schema version %d does not match required schema version %d",
                    self._schema_version,
                    self.app_schema_version,
                )
                return

            self._open()

    def close(self) -> None:
        """Dispose the engine. Safe to call when not open."""
        with self._lock:
            if self._engine is None:
                return
            engine = self._engine
            self._engine = None
            self._session_factory = None
            engine.dispose()
            logger.debug("Database connection closed: %s", self._path)

    def _open(self) -> None:
        self._engine = self._create_engine()
        self._session_factory = sessionmaker(self._engine, expire_on_commit=False)
        logger.info(
            "Database opened: %s (schema version %d)", self._path, self._schema_version
        )

    def _create_engine(self) -> Engine:
        engine = create_engine(
            f"sqlite:///{self._path}",
            connect_args={
                "check_same_thread": False,
                "timeout": 30,  # Wait up to 30s for lock
            },
        )

        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_conn: Any, _connection_record: Any) -> None:
            """Enable foreign keys on every connection."""
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine

    def _read_schema_version(self) -> int:
        if not Path(self._path).exists():
            return 0

        engine = self._create_engine()
        try:
            with engine.connect() as conn:
                revision = MigrationContext.configure(conn).get_current_revision()
        finally:
            engine.dispose()
        return int(revision) if revision else 0

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """Provide a transactional scope for database operations."""
        if self._session_factory is None:
            raise DatabaseNotInitializedError()

        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            # Rollback on any exception, then re-raise for the caller
            session.rollback()
            raise
        finally:
            session.close()

    # =========================================================================
    # Migrations
    # =========================================================================

    def alembic_config(self) -> Config:
        """Alembic config pointing at the bundled migration scripts."""
        cfg = Config()
        cfg.set_main_option("script_location", str(MIGRATIONS_DIR))
        if self._path:
            # ConfigParser interpolation: escape percent signs in paths
            cfg.set_main_option(
                "sqlalchemy.url", f"sqlite:///{self._path}".replace("%", "%%")
            )
        return cfg

    def run_migrations(self) -> None:
        """Apply all pending migrations in ascending order, then reopen.

        The connection is closed while alembic runs. On failure the database is
        left closed and possibly partially migrated; callers that care about
        that (MigrationManager) must have taken a backup first.
        """
        with self._lock:
            self.close()
            engine = self._create_engine()
            try:
                with engine.begin() as conn:
                    cfg = self.alembic_config()
                    cfg.attributes["connection"] = conn
                    command.upgrade(cfg, "head")
            finally:
                engine.dispose()

            self._schema_version = self._read_schema_version()
            logger.info("Database migrated to schema version %d", self._schema_version)
            self._open()

    # =========================================================================
    # Backup / restore
    # =========================================================================

    def default_backup_path(self) -> str:
        """``<db>.<schema version>.<YYYYmmdd_HHMMSS>`` next to the database."""
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        return f"{self._path}.{self._schema_version}.{timestamp}"

    def backup(self, backup_path: str) -> None:
        """Write a consistent copy of the database to backup_path.

        Works whether or not the main connection is open (a database that needs
        migration is never opened).

        Raises:
            BackupError: If the copy could not be written
        """
        with self._lock:
            if not self._path:
                raise BackupError(backup_path, DatabaseNotInitializedError())

            engine = self._engine or self._create_engine()
            try:
                Path(backup_path).parent.mkdir(parents=True, exist_ok=True)
                with engine.connect() as conn:
                    conn = conn.execution_options(isolation_level="AUTOCOMMIT")
                    conn.exec_driver_sql("VACUUM INTO ?", (backup_path,))
            except (SQLAlchemyError, OSError) as e:
                raise BackupError(backup_path, e) from e
            finally:
                if engine is not self._engine:
                    engine.dispose()

            logger.info("Database backed up to %s", backup_path)

    # Hey future me - the live file must never be missing or half-written! We copy
    # the backup to a sibling temp file first and os.replace() it over the live
    # path, which is atomic on the same filesystem. The backup itself is kept so
    # the operator still has it if anything after this goes wrong.
    def restore_from_backup(self, backup_path: str) -> None:
        """Replace the live database file with the backup.

        Raises:
            OSError: If the backup cannot be copied or swapped in
        """
        logger.info("Restoring backup database %s into %s", backup_path, self._path)
        with self._lock:
            self.close()

            tmp_path = f"{self._path}.restore-tmp"
            try:
                shutil.copyfile(backup_path, tmp_path)
                os.replace(tmp_path, self._path)
            except OSError:
                with suppress(OSError):
                    os.remove(tmp_path)
                raise

            # Journal files belong to the file we just replaced
            for suffix in ("-journal", "-wal", "-shm"):
                with suppress(FileNotFoundError):
                    os.remove(self._path + suffix)

            self._schema_version = self._read_schema_version()
            if not self.needs_migration():
                self._open()

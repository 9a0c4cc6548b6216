"""Backup-then-migrate-then-rollback for the persisted store.

Hey future me - this is the most safety-critical path in the whole server.
The invariant: a backup file exists on disk BEFORE any schema change starts, and
it is only deleted after the migration succeeded AND the caller did not ask to
keep it. On failure we always try to restore from that backup, and the error
always names the backup file so nothing is ever lost silently.
"""

import logging
import os
from collections.abc import Callable

from reelvault.domain.entities import MigrateInput, MigrationRecord
from reelvault.domain.exceptions import MigrationError
from reelvault.infrastructure.persistence import Database

logger = logging.getLogger(__name__)


class MigrationManager:
    """Applies pending schema migrations with automatic backup and restore."""

    def __init__(
        self,
        database: Database,
        post_migrate: Callable[[], None] | None = None,
    ) -> None:
        self._database = database
        self._post_migrate = post_migrate

    def plan(self, input: MigrateInput) -> MigrationRecord:
        """Describe the migration a request would perform."""
        caller_supplied = bool(input.backup_path)
        return MigrationRecord(
            source_version=self._database.schema_version,
            target_version=self._database.app_schema_version,
            backup_path=input.backup_path or self._database.default_backup_path(),
            caller_supplied_backup=caller_supplied,
        )

    def migrate(self, input: MigrateInput) -> MigrationRecord:
        """Back up, migrate, and restore on failure.

        Args:
            input: Migration request (optional explicit backup path)

        Returns:
            The record of the completed migration

        Raises:
            BackupError: Backup failed; the schema was not touched
            MigrationError: Migration failed; see database_inconsistent
        """
        record = self.plan(input)
        logger.info(
            "Migrating database from schema version %d to %d (backup: %s)",
            record.source_version,
            record.target_version,
            record.backup_path,
        )

        # Fail closed: no backup, no migration
        self._database.backup(record.backup_path)

        try:
            self._database.run_migrations()
        except Exception as migration_error:
            raise self._rollback(record, migration_error) from migration_error

        if self._post_migrate is not None:
            self._post_migrate()

        if not record.caller_supplied_backup:
            try:
                os.remove(record.backup_path)
            except OSError as e:
                logger.warning(
                    "Error removing unwanted database backup (%s): %s",
                    record.backup_path,
                    e,
                )

        logger.info("Database migration to schema version %d complete", record.target_version)
        return record

    def _rollback(
        self, record: MigrationRecord, migration_error: BaseException
    ) -> MigrationError:
        logger.error("Error performing migration: %s", migration_error)

        try:
            self._database.restore_from_backup(record.backup_path)
        except Exception as restore_error:
            logger.critical(
                "Unable to restore database from backup %s after migration failure: %s",
                record.backup_path,
                restore_error,
            )
            return MigrationError(
                "ERROR: unable to restore database from backup after migration "
                f"failure: {restore_error}. The database may be in an inconsistent "
                f"state. Restore it manually from the backup at {record.backup_path}.\n"
                f"Error performing migration: {migration_error}",
                backup_path=record.backup_path,
                database_inconsistent=True,
            )

        return MigrationError(
            "An error occurred migrating the database to the latest schema version. "
            f"The database was restored from the backup at {record.backup_path}.\n"
            f"Error performing migration: {migration_error}",
            backup_path=record.backup_path,
        )

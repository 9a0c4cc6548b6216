"""System status state machine: setup / needs_migration / ok."""

from reelvault.config import ConfigStore
from reelvault.domain.entities import SystemStatus, SystemStatusEnum
from reelvault.infrastructure.persistence import Database


def compute_status(
    is_new_system: bool, database_schema: int, app_schema: int
) -> SystemStatusEnum:
    """Incomplete config wins over everything; then schema comparison."""
    if is_new_system:
        return SystemStatusEnum.SETUP
    if database_schema < app_schema:
        return SystemStatusEnum.NEEDS_MIGRATION
    return SystemStatusEnum.OK


class SystemStatusReporter:
    """Reads live config and database state on every call. Nothing is cached."""

    def __init__(self, config: ConfigStore, database: Database) -> None:
        self._config = config
        self._database = database

    def get_system_status(self) -> SystemStatus:
        database_schema = self._database.schema_version
        app_schema = self._database.app_schema_version
        return SystemStatus(
            status=compute_status(
                self._config.is_new_system(), database_schema, app_schema
            ),
            database_schema=database_schema,
            app_schema=app_schema,
            database_path=self._database.path,
            config_path=self._config.get_config_file(),
        )

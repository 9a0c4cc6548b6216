"""System endpoints: status, first-run setup and schema migration."""

# Hey future me - these routes are plain `def`, not `async def`. setup() and
# migrate() block on file IO and SQLite for as long as they take, so FastAPI
# runs them in its threadpool instead of on the event loop.

import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from reelvault.api.dependencies import get_orchestrator
from reelvault.domain.entities import LibraryRoot, MigrateInput, SetupInput
from reelvault.infrastructure.lifecycle import ProcessOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter()


class SystemStatusResponse(BaseModel):
    """Current system status."""

    status: str = Field(description="One of: setup, needs_migration, ok")
    database_schema: int = Field(description="Schema version of the database file")
    app_schema: int = Field(description="Schema version this build expects")
    database_path: str
    config_path: str


class LibraryRootRequest(BaseModel):
    path: str
    exclude_video: bool = False
    exclude_image: bool = False


class SetupRequest(BaseModel):
    """First-run setup. Empty locations fall back to defaults."""

    config_location: str = ""
    generated_location: str = ""
    database_file: str = ""
    libraries: list[LibraryRootRequest] = Field(default_factory=list)


class MigrateRequest(BaseModel):
    backup_path: str | None = Field(
        default=None,
        description="Keep the pre-migration backup at this path",
    )


class MigrateResponse(BaseModel):
    source_version: int
    target_version: int
    backup_path: str
    backup_kept: bool


def _status_response(orchestrator: ProcessOrchestrator) -> SystemStatusResponse:
    result = orchestrator.get_system_status()
    return SystemStatusResponse(
        status=result.status.value,
        database_schema=result.database_schema,
        app_schema=result.app_schema,
        database_path=result.database_path,
        config_path=result.config_path,
    )


@router.get("/status")
def get_system_status(
    orchestrator: ProcessOrchestrator = Depends(get_orchestrator),
) -> SystemStatusResponse:
    """Get the system status (setup / needs_migration / ok)."""
    return _status_response(orchestrator)


@router.post("/setup")
def run_setup(
    request: SetupRequest,
    orchestrator: ProcessOrchestrator = Depends(get_orchestrator),
) -> SystemStatusResponse:
    """Write the initial configuration and bring the system up.

    Returns:
        The system status after setup
    """
    orchestrator.setup(
        SetupInput(
            config_location=request.config_location,
            generated_location=request.generated_location,
            database_file=request.database_file,
            libraries=[
                LibraryRoot(
                    path=library.path,
                    exclude_video=library.exclude_video,
                    exclude_image=library.exclude_image,
                )
                for library in request.libraries
            ],
        )
    )
    return _status_response(orchestrator)


@router.post("/migrate")
def run_migration(
    request: MigrateRequest,
    orchestrator: ProcessOrchestrator = Depends(get_orchestrator),
) -> MigrateResponse:
    """Back up the database and migrate it to the current schema."""
    record = orchestrator.migrate(MigrateInput(backup_path=request.backup_path))
    return MigrateResponse(
        source_version=record.source_version,
        target_version=record.target_version,
        backup_path=record.backup_path,
        backup_kept=record.caller_supplied_backup,
    )

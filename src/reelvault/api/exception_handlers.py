"""Map domain exceptions to HTTP responses.

Every domain error carries a human-readable message; handlers return it as
``{"detail": message}`` with a status code matching the error kind.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from reelvault.domain.exceptions import (
    AlreadyConfiguredError,
    BackupError,
    ConfigurationError,
    DatabaseNotInitializedError,
    IncompatibleSchemaError,
    MigrationError,
    SetupError,
    TranscoderError,
)

logger = logging.getLogger(__name__)


def register_exception_handlers(app: FastAPI) -> None:
    """Register handlers for the domain exceptions the routes can raise.

    Args:
        app: FastAPI application instance
    """

    @app.exception_handler(SetupError)
    async def setup_error_handler(request: Request, exc: SetupError) -> JSONResponse:
        logger.error("Setup failed at step '%s': %s", exc.step, exc.message)
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": exc.message, "step": exc.step},
        )

    @app.exception_handler(AlreadyConfiguredError)
    async def already_configured_handler(
        request: Request, exc: AlreadyConfiguredError
    ) -> JSONResponse:
        logger.warning("Rejected setup request: %s", exc.message)
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content={"detail": exc.message},
        )

    @app.exception_handler(BackupError)
    async def backup_error_handler(request: Request, exc: BackupError) -> JSONResponse:
        logger.error("Database backup failed: %s", exc.message)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": exc.message, "backup_path": exc.backup_path},
        )

    @app.exception_handler(MigrationError)
    async def migration_error_handler(
        request: Request, exc: MigrationError
    ) -> JSONResponse:
        # Already logged by the migration manager
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": exc.message,
                "backup_path": exc.backup_path,
                "database_inconsistent": exc.database_inconsistent,
            },
        )

    @app.exception_handler(IncompatibleSchemaError)
    async def incompatible_schema_handler(
        request: Request, exc: IncompatibleSchemaError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content={"detail": exc.message},
        )

    @app.exception_handler(DatabaseNotInitializedError)
    async def database_not_initialized_handler(
        request: Request, exc: DatabaseNotInitializedError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": exc.message},
        )

    @app.exception_handler(ConfigurationError)
    async def configuration_error_handler(
        request: Request, exc: ConfigurationError
    ) -> JSONResponse:
        logger.error("Configuration error at %s: %s", request.url.path, exc.message)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": exc.message},
        )

    @app.exception_handler(TranscoderError)
    async def transcoder_error_handler(
        request: Request, exc: TranscoderError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": exc.message},
        )

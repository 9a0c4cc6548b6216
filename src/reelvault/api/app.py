"""FastAPI application factory."""

from fastapi import FastAPI

from reelvault import __version__
from reelvault.api.exception_handlers import register_exception_handlers
from reelvault.api.middleware import AccessGuardMiddleware
from reelvault.api.routers import system
from reelvault.infrastructure.lifecycle import ProcessOrchestrator, lifespan


def create_app(orchestrator: ProcessOrchestrator | None = None) -> FastAPI:
    """Build the application.

    Args:
        orchestrator: Already-constructed orchestrator. When omitted the
            lifespan creates, initializes and closes one itself.

    Returns:
        Configured FastAPI app
    """
    app = FastAPI(title="reelvault", version=__version__, lifespan=lifespan)
    if orchestrator is not None:
        app.state.orchestrator = orchestrator

    app.add_middleware(AccessGuardMiddleware)
    register_exception_handlers(app)
    app.include_router(system.router, prefix="/api/system", tags=["system"])
    return app

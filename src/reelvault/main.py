"""Process entry point (``reelvault`` console script)."""

import logging
import sys

import uvicorn

from reelvault.api import create_app
from reelvault.config import get_settings
from reelvault.domain.exceptions import FatalStartupError
from reelvault.infrastructure.lifecycle import ProcessOrchestrator

logger = logging.getLogger(__name__)


def main() -> None:
    """Initialize the server, serve HTTP until stopped, then shut down."""
    settings = get_settings()
    orchestrator = ProcessOrchestrator(settings)

    try:
        orchestrator.initialize()
    except FatalStartupError as e:
        # Logging may not be configured yet, so write straight to stderr
        print(f"FATAL: {e.message}", file=sys.stderr)
        sys.exit(1)

    app = create_app(orchestrator)
    exit_code = 0
    try:
        # log_config=None keeps our logging configuration
        uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)
    except Exception as e:
        logger.exception("Server error: %s", e)
        exit_code = 1

    orchestrator.shutdown(exit_code)


if __name__ == "__main__":
    main()

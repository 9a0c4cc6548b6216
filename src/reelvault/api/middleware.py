"""Request middleware: correlation ids and the public-access guard."""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from reelvault.application.services.access_guard import (
    check_request,
    log_external_access_error,
    record_external_access_tripwire,
)
from reelvault.domain.exceptions import ExternalAccessError, MalformedAddressError
from reelvault.infrastructure.lifecycle import ProcessOrchestrator
from reelvault.infrastructure.observability import get_correlation_id, set_correlation_id

logger = logging.getLogger(__name__)

CORRELATION_ID_HEADER = "X-Correlation-ID"


# Hey future me - this runs for EVERY request before any route. When no
# credentials are configured, a request from a public address is refused with
# 403 and the FIRST such address is written to the config file (the tripwire).
# After that the operator sees the warning on every startup until they set up
# auth or clear the key by hand.
class AccessGuardMiddleware(BaseHTTPMiddleware):
    """Refuse unauthenticated requests that come from the public internet."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        set_correlation_id(request.headers.get(CORRELATION_ID_HEADER))

        orchestrator: ProcessOrchestrator = request.app.state.orchestrator
        config = orchestrator.config

        try:
            check_request(config, request)
        except ExternalAccessError as e:
            log_external_access_error(e)
            await asyncio.to_thread(record_external_access_tripwire, config, e)
            return self._reject(status.HTTP_403_FORBIDDEN, "external access not allowed")
        except MalformedAddressError as e:
            logger.error("Error checking external access security: %s", e.message)
            return self._reject(status.HTTP_400_BAD_REQUEST, e.message)

        response = await call_next(request)
        response.headers[CORRELATION_ID_HEADER] = get_correlation_id()
        return response

    @staticmethod
    def _reject(status_code: int, detail: str) -> JSONResponse:
        response = JSONResponse(status_code=status_code, content={"detail": detail})
        response.headers[CORRELATION_ID_HEADER] = get_correlation_id()
        return response

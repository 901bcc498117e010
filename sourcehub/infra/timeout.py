"""Request and database timeouts."""

import asyncio
import logging
from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from sourcehub.infra.config import config

logger = logging.getLogger(__name__)

DATABASE_QUERY_TIMEOUT = 10  # statement_timeout, seconds
DATABASE_POOL_TIMEOUT = 10  # wait for a pooled connection, seconds

# Deadline for a provisioning request: two core API calls, the connectors API
# call and up to four queries, run in sequence.
PROVISIONING_CALL_BUDGET = 2 * config.CORE_API_TIMEOUT_SECONDS + config.CONNECTORS_API_TIMEOUT_SECONDS
REQUEST_TIMEOUT = max(60, int(PROVISIONING_CALL_BUDGET + 4 * DATABASE_QUERY_TIMEOUT))


class TimeoutMiddleware(BaseHTTPMiddleware):
    """Returns 504 when a request exceeds its deadline."""

    def __init__(self, app, timeout: float = REQUEST_TIMEOUT):
        super().__init__(app)
        self.timeout = timeout

    async def dispatch(self, request: Request, call_next):
        try:
            return await asyncio.wait_for(call_next(request), timeout=self.timeout)
        except asyncio.TimeoutError:
            request_id = getattr(request.state, "request_id", None)
            logger.error(
                "Request deadline exceeded",
                extra={"request_id": request_id, "path": request.url.path, "timeout_s": self.timeout},
            )
            return JSONResponse(
                status_code=status.HTTP_504_GATEWAY_TIMEOUT,
                content={
                    "detail": f"Request timeout after {self.timeout} seconds",
                    "request_id": request_id,
                },
            )

"""Request ID, access logging and CORS."""

import logging
import re
import time
import uuid
from typing import Callable, List
from fastapi import Request, Response
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from sourcehub.infra.config import config
from sourcehub.infra.metrics import request_count, request_duration

logger = logging.getLogger("sourcehub.request")

# Caller-supplied ids end up in logs and event rows
_REQUEST_ID_PATTERN = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")


def _request_id_from(request: Request) -> str:
    supplied = request.headers.get("X-Request-ID")
    if supplied and _REQUEST_ID_PATTERN.match(supplied):
        return supplied
    return str(uuid.uuid4())


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Assigns `request.state.request_id` and echoes it as X-Request-ID."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = _request_id_from(request)
        request.state.request_id = request_id

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """One access log line and one metrics sample per request."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "Request failed",
                extra={
                    "request_id": getattr(request.state, "request_id", None),
                    "method": request.method,
                    "path": request.url.path,
                    "error": str(e),
                    "duration_ms": int((time.time() - start_time) * 1000),
                },
                exc_info=True,
            )
            raise

        elapsed = time.time() - start_time

        # Route template keeps tenant ids out of metric labels
        route = request.scope.get("route")
        endpoint = getattr(route, "path", "unmatched")
        request_count.labels(request.method, endpoint, str(response.status_code)).inc()
        request_duration.labels(request.method, endpoint).observe(elapsed)

        path_params = request.scope.get("path_params") or {}
        log = logger.warning if response.status_code >= 500 else logger.info
        log(
            f"{request.method} {endpoint} {response.status_code}",
            extra={
                "request_id": getattr(request.state, "request_id", None),
                "tenant_id": path_params.get("tenant_id"),
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": int(elapsed * 1000),
            }
        )
        response.headers["X-Response-Time-Ms"] = str(int(elapsed * 1000))
        return response


def allowed_origins() -> List[str]:
    """Origins from CORS_ORIGINS; a wildcard is honored only in development."""
    origins = [origin.strip() for origin in config.CORS_ORIGINS.split(",") if origin.strip()]
    if not origins and config.APP_ENV == "development":
        return ["*"]
    if config.APP_ENV != "development":
        origins = [origin for origin in origins if origin != "*"]
    return origins


def setup_cors(app):
    """Install CORS for the GET and POST surface of the API."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins(),
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-API-Key", "X-Request-ID"],
        expose_headers=["X-Request-ID", "X-Response-Time-Ms"],
    )

"""FastAPI application for managed data source provisioning."""

import os
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.openapi.utils import get_openapi
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from sourcehub.infra.config import config
from sourcehub.infra.logging import app_logger
from sourcehub.infra.middleware import RequestIDMiddleware, RequestLoggingMiddleware, setup_cors
from sourcehub.infra.timeout import TimeoutMiddleware, REQUEST_TIMEOUT


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown."""
    app_logger.info(
        "Application starting up",
        extra={
            "app_env": config.APP_ENV,
            "core_api_url": config.CORE_API_URL,
            "connectors_api_url": config.CONNECTORS_API_URL,
            "request_timeout_s": REQUEST_TIMEOUT,
        },
    )

    yield

    app_logger.info("Application shutting down")

    from sourcehub.infra.database import engine
    engine.dispose()


app = FastAPI(
    title="Source Hub API",
    description="""
    Source Hub API attaches managed data sources to tenants. A managed data
    source is an embedding index in the core API kept in sync with a
    third-party provider (Slack, Notion) by a connector.

    ## Authentication

    Endpoints require API key authentication via:
    - Header: `X-API-Key: <your-api-key>`
    - Query parameter: `?api_key=<your-api-key>`
    """,
    version="1.0.0",
    lifespan=lifespan,
    tags_metadata=[
        {
            "name": "Data Sources",
            "description": "Create managed data sources and inspect local data source records",
        },
        {
            "name": "Health",
            "description": "Health check and monitoring endpoints",
        },
    ],
)

app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(RequestIDMiddleware)
app.add_middleware(TimeoutMiddleware, timeout=REQUEST_TIMEOUT)
setup_cors(app)

from sourcehub.api.routers import data_sources, health

app.include_router(data_sources.router)
app.include_router(health.router)


def custom_openapi():
    if app.openapi_schema:
        return app.openapi_schema

    openapi_schema = get_openapi(
        title=app.title,
        version=app.version,
        description=app.description,
        routes=app.routes,
    )

    components = openapi_schema.setdefault("components", {})
    components.setdefault("securitySchemes", {})["ApiKeyAuth"] = {
        "type": "apiKey",
        "in": "header",
        "name": "X-API-Key",
        "description": "API Key authentication. Provide your API key in the X-API-Key header or as api_key query parameter."
    }

    app.openapi_schema = openapi_schema
    return app.openapi_schema


app.openapi = custom_openapi

MAX_REQUEST_SIZE = 64 * 1024  # 64KB


@app.middleware("http")
async def request_size_limit_middleware(request: Request, call_next):
    """Enforce request size limits."""
    content_length = request.headers.get("content-length")
    if content_length and content_length.isdigit() and int(content_length) > MAX_REQUEST_SIZE:
        return JSONResponse(
            status_code=413,
            content={"detail": f"Request too large. Maximum size: {MAX_REQUEST_SIZE} bytes"},
        )
    return await call_next(request)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies use the same error envelope as provisioning errors."""
    return JSONResponse(
        status_code=400,
        content={"error": {"kind": "invalid-request", "message": "The request body is invalid.", "detail": jsonable_encoder(exc.errors())}},
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle all other exceptions."""
    error_id = str(uuid.uuid4())
    app_logger.error(f"Unhandled exception: {exc}", exc_info=True, extra={"error_id": error_id})
    return JSONResponse(
        status_code=500,
        content={"detail": f"Internal server error. Error ID: {error_id}"},
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        app,
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        log_config=None,
        timeout_keep_alive=30,
        timeout_graceful_shutdown=30,
    )

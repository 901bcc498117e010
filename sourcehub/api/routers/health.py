"""Health check API router."""

from typing import Dict

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy import text

from sourcehub.infra.config import config
from sourcehub.infra.database import get_db
from sourcehub.infra.logging import SERVICE_NAME
from sourcehub.infra.metrics import get_metrics_response

router = APIRouter()

REQUIRED_TABLES = ("tenants", "api_keys", "data_sources", "event_logs")


def _check_schema(db: Session) -> str:
    missing = [
        table for table in REQUIRED_TABLES
        if db.execute(text("SELECT to_regclass(:table)"), {"table": table}).scalar() is None
    ]
    return f"missing tables: {', '.join(missing)}" if missing else "ok"


def _check_provisioning_config() -> str:
    # Managed data sources cannot be provisioned without these
    missing = [
        name for name in ("MANAGED_OPENAI_API_KEY", "CONNECTORS_API_SECRET")
        if not getattr(config, name)
    ]
    return f"unset: {', '.join(missing)}" if missing else "ok"


@router.get("/health", tags=["Health"])
async def health_check():
    """Service identity; does not touch dependencies."""
    return {
        "status": "ok",
        "service": SERVICE_NAME,
        "version": "1.0.0",
        "environment": config.APP_ENV,
    }


@router.get("/health/live", tags=["Health"])
async def liveness_probe():
    """Liveness probe - indicates if the process is running."""
    return {"status": "alive"}


@router.get("/health/ready", tags=["Health"])
async def readiness_probe(db: Session = Depends(get_db)):
    """
    Readiness probe.

    Ready when the database answers, the schema is migrated and the
    provisioning credentials are configured. Returns 503 with the failing
    checks otherwise.
    """
    checks: Dict[str, str] = {}
    try:
        db.execute(text("SELECT 1"))
        checks["database"] = "ok"
        checks["schema"] = _check_schema(db)
    except SQLAlchemyError as e:
        checks["database"] = f"error: {type(e).__name__}"
    checks["provisioning_config"] = _check_provisioning_config()

    ready = all(value == "ok" for value in checks.values())
    return JSONResponse(
        status_code=200 if ready else 503,
        content={"status": "ready" if ready else "not_ready", "checks": checks},
    )


@router.get("/metrics", tags=["Health"])
async def metrics():
    """Prometheus metrics endpoint."""
    return get_metrics_response()

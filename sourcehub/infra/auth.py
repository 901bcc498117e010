"""API key authentication and tenant authorization."""

import hmac
import logging
from typing import Optional
from fastapi import HTTPException, Request, Security, Depends, status
from fastapi.security import APIKeyHeader, APIKeyQuery
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from sourcehub.infra.config import config
from sourcehub.infra.database import get_db
from sourcehub.services.api_key_service import resolve_api_key

logger = logging.getLogger(__name__)

MASTER_TENANT_ID = "master"
MIN_API_KEY_LENGTH = 16

api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)
api_key_query = APIKeyQuery(name="api_key", auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "ApiKey"},
    )


def is_master_key(api_key: str) -> bool:
    master_key = config.MASTER_API_KEY
    return bool(master_key) and hmac.compare_digest(api_key.encode(), master_key.encode())


async def verify_api_key(
    request: Request,
    api_key: Optional[str] = Security(api_key_header),
    api_key_query_param: Optional[str] = Security(api_key_query),
    db: Session = Depends(get_db),
) -> str:
    """
    Resolve the caller's tenant from its API key.

    The key is read from the X-API-Key header, or the api_key query parameter
    when the header is absent. Tenant and system keys both authenticate;
    system keys are how connectors call back on a tenant's behalf. Whether
    the key is a system key is kept on `request.state.api_key_is_system`.

    Returns:
        Tenant id owning the key, or MASTER_TENANT_ID for the master key

    Raises:
        HTTPException: 401 if the key is missing, malformed or unknown
    """
    key = api_key or api_key_query_param
    if not key:
        raise _unauthorized("API key required. Provide X-API-Key header or api_key query parameter.")

    if len(key) < MIN_API_KEY_LENGTH:
        raise _unauthorized("Invalid API key format")

    request.state.api_key_is_system = False
    if is_master_key(key):
        return MASTER_TENANT_ID

    try:
        owner = await resolve_api_key(key, db)
    except SQLAlchemyError as e:
        # Key store unavailable; treated as an unknown key
        logger.warning("API key verification failed", extra={"error_type": type(e).__name__})
        owner = None

    if not owner:
        raise _unauthorized("Invalid API key")

    request.state.api_key_is_system = owner.is_system
    return owner.tenant_id


async def verify_user_api_key(
    request: Request,
    api_tenant_id: str = Security(verify_api_key),
) -> str:
    """
    Like verify_api_key, but refuses tenant system keys.

    System keys are handed to other services, which may call back into the
    hub but never provision resources for the tenant.

    Raises:
        HTTPException: 403 for a system key
    """
    if getattr(request.state, "api_key_is_system", False):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="System API keys cannot create data sources",
        )
    return api_tenant_id


def require_tenant_access(tenant_id: str, api_tenant_id: str) -> None:
    """
    Allow the master key, or a key owned by `tenant_id`.

    Raises:
        HTTPException: 403 otherwise
    """
    if api_tenant_id == MASTER_TENANT_ID or api_tenant_id == tenant_id:
        return

    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="Access denied: API key does not have access to this tenant",
    )

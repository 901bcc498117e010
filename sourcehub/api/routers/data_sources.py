"""Data Sources API router."""

import logging
import time
from typing import Callable, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Request, Security, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from sourcehub.api.models import (
    CreateManagedDataSourceRequest,
    DataSourceResponse,
    DataSourcesListResponse,
    ErrorResponse,
    ManagedDataSourceResponse,
)
from sourcehub.infra.auth import verify_api_key, verify_user_api_key, require_tenant_access
from sourcehub.infra.error_handler import ErrorKind, describe_storage_error
from sourcehub.infra.validation import validate_tenant_id
from sourcehub.logging.event_logger import log_provisioning_outcome
from sourcehub.models.data_source import ProvisioningContext
from sourcehub.models.tenant import TenantContext
from sourcehub.services.data_source_store import DataSourceStore, data_source_store
from sourcehub.services.managed_data_source_service import (
    ManagedDataSourceProvisioner,
    managed_data_source_provisioner,
)
from sourcehub.services.tenant_context_service import TenantNotFoundError, get_tenant_context

router = APIRouter()

logger = logging.getLogger(__name__)

ERROR_STATUS_CODES = {
    ErrorKind.INVALID_REQUEST: status.HTTP_400_BAD_REQUEST,
    ErrorKind.PLAN_LIMIT: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.INTERNAL: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def get_provisioner() -> ManagedDataSourceProvisioner:
    return managed_data_source_provisioner


def get_data_source_store() -> DataSourceStore:
    return data_source_store


def get_tenant_loader() -> Callable[[str], TenantContext]:
    return get_tenant_context


def get_event_recorder():
    return log_provisioning_outcome


def _authorize(tenant_id: str, api_tenant_id: str) -> None:
    try:
        validate_tenant_id(tenant_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    require_tenant_access(tenant_id, api_tenant_id)


@router.post(
    "/tenants/{tenant_id}/data-sources/managed",
    tags=["Data Sources"],
    status_code=status.HTTP_201_CREATED,
    response_model=ManagedDataSourceResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid request body"},
        401: {"model": ErrorResponse, "description": "Plan does not allow managed data sources"},
        403: {"description": "Key belongs to another tenant, or is a system key"},
        409: {"model": ErrorResponse, "description": "Managed data source already exists"},
        500: {"model": ErrorResponse, "description": "A provisioning step failed"},
    },
)
async def create_managed_data_source(
    tenant_id: str,
    request: Request,
    body: Optional[CreateManagedDataSourceRequest] = Body(None),
    api_tenant_id: str = Security(verify_user_api_key),
    provisioner: ManagedDataSourceProvisioner = Depends(get_provisioner),
    load_tenant: Callable[[str], TenantContext] = Depends(get_tenant_loader),
    record_event=Depends(get_event_recorder),
):
    """
    Create a managed data source synced from a third-party provider.

    Requires a tenant API key; system keys are refused. Creates, in order:
    the tenant system API key (if missing), a core project, the core data
    source, the local record `managed-<provider_kind>`, and the connector,
    then binds the connector to the record. The first failing step is
    reported; resources created before it are kept.

    **Example Request:**
    ```json
    {
        "provider_kind": "slack",
        "external_connection_token": "tok-123"
    }
    ```
    """
    _authorize(tenant_id, api_tenant_id)

    try:
        tenant = load_tenant(tenant_id)
    except TenantNotFoundError:
        raise HTTPException(status_code=404, detail="Tenant not found")

    body = body or CreateManagedDataSourceRequest()
    request_id = getattr(request.state, "request_id", None)
    ctx = ProvisioningContext(tenant=tenant, request_id=request_id, actor=api_tenant_id)

    start_time = time.time()
    outcome = await provisioner.provision(ctx, body.provider_kind, body.external_connection_token)
    latency_ms = int((time.time() - start_time) * 1000)

    provider = body.provider_kind if isinstance(body.provider_kind, str) else None
    try:
        await record_event(tenant_id, provider, outcome, latency_ms, request_id=request_id)
    except SQLAlchemyError as e:
        logger.warning(
            "Could not record provisioning event",
            extra={"request_id": request_id, "upstream_error": describe_storage_error(e)},
        )

    if not outcome.ok:
        return JSONResponse(
            status_code=ERROR_STATUS_CODES[outcome.error.kind],
            content={"error": outcome.error.to_dict()},
        )

    return ManagedDataSourceResponse(
        data_source=DataSourceResponse(**outcome.data_source.to_response())
    )


@router.get("/tenants/{tenant_id}/data-sources", tags=["Data Sources"], response_model=DataSourcesListResponse)
async def list_data_sources(
    tenant_id: str,
    api_tenant_id: str = Security(verify_api_key),
    store: DataSourceStore = Depends(get_data_source_store),
):
    """
    List the data sources of a tenant.

    Requires API key authentication. Data sources whose connector could not be
    created are listed with `connector: null`.
    """
    _authorize(tenant_id, api_tenant_id)

    items = [DataSourceResponse(**record.to_response()) for record in store.list(tenant_id)]
    return DataSourcesListResponse(items=items, count=len(items))


@router.get("/tenants/{tenant_id}/data-sources/{name}", tags=["Data Sources"], response_model=DataSourceResponse)
async def get_data_source(
    tenant_id: str,
    name: str,
    api_tenant_id: str = Security(verify_api_key),
    store: DataSourceStore = Depends(get_data_source_store),
):
    """
    Get a data source by name.

    Requires API key authentication. Returns 404 if not found.
    """
    _authorize(tenant_id, api_tenant_id)

    record = store.get(tenant_id, name)
    if not record:
        raise HTTPException(status_code=404, detail="Data source not found")

    return DataSourceResponse(**record.to_response())

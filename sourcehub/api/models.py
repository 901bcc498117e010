"""API request/response models."""

from typing import Any, List, Optional, Dict
from pydantic import BaseModel, Field


# ============================================================================
# Data Sources Models
# ============================================================================

class CreateManagedDataSourceRequest(BaseModel):
    """Request model for creating a managed data source.

    Fields are typed loosely so malformed values reach the provisioning
    validation and come back as an `invalid-request` error.
    """
    provider_kind: Optional[Any] = Field(None, description="Provider to sync from: 'slack' or 'notion'", example="slack")
    external_connection_token: Optional[Any] = Field(
        None, description="Provider connection token issued by the OAuth broker", example="tok-123"
    )


class ConnectorBindingResponse(BaseModel):
    """Connector bound to a data source."""
    id: str
    provider_kind: str = Field(..., example="slack")


class DataSourceResponse(BaseModel):
    """Response model for a data source."""
    name: str = Field(..., example="managed-slack")
    description: Optional[str] = Field(None, example="Managed Data Source for slack")
    visibility: str = Field(..., example="private")
    configuration: str = Field(..., description="JSON echo of the remote data source config")
    remote_workspace_id: str = Field(..., description="Core API project owning the data source")
    connector: Optional[ConnectorBindingResponse] = Field(
        None, description="Null when connector creation failed after the record was written"
    )


class ManagedDataSourceResponse(BaseModel):
    """Response model for a created managed data source."""
    data_source: DataSourceResponse


class DataSourcesListResponse(BaseModel):
    """Response model for listing data sources."""
    items: List[DataSourceResponse]
    count: int


class ErrorBody(BaseModel):
    """Structured provisioning error."""
    kind: str = Field(..., description="'invalid-request', 'plan-limit', 'conflict' or 'internal'", example="internal")
    message: str
    step: Optional[str] = Field(None, description="Failed step for 'internal' and 'conflict' errors", example="connector_creation")
    upstream_error: Optional[Dict[str, Any]] = Field(None, description="Upstream error payload for diagnostics")


class ErrorResponse(BaseModel):
    """Error envelope returned by the data sources endpoints."""
    error: ErrorBody

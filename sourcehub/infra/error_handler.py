"""Provisioning error taxonomy and upstream error normalization."""

import json
from enum import Enum
from typing import Any, Dict, Optional

import httpx
from sqlalchemy.exc import SQLAlchemyError


class ErrorKind(str, Enum):
    """Caller-facing error kinds."""
    INVALID_REQUEST = "invalid-request"  # Malformed request, nothing touched
    PLAN_LIMIT = "plan-limit"  # Plan forbids the action, nothing touched
    CONFLICT = "conflict"  # Duplicate data source name for the tenant
    INTERNAL = "internal"  # A provisioning step failed


class ProvisioningStep(str, Enum):
    """Steps that can fail after validation and gating."""
    CREDENTIAL_ISSUANCE = "credential_issuance"
    REMOTE_WORKSPACE_CREATION = "remote_workspace_creation"
    REMOTE_RESOURCE_CREATION = "remote_resource_creation"
    LOCAL_RECORD_WRITE = "local_record_write"
    CONNECTOR_CREATION = "connector_creation"
    CONNECTOR_BINDING = "connector_binding"


class ProvisioningError(Exception):
    """Base exception for every provisioning failure."""
    kind: ErrorKind = ErrorKind.INTERNAL
    step: Optional[ProvisioningStep] = None

    def __init__(
        self,
        message: str,
        upstream: Optional[Dict[str, Any]] = None,
        step: Optional[ProvisioningStep] = None,
    ):
        self.message = message
        self.upstream = upstream
        if step is not None:
            self.step = step
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Structured error body returned to API callers."""
        body: Dict[str, Any] = {"kind": self.kind.value, "message": self.message}
        if self.step is not None:
            body["step"] = self.step.value
        if self.upstream is not None:
            body["upstream_error"] = self.upstream
        return body


class ValidationError(ProvisioningError):
    """Request body is missing fields or names an unsupported provider."""
    kind = ErrorKind.INVALID_REQUEST


class PolicyRejection(ProvisioningError):
    """Tenant plan does not allow the requested resource."""
    kind = ErrorKind.PLAN_LIMIT


class CredentialError(ProvisioningError):
    """System API key could not be resolved or created."""
    step = ProvisioningStep.CREDENTIAL_ISSUANCE


class RemoteWorkspaceError(ProvisioningError):
    """Core API project creation failed."""
    step = ProvisioningStep.REMOTE_WORKSPACE_CREATION


class RemoteResourceError(ProvisioningError):
    """Core API data source creation failed."""
    step = ProvisioningStep.REMOTE_RESOURCE_CREATION


class LocalRecordError(ProvisioningError):
    """Local data source record could not be written."""
    step = ProvisioningStep.LOCAL_RECORD_WRITE


class ConnectorError(ProvisioningError):
    """Connectors API refused or failed to create the connector."""
    step = ProvisioningStep.CONNECTOR_CREATION


class ConflictError(ProvisioningError):
    """A data source with the same name already exists for the tenant."""
    kind = ErrorKind.CONFLICT
    step = ProvisioningStep.LOCAL_RECORD_WRITE


def describe_upstream_error(error: Exception) -> Dict[str, Any]:
    """
    Normalize an upstream failure into a JSON-serializable payload for diagnostics.

    HTTP status errors keep the status code and the decoded body when it is
    JSON; timeouts and transport errors are tagged so logs can tell them apart.

    Args:
        error: Exception raised by the transport or the remote service

    Returns:
        Dict with at least `type` and `message`
    """
    if isinstance(error, httpx.HTTPStatusError):
        response = error.response
        try:
            body: Any = response.json()
        except (json.JSONDecodeError, ValueError):
            body = response.text
        return {
            "type": "http_status_error",
            "status_code": response.status_code,
            "message": str(error),
            "body": body,
        }

    if isinstance(error, httpx.TimeoutException):
        return {"type": "timeout", "message": str(error) or "upstream call timed out"}

    if isinstance(error, httpx.TransportError):
        return {"type": "transport_error", "message": str(error)}

    return {"type": type(error).__name__, "message": str(error)}


def describe_storage_error(error: SQLAlchemyError) -> Dict[str, Any]:
    """
    Normalize a database failure into a payload safe to return and log.

    Only the driver's own message is kept. SQLAlchemy's rendering of the
    exception carries the SQL text and its bound parameters, which include
    key secrets and connection tokens, so it is never used.
    """
    orig = getattr(error, "orig", None)
    message = str(orig).strip() if orig is not None else type(error).__name__
    return {"type": type(error).__name__, "message": message}

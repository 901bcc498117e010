"""Event logging service."""

import json
from typing import Optional, Dict, Any
from sqlalchemy import text
from sourcehub.infra.database import get_db_session
from sourcehub.models.data_source import ProvisioningOutcome


async def log_event(
    tenant_id: str,
    event_type: str,
    provider: Optional[str] = None,
    status: str = "success",
    latency_ms: Optional[int] = None,
    payload: Optional[Dict[str, Any]] = None,
    request_id: Optional[str] = None,
) -> None:
    """
    Log an event to event_logs table.

    Args:
        tenant_id: Tenant ID
        event_type: Event type (e.g., 'managed_data_source_provisioned')
        provider: Provider kind (e.g., 'slack', 'notion')
        status: 'success' | 'rejected' | 'failure'
        latency_ms: Latency in milliseconds
        payload: Additional payload (will be stored as JSONB)
        request_id: Request ID from the request middleware
    """
    with get_db_session(tenant_id) as session:
        session.execute(
            text("""
                INSERT INTO event_logs (
                    tenant_id, request_id, event_type, provider,
                    status, latency_ms, payload
                ) VALUES (
                    :tenant_id, :request_id, :event_type, :provider,
                    :status, :latency_ms, CAST(:payload AS jsonb)
                )
            """),
            {
                "tenant_id": tenant_id,
                "request_id": request_id,
                "event_type": event_type,
                "provider": provider,
                "status": status,
                "latency_ms": latency_ms,
                "payload": json.dumps(payload or {}),
            }
        )


async def log_provisioning_outcome(
    tenant_id: str,
    provider: Optional[str],
    outcome: ProvisioningOutcome,
    latency_ms: int,
    request_id: Optional[str] = None,
) -> None:
    """Record one managed data source provisioning run."""
    if outcome.ok:
        status = "success"
        payload: Dict[str, Any] = {
            "data_source": outcome.data_source.name,
            "remote_workspace_id": outcome.data_source.remote_workspace_id,
            "connector_id": outcome.data_source.connector_id,
        }
    else:
        status = outcome.state.value
        payload = outcome.error.to_dict()

    payload["states"] = [state.value for state in outcome.visited]

    await log_event(
        tenant_id=tenant_id,
        event_type="managed_data_source_provisioning",
        provider=provider,
        status=status,
        latency_ms=latency_ms,
        payload=payload,
        request_id=request_id,
    )

"""Connectors API client for registering provider sync jobs."""

import logging
from typing import Any, Dict, Optional

import httpx

from sourcehub.infra.config import config
from sourcehub.infra.error_handler import ConnectorError, describe_upstream_error
from sourcehub.infra.metrics import upstream_calls_total
from sourcehub.models.data_source import ConnectorRef, ProviderKind

logger = logging.getLogger(__name__)


class ConnectorsAPIClient:
    """Client for the connectors service.

    A connector is a long-running sync job that keeps a data source populated
    from a third-party provider. It calls back into the hub with the tenant's
    system API key.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        secret: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.base_url = (base_url or config.CONNECTORS_API_URL).rstrip("/")
        self.secret = secret if secret is not None else config.CONNECTORS_API_SECRET
        self.timeout = timeout if timeout is not None else config.CONNECTORS_API_TIMEOUT_SECONDS

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.secret:
            headers["Authorization"] = f"Bearer {self.secret}"
        return headers

    async def create_connector(
        self,
        provider_kind: ProviderKind,
        tenant_id: str,
        system_api_key: str,
        data_source_name: str,
        external_connection_token: str,
    ) -> ConnectorRef:
        """
        Register a connector for a data source.

        Args:
            provider_kind: Provider to sync from
            tenant_id: Tenant owning the data source
            system_api_key: Secret of the tenant's system API key
            data_source_name: Name of the local data source to populate
            external_connection_token: Provider connection token supplied by the caller

        Returns:
            ConnectorRef with the connector id

        Raises:
            ConnectorError: If the connector could not be created
        """
        payload: Dict[str, Any] = {
            "workspaceId": tenant_id,
            "workspaceAPIKey": system_api_key,
            "dataSourceName": data_source_name,
            "nangoConnectionId": external_connection_token,
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.base_url}/connectors/create/{provider_kind.value}",
                    json=payload,
                    headers=self._headers(),
                )
                response.raise_for_status()
                body = response.json()

            if body.get("error"):
                raise ValueError(f"connectors API error: {body['error']}")
            connector_id = body["connectorId"]
        except (httpx.HTTPError, ValueError, KeyError, TypeError, AttributeError) as e:
            upstream_calls_total.labels("connectors", "create_connector", "failure").inc()
            upstream = describe_upstream_error(e)
            logger.error(
                "Failed to create the connector",
                extra={
                    "tenant_id": tenant_id,
                    "provider_kind": provider_kind.value,
                    "data_source": data_source_name,
                    "upstream_error": upstream,
                },
            )
            raise ConnectorError("Failed to create the connector.", upstream=upstream) from e

        upstream_calls_total.labels("connectors", "create_connector", "success").inc()
        return ConnectorRef(connector_id=str(connector_id), provider_kind=provider_kind)


connectors_api_client = ConnectorsAPIClient()

"""Core API client: remote projects and the data sources they own."""

import logging
from typing import Any, Dict, Optional

import httpx

from sourcehub.infra.config import config
from sourcehub.infra.error_handler import (
    RemoteResourceError,
    RemoteWorkspaceError,
    describe_upstream_error,
)
from sourcehub.infra.metrics import upstream_calls_total
from sourcehub.models.data_source import (
    ProviderKind,
    RemoteDataSourceConfig,
    RemoteDataSourceRef,
    RemoteWorkspaceRef,
    managed_data_source_name,
)

logger = logging.getLogger(__name__)

MANAGED_NAMES = {managed_data_source_name(kind) for kind in ProviderKind}


def managed_provider_credentials() -> Dict[str, Any]:
    """Embedding credentials owned by the hub, used by every managed data source."""
    return {"OPENAI_API_KEY": config.MANAGED_OPENAI_API_KEY}


class CoreAPIClient:
    """Client for the core API.

    Every call uses its own bounded timeout; expiry is reported as the error
    type of the operation that timed out.
    """

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[float] = None):
        self.base_url = (base_url or config.CORE_API_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else config.CORE_API_TIMEOUT_SECONDS

    async def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """POST JSON and return the `response` member of the core API envelope.

        Raises:
            httpx.HTTPError: On transport errors, timeouts and non-2xx statuses
            ValueError: If the envelope carries an error or no response
        """
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(f"{self.base_url}{path}", json=payload)
            response.raise_for_status()
            body = response.json()

        if body.get("error"):
            raise ValueError(f"core API error: {body['error']}")
        if not body.get("response"):
            raise ValueError("core API returned an empty response")
        return body["response"]

    async def create_project(self) -> RemoteWorkspaceRef:
        """
        Create an isolated project that will own a data source.

        Returns:
            RemoteWorkspaceRef with the core project id

        Raises:
            RemoteWorkspaceError: If the project could not be created
        """
        try:
            result = await self._post("/projects", {})
            project_id = result["project"]["project_id"]
        except (httpx.HTTPError, ValueError, KeyError, TypeError, AttributeError) as e:
            upstream_calls_total.labels("core", "create_project", "failure").inc()
            upstream = describe_upstream_error(e)
            logger.error("Failed to create core project", extra={"upstream_error": upstream})
            raise RemoteWorkspaceError(
                "Failed to create internal project for the data source.", upstream=upstream
            ) from e

        upstream_calls_total.labels("core", "create_project", "success").inc()
        return RemoteWorkspaceRef(workspace_id=str(project_id))

    async def create_data_source(
        self,
        workspace: RemoteWorkspaceRef,
        name: str,
        data_source_config: RemoteDataSourceConfig,
        credentials: Dict[str, Any],
    ) -> RemoteDataSourceRef:
        """
        Create a data source inside a core project.

        Args:
            workspace: Project created by `create_project`
            name: Managed data source name (`managed-<provider>`)
            data_source_config: Embedding and chunking profile
            credentials: Embedding provider credentials

        Returns:
            RemoteDataSourceRef echoing the config the core API stored

        Raises:
            ValueError: If `name` is not a managed data source name
            RemoteResourceError: If the data source could not be created
        """
        if name not in MANAGED_NAMES:
            raise ValueError(f"Not a managed data source name: {name}")

        payload = {
            "data_source_id": name,
            "config": data_source_config.to_payload(),
            "credentials": credentials,
        }
        try:
            result = await self._post(f"/projects/{workspace.workspace_id}/data_sources", payload)
            data_source = result["data_source"]
            ref = RemoteDataSourceRef(
                workspace_id=workspace.workspace_id,
                data_source_id=data_source.get("data_source_id", name),
                config=data_source.get("config") or data_source_config.to_payload(),
            )
        except (httpx.HTTPError, ValueError, KeyError, TypeError, AttributeError) as e:
            upstream_calls_total.labels("core", "create_data_source", "failure").inc()
            upstream = describe_upstream_error(e)
            logger.error(
                "Failed to create core data source",
                extra={"workspace_id": workspace.workspace_id, "data_source": name, "upstream_error": upstream},
            )
            raise RemoteResourceError("Failed to create the data source.", upstream=upstream) from e

        upstream_calls_total.labels("core", "create_data_source", "success").inc()
        return ref


core_api_client = CoreAPIClient()

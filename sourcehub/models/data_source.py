"""Managed data source domain models."""

import json
from dataclasses import dataclass, asdict, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from sourcehub.infra.error_handler import ProvisioningError, ProvisioningStep
from sourcehub.models.tenant import TenantContext


class ProviderKind(str, Enum):
    """Third-party providers a managed data source can sync from."""
    SLACK = "slack"
    NOTION = "notion"

    @classmethod
    def values(cls):
        return [kind.value for kind in cls]


class ResourceKind(str, Enum):
    """Resources gated by plan capabilities."""
    MANAGED_DATA_SOURCE = "managed_data_source"


class ProvisioningState(str, Enum):
    """Orchestrator states, in the order they are entered."""
    VALIDATING = "validating"
    GATING = "gating"
    RESOLVING_CREDENTIAL = "resolving_credential"
    PROVISIONING_WORKSPACE = "provisioning_workspace"
    PROVISIONING_RESOURCE = "provisioning_resource"
    WRITING_LOCAL_RECORD = "writing_local_record"
    PROVISIONING_CONNECTOR = "provisioning_connector"
    BINDING_CONNECTOR = "binding_connector"
    DONE = "done"
    REJECTED = "rejected"
    FAILED = "failed"


MANAGED_NAME_PREFIX = "managed-"
DEFAULT_VISIBILITY = "private"


def managed_data_source_name(provider_kind: ProviderKind) -> str:
    """Deterministic data source name: one managed source per provider per tenant."""
    return f"{MANAGED_NAME_PREFIX}{provider_kind.value}"


def managed_data_source_description(provider_kind: ProviderKind) -> str:
    return f"Managed Data Source for {provider_kind.value}"


@dataclass(frozen=True)
class RemoteDataSourceConfig:
    """Embedding and chunking profile of a remote data source."""
    provider_id: str
    model_id: str
    splitter_id: str
    max_chunk_size: int
    use_cache: bool

    def to_payload(self) -> Dict[str, Any]:
        return asdict(self)


# Fixed profile for every managed data source
MANAGED_DATA_SOURCE_CONFIG = RemoteDataSourceConfig(
    provider_id="openai",
    model_id="text-embedding-ada-002",
    splitter_id="base_v0",
    max_chunk_size=256,
    use_cache=False,
)


@dataclass(frozen=True)
class ProvisioningRequest:
    """Validated request to attach a managed data source to a tenant."""
    tenant_id: str
    provider_kind: ProviderKind
    external_connection_token: str


@dataclass(frozen=True)
class ProvisioningContext:
    """Request-scoped values passed explicitly into the orchestrator."""
    tenant: TenantContext
    request_id: Optional[str] = None
    actor: Optional[str] = None  # tenant id of the authenticated API key, or "master"


@dataclass(frozen=True)
class SystemAPIKey:
    """Tenant-scoped system credential used to call services on the tenant's behalf."""
    key_id: str
    tenant_id: str
    secret: str
    created: bool = False  # True when this call created the key


@dataclass(frozen=True)
class RemoteWorkspaceRef:
    """Core API project owning managed data sources."""
    workspace_id: str


@dataclass(frozen=True)
class RemoteDataSourceRef:
    """Data source created inside a core API project."""
    workspace_id: str
    data_source_id: str
    config: Dict[str, Any]


@dataclass(frozen=True)
class ConnectorRef:
    """Connector registered with the connectors API."""
    connector_id: str
    provider_kind: ProviderKind


@dataclass
class LocalDataSourceRecord:
    """Row of the `data_sources` table."""
    id: str
    tenant_id: str
    name: str
    description: Optional[str]
    visibility: str
    configuration: str
    remote_workspace_id: str
    connector_id: Optional[str] = None
    connector_provider_kind: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_bound(self) -> bool:
        return self.connector_id is not None and self.connector_provider_kind is not None

    def to_response(self) -> Dict[str, Any]:
        """Public view of the record."""
        connector = None
        if self.is_bound:
            connector = {"id": self.connector_id, "provider_kind": self.connector_provider_kind}
        return {
            "name": self.name,
            "description": self.description,
            "visibility": self.visibility,
            "configuration": self.configuration,
            "remote_workspace_id": self.remote_workspace_id,
            "connector": connector,
        }


def serialize_remote_config(config: Dict[str, Any]) -> str:
    """Stable JSON echo of the remote config for the local record."""
    return json.dumps(config, sort_keys=True)


@dataclass
class ProvisioningOutcome:
    """
    Result of one provisioning run.

    Exactly one of `data_source` (success) or `error` (rejection or failure)
    is set. `state` is the terminal state: DONE, REJECTED or FAILED.
    """
    state: ProvisioningState
    data_source: Optional[LocalDataSourceRecord] = None
    error: Optional[ProvisioningError] = None
    visited: List[ProvisioningState] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.state == ProvisioningState.DONE

    @property
    def failed_step(self) -> Optional[ProvisioningStep]:
        if self.error is None:
            return None
        return self.error.step

from .tenant import TenantContext, TenantPlan, PlanLimits
from .data_source import (
    ConnectorRef,
    LocalDataSourceRecord,
    MANAGED_DATA_SOURCE_CONFIG,
    ProviderKind,
    ProvisioningContext,
    ProvisioningOutcome,
    ProvisioningRequest,
    ProvisioningState,
    RemoteDataSourceConfig,
    RemoteDataSourceRef,
    RemoteWorkspaceRef,
    ResourceKind,
    SystemAPIKey,
)

__all__ = [
    "ConnectorRef",
    "LocalDataSourceRecord",
    "MANAGED_DATA_SOURCE_CONFIG",
    "PlanLimits",
    "ProviderKind",
    "ProvisioningContext",
    "ProvisioningOutcome",
    "ProvisioningRequest",
    "ProvisioningState",
    "RemoteDataSourceConfig",
    "RemoteDataSourceRef",
    "RemoteWorkspaceRef",
    "ResourceKind",
    "SystemAPIKey",
    "TenantContext",
    "TenantPlan",
]

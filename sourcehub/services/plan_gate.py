"""Plan capability checks."""

from sourcehub.models.data_source import ResourceKind
from sourcehub.models.tenant import TenantContext


def allows(tenant: TenantContext, resource_kind: ResourceKind) -> bool:
    """
    Whether the tenant's plan entitles it to create a resource of this kind.

    Pure predicate over the already-loaded tenant plan. Unknown resource kinds
    are denied.
    """
    if resource_kind == ResourceKind.MANAGED_DATA_SOURCE:
        return tenant.plan.limits.managed_data_sources
    return False

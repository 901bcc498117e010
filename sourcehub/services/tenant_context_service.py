"""Service to load TenantContext from database."""

from sqlalchemy import text

from sourcehub.models.tenant import TenantContext, TenantPlan
from sourcehub.infra.database import get_db_session


class TenantNotFoundError(ValueError):
    """No tenant row for the requested id."""


def get_tenant_context(tenant_id: str) -> TenantContext:
    """
    Load the TenantContext for a tenant.

    Loads the tenant name and its plan (stored as JSONB on the tenants row).

    Raises:
        TenantNotFoundError: If the tenant does not exist
    """
    with get_db_session(tenant_id) as session:
        tenant_row = session.execute(
            text("""
                SELECT id, name, plan
                FROM tenants
                WHERE id = :tenant_id
            """),
            {"tenant_id": tenant_id}
        ).fetchone()

        if not tenant_row:
            raise TenantNotFoundError(f"Tenant {tenant_id} not found")

        return TenantContext(
            tenant_id=str(tenant_row.id),
            name=tenant_row.name,
            plan=TenantPlan.from_dict(tenant_row.plan),
        )

"""Tenant context model for runtime tenant configuration."""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class PlanLimits:
    """Capability flags granted by a tenant's plan."""
    managed_data_sources: bool = False
    max_static_data_sources: int = 0


@dataclass(frozen=True)
class TenantPlan:
    """Plan attached to a tenant."""
    code: str
    limits: PlanLimits = field(default_factory=PlanLimits)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "TenantPlan":
        """
        Build a plan from its stored JSON form.

        Expected shape:
            {"code": "pro", "limits": {"data_sources": {"managed": true, "count": 10}}}

        Missing keys fall back to the most restrictive values.
        """
        data = data or {}
        limits = data.get("limits") or {}
        data_sources = limits.get("data_sources") or {}
        return cls(
            code=data.get("code") or "free",
            limits=PlanLimits(
                managed_data_sources=bool(data_sources.get("managed", False)),
                max_static_data_sources=int(data_sources.get("count") or 0),
            ),
        )


@dataclass(frozen=True)
class TenantContext:
    """Runtime context for a tenant with its plan loaded."""
    tenant_id: str
    name: str
    plan: TenantPlan

"""Input validation for tenant ids and provisioning requests."""

import re
import uuid
from typing import Any

from sourcehub.infra.error_handler import ValidationError
from sourcehub.models.data_source import ProviderKind, ProvisioningRequest

MAX_CONNECTION_TOKEN_LENGTH = 512
_CONTROL_CHARS = re.compile(r'[\x00-\x1F\x7F]')


def validate_tenant_id(tenant_id: str) -> None:
    """
    Validate tenant_id format (UUID).

    Args:
        tenant_id: Tenant ID to validate

    Raises:
        ValueError: If validation fails
    """
    if not tenant_id:
        raise ValueError("tenant_id cannot be empty")

    if len(tenant_id) > 128:
        raise ValueError("tenant_id too long")

    try:
        uuid.UUID(tenant_id)
    except ValueError:
        raise ValueError(f"Invalid tenant_id format (must be UUID): {tenant_id}")


def validate_provisioning_request(
    tenant_id: str,
    provider_kind: Any,
    external_connection_token: Any,
) -> ProvisioningRequest:
    """
    Check a raw managed data source request and build a ProvisioningRequest.

    Args:
        tenant_id: Tenant the data source is attached to
        provider_kind: Raw provider value from the request body
        external_connection_token: Raw connection token from the request body

    Returns:
        ProvisioningRequest with a typed provider kind

    Raises:
        ValidationError: If the provider is unsupported or the token is missing or malformed
    """
    expected = "expects { provider_kind: " + " | ".join(ProviderKind.values()) + ", external_connection_token: string }"

    if not isinstance(provider_kind, str) or provider_kind not in ProviderKind.values():
        raise ValidationError(f"Unsupported provider_kind {provider_kind!r}; the request body {expected}.")

    if not isinstance(external_connection_token, str) or not external_connection_token.strip():
        raise ValidationError(f"Missing external_connection_token; the request body {expected}.")

    if len(external_connection_token) > MAX_CONNECTION_TOKEN_LENGTH:
        raise ValidationError(
            f"external_connection_token too long (max {MAX_CONNECTION_TOKEN_LENGTH} characters)"
        )

    if _CONTROL_CHARS.search(external_connection_token):
        raise ValidationError("external_connection_token contains control characters")

    return ProvisioningRequest(
        tenant_id=tenant_id,
        provider_kind=ProviderKind(provider_kind),
        external_connection_token=external_connection_token,
    )

#!/usr/bin/env python3
"""Provision a managed data source for a tenant from the command line.

Usage:
    python scripts/provision_managed_data_source.py --tenant-id <uuid> --provider slack --token <connection-token>

Runs the same provisioning sequence as the API endpoint and prints the
outcome as JSON. Exit status is 0 on success, 1 on rejection or failure.
"""

import argparse
import asyncio
import json
import sys
import uuid
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from sourcehub.infra.logging import app_logger  # noqa: F401  configures JSON logging
from sourcehub.infra.validation import validate_tenant_id
from sourcehub.models.data_source import ProviderKind, ProvisioningContext
from sourcehub.services.managed_data_source_service import managed_data_source_provisioner
from sourcehub.services.tenant_context_service import TenantNotFoundError, get_tenant_context


async def run(tenant_id: str, provider: str, token: str) -> int:
    try:
        validate_tenant_id(tenant_id)
    except ValueError as e:
        print(json.dumps({"error": {"kind": "invalid-request", "message": str(e)}}, indent=2))
        return 1

    try:
        tenant = get_tenant_context(tenant_id)
    except TenantNotFoundError as e:
        print(json.dumps({"error": {"kind": "not-found", "message": str(e)}}, indent=2))
        return 1

    ctx = ProvisioningContext(tenant=tenant, request_id=f"cli-{uuid.uuid4()}", actor="cli")
    outcome = await managed_data_source_provisioner.provision(ctx, provider, token)

    if outcome.ok:
        print(json.dumps({"data_source": outcome.data_source.to_response()}, indent=2))
        return 0

    print(json.dumps({"error": outcome.error.to_dict()}, indent=2))
    return 1


def main():
    parser = argparse.ArgumentParser(description="Provision a managed data source")
    parser.add_argument("--tenant-id", required=True, help="Tenant UUID")
    parser.add_argument(
        "--provider",
        required=True,
        choices=ProviderKind.values(),
        help="Provider to sync from",
    )
    parser.add_argument("--token", required=True, help="Provider connection token")
    args = parser.parse_args()

    sys.exit(asyncio.run(run(args.tenant_id, args.provider, args.token)))


if __name__ == "__main__":
    main()

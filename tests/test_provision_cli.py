"""Tests for the provisioning command line script."""

import json

import pytest
from unittest.mock import AsyncMock, patch

from fakes import TENANT_ID
from scripts.provision_managed_data_source import run
from sourcehub.services.tenant_context_service import TenantNotFoundError


class TestProvisionCLI:
    """Argument checks happen before any database or upstream call."""

    @pytest.mark.asyncio
    async def test_invalid_tenant_id(self, capsys):
        with patch("scripts.provision_managed_data_source.get_tenant_context") as mock_load, \
             patch("scripts.provision_managed_data_source.managed_data_source_provisioner") as mock_provisioner:
            status = await run("not-a-uuid", "slack", "tok-123")

            mock_load.assert_not_called()
            mock_provisioner.provision.assert_not_called()

        assert status == 1
        error = json.loads(capsys.readouterr().out)["error"]
        assert error["kind"] == "invalid-request"
        assert "not-a-uuid" in error["message"]

    @pytest.mark.asyncio
    async def test_unknown_tenant(self, capsys):
        with patch(
            "scripts.provision_managed_data_source.get_tenant_context",
            side_effect=TenantNotFoundError(f"Tenant {TENANT_ID} not found"),
        ), patch("scripts.provision_managed_data_source.managed_data_source_provisioner") as mock_provisioner:
            mock_provisioner.provision = AsyncMock()
            status = await run(TENANT_ID, "slack", "tok-123")

            mock_provisioner.provision.assert_not_called()

        assert status == 1
        assert json.loads(capsys.readouterr().out)["error"]["kind"] == "not-found"

"""Tests for managed data source provisioning."""

import json

import pytest

from sourcehub.infra.error_handler import (
    ConflictError,
    ConnectorError,
    CredentialError,
    ErrorKind,
    LocalRecordError,
    PolicyRejection,
    ProvisioningStep,
    RemoteResourceError,
    RemoteWorkspaceError,
    ValidationError,
)
from sourcehub.models.data_source import (
    MANAGED_DATA_SOURCE_CONFIG,
    ProviderKind,
    ProvisioningContext,
    ProvisioningState,
)
from sourcehub.services.managed_data_source_service import ManagedDataSourceProvisioner
from fakes import (
    TENANT_ID,
    FakeConnectorsAPI,
    FakeCoreAPI,
    FakeCredentialResolver,
    InMemoryDataSourceStore,
    make_tenant,
)

FULL_RUN = [
    ProvisioningState.VALIDATING,
    ProvisioningState.GATING,
    ProvisioningState.RESOLVING_CREDENTIAL,
    ProvisioningState.PROVISIONING_WORKSPACE,
    ProvisioningState.PROVISIONING_RESOURCE,
    ProvisioningState.WRITING_LOCAL_RECORD,
    ProvisioningState.PROVISIONING_CONNECTOR,
    ProvisioningState.BINDING_CONNECTOR,
    ProvisioningState.DONE,
]


def _provisioner(credential_resolver=None, core_api=None, connectors_api=None, store=None):
    return ManagedDataSourceProvisioner(
        credential_resolver=credential_resolver or FakeCredentialResolver(),
        core_api=core_api or FakeCoreAPI(),
        connectors_api=connectors_api or FakeConnectorsAPI(),
        store=store or InMemoryDataSourceStore(),
        credentials_factory=lambda: {"OPENAI_API_KEY": "sk-managed"},
    )


class TestSuccessfulProvisioning:
    """Happy path through every step."""

    @pytest.mark.asyncio
    async def test_slack_data_source_created_and_bound(
        self, provisioner, ctx, credential_resolver, core_api, connectors_api, store
    ):
        outcome = await provisioner.provision(ctx, "slack", "tok-123")

        assert outcome.ok
        assert outcome.state == ProvisioningState.DONE
        assert outcome.error is None
        assert outcome.visited == FULL_RUN

        record = outcome.data_source
        assert record.name == "managed-slack"
        assert record.description == "Managed Data Source for slack"
        assert record.visibility == "private"
        assert record.tenant_id == TENANT_ID
        assert record.remote_workspace_id == core_api.projects[0]
        assert record.connector_id == "conn-1"
        assert record.connector_provider_kind == "slack"
        assert record.is_bound

    @pytest.mark.asyncio
    async def test_each_upstream_called_once(
        self, provisioner, ctx, credential_resolver, core_api, connectors_api, store
    ):
        await provisioner.provision(ctx, "notion", "tok-abc")

        assert credential_resolver.calls == [TENANT_ID]
        assert len(core_api.projects) == 1
        assert len(core_api.data_sources) == 1
        assert len(connectors_api.calls) == 1
        assert store.create_calls == 1

    @pytest.mark.asyncio
    async def test_remote_data_source_uses_managed_profile(self, provisioner, ctx, core_api):
        await provisioner.provision(ctx, "slack", "tok-123")

        created = core_api.data_sources[0]
        assert created["name"] == "managed-slack"
        assert created["workspace_id"] == core_api.projects[0]
        assert created["config"] == {
            "provider_id": "openai",
            "model_id": "text-embedding-ada-002",
            "splitter_id": "base_v0",
            "max_chunk_size": 256,
            "use_cache": False,
        }
        assert created["credentials"] == {"OPENAI_API_KEY": "sk-managed"}

    @pytest.mark.asyncio
    async def test_local_record_echoes_remote_config(self, provisioner, ctx):
        outcome = await provisioner.provision(ctx, "slack", "tok-123")

        assert json.loads(outcome.data_source.configuration) == MANAGED_DATA_SOURCE_CONFIG.to_payload()

    @pytest.mark.asyncio
    async def test_connector_receives_system_key_and_token(
        self, provisioner, ctx, credential_resolver, connectors_api
    ):
        await provisioner.provision(ctx, "notion", "tok-abc")

        call = connectors_api.calls[0]
        assert call["provider_kind"] == ProviderKind.NOTION
        assert call["tenant_id"] == TENANT_ID
        assert call["system_api_key"] == credential_resolver.keys[TENANT_ID].secret
        assert call["data_source_name"] == "managed-notion"
        assert call["external_connection_token"] == "tok-abc"

    @pytest.mark.asyncio
    async def test_stored_record_is_bound(self, provisioner, ctx, store):
        await provisioner.provision(ctx, "slack", "tok-123")

        stored = store.get(TENANT_ID, "managed-slack")
        assert stored.connector_id == "conn-1"
        assert stored.connector_provider_kind == "slack"

    @pytest.mark.asyncio
    async def test_existing_system_key_is_reused(self, ctx, credential_resolver, connectors_api):
        first = await credential_resolver(TENANT_ID)
        provisioner = _provisioner(credential_resolver=credential_resolver, connectors_api=connectors_api)

        outcome = await provisioner.provision(ctx, "slack", "tok-123")

        assert outcome.ok
        assert len(credential_resolver.keys) == 1
        assert connectors_api.calls[0]["system_api_key"] == first.secret

    @pytest.mark.asyncio
    async def test_providers_get_distinct_names(self, provisioner, ctx, store):
        slack = await provisioner.provision(ctx, "slack", "tok-1")
        notion = await provisioner.provision(ctx, "notion", "tok-2")

        assert slack.ok and notion.ok
        assert {r.name for r in store.list(TENANT_ID)} == {"managed-slack", "managed-notion"}


class TestRejectedRequests:
    """Validation and plan failures leave no side effects."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("provider_kind", ["github", "SLACK", "", None, 42, ["slack"]])
    async def test_unsupported_provider(
        self, provisioner, ctx, provider_kind, credential_resolver, core_api, connectors_api, store
    ):
        outcome = await provisioner.provision(ctx, provider_kind, "tok-123")

        assert outcome.state == ProvisioningState.REJECTED
        assert isinstance(outcome.error, ValidationError)
        assert outcome.error.kind == ErrorKind.INVALID_REQUEST
        assert outcome.visited == [ProvisioningState.VALIDATING, ProvisioningState.REJECTED]
        assert credential_resolver.calls == []
        assert core_api.projects == []
        assert connectors_api.calls == []
        assert store.create_calls == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("token", [None, "", "   ", 123, "a" * 513, "tok\n123"])
    async def test_bad_connection_token(self, provisioner, ctx, token, core_api, store):
        outcome = await provisioner.provision(ctx, "slack", token)

        assert outcome.state == ProvisioningState.REJECTED
        assert outcome.error.kind == ErrorKind.INVALID_REQUEST
        assert core_api.projects == []
        assert store.create_calls == 0

    @pytest.mark.asyncio
    async def test_plan_without_managed_sources(self, credential_resolver, core_api, connectors_api, store):
        provisioner = _provisioner(credential_resolver, core_api, connectors_api, store)
        ctx = ProvisioningContext(tenant=make_tenant(managed=False))

        outcome = await provisioner.provision(ctx, "slack", "tok-123")

        assert outcome.state == ProvisioningState.REJECTED
        assert isinstance(outcome.error, PolicyRejection)
        assert outcome.error.kind == ErrorKind.PLAN_LIMIT
        assert outcome.error.message == "Your plan does not allow you to create managed data sources."
        assert outcome.visited == [
            ProvisioningState.VALIDATING,
            ProvisioningState.GATING,
            ProvisioningState.REJECTED,
        ]
        assert credential_resolver.calls == []
        assert core_api.projects == []
        assert store.create_calls == 0

    @pytest.mark.asyncio
    async def test_validation_runs_before_plan_gate(self, core_api):
        provisioner = _provisioner(core_api=core_api)
        ctx = ProvisioningContext(tenant=make_tenant(managed=False))

        outcome = await provisioner.provision(ctx, "github", "tok-123")

        assert outcome.error.kind == ErrorKind.INVALID_REQUEST

    @pytest.mark.asyncio
    async def test_custom_capability_gate(self, ctx, core_api):
        seen = []

        def deny_all(tenant, resource_kind):
            seen.append((tenant.tenant_id, resource_kind.value))
            return False

        provisioner = _provisioner(core_api=core_api)
        provisioner.capability_gate = deny_all

        outcome = await provisioner.provision(ctx, "slack", "tok-123")

        assert outcome.error.kind == ErrorKind.PLAN_LIMIT
        assert seen == [(TENANT_ID, "managed_data_source")]


class TestStepFailures:
    """A failing step ends the run and earlier resources are kept."""

    @pytest.mark.asyncio
    async def test_credential_failure(self, ctx):
        core_api = FakeCoreAPI()
        provisioner = _provisioner(credential_resolver=FakeCredentialResolver(fail=True), core_api=core_api)

        outcome = await provisioner.provision(ctx, "slack", "tok-123")

        assert outcome.state == ProvisioningState.FAILED
        assert isinstance(outcome.error, CredentialError)
        assert outcome.failed_step == ProvisioningStep.CREDENTIAL_ISSUANCE
        assert outcome.visited[-2:] == [ProvisioningState.RESOLVING_CREDENTIAL, ProvisioningState.FAILED]
        assert core_api.projects == []

    @pytest.mark.asyncio
    async def test_workspace_failure(self, ctx):
        core_api = FakeCoreAPI(fail_project=True)
        store = InMemoryDataSourceStore()
        provisioner = _provisioner(core_api=core_api, store=store)

        outcome = await provisioner.provision(ctx, "slack", "tok-123")

        assert isinstance(outcome.error, RemoteWorkspaceError)
        assert outcome.failed_step == ProvisioningStep.REMOTE_WORKSPACE_CREATION
        assert outcome.error.upstream == {"type": "timeout"}
        assert core_api.data_sources == []
        assert store.create_calls == 0

    @pytest.mark.asyncio
    async def test_remote_resource_failure_keeps_workspace(self, ctx):
        core_api = FakeCoreAPI(fail_data_source=True)
        store = InMemoryDataSourceStore()
        provisioner = _provisioner(core_api=core_api, store=store)

        outcome = await provisioner.provision(ctx, "slack", "tok-123")

        assert isinstance(outcome.error, RemoteResourceError)
        assert outcome.failed_step == ProvisioningStep.REMOTE_RESOURCE_CREATION
        assert len(core_api.projects) == 1
        assert store.create_calls == 0
        assert store.list(TENANT_ID) == []

    @pytest.mark.asyncio
    async def test_connector_failure_leaves_unbound_record(self, ctx):
        store = InMemoryDataSourceStore()
        connectors_api = FakeConnectorsAPI(fail=True)
        provisioner = _provisioner(connectors_api=connectors_api, store=store)

        outcome = await provisioner.provision(ctx, "slack", "tok-123")

        assert outcome.state == ProvisioningState.FAILED
        assert isinstance(outcome.error, ConnectorError)
        assert outcome.failed_step == ProvisioningStep.CONNECTOR_CREATION
        assert outcome.error.upstream["status_code"] == 502
        assert outcome.data_source is None

        stored = store.get(TENANT_ID, "managed-slack")
        assert stored is not None
        assert stored.connector_id is None
        assert stored.connector_provider_kind is None
        assert not stored.is_bound

    @pytest.mark.asyncio
    async def test_binding_failure(self, ctx):
        store = InMemoryDataSourceStore(fail_update=True)
        connectors_api = FakeConnectorsAPI()
        provisioner = _provisioner(connectors_api=connectors_api, store=store)

        outcome = await provisioner.provision(ctx, "slack", "tok-123")

        assert isinstance(outcome.error, LocalRecordError)
        assert outcome.failed_step == ProvisioningStep.CONNECTOR_BINDING
        assert outcome.visited[-2:] == [ProvisioningState.BINDING_CONNECTOR, ProvisioningState.FAILED]
        assert len(connectors_api.calls) == 1

    @pytest.mark.asyncio
    async def test_error_body_names_failed_step(self, ctx):
        provisioner = _provisioner(connectors_api=FakeConnectorsAPI(fail=True))

        outcome = await provisioner.provision(ctx, "notion", "tok-123")

        body = outcome.error.to_dict()
        assert body["kind"] == "internal"
        assert body["step"] == "connector_creation"
        assert body["message"] == "Failed to create the connector."
        assert body["upstream_error"]["body"] == {"error": "nango unreachable"}


class TestRepeatedProvisioning:
    """Second attempt for the same provider."""

    @pytest.mark.asyncio
    async def test_second_attempt_conflicts(self, provisioner, ctx, core_api, store):
        first = await provisioner.provision(ctx, "slack", "tok-123")
        second = await provisioner.provision(ctx, "slack", "tok-123")

        assert first.ok
        assert second.state == ProvisioningState.FAILED
        assert isinstance(second.error, ConflictError)
        assert second.error.kind == ErrorKind.CONFLICT
        assert second.failed_step == ProvisioningStep.LOCAL_RECORD_WRITE
        assert len(store.list(TENANT_ID)) == 1

    @pytest.mark.asyncio
    async def test_retry_after_connector_failure_conflicts(self, ctx):
        store = InMemoryDataSourceStore()
        connectors_api = FakeConnectorsAPI(fail=True)
        core_api = FakeCoreAPI()
        provisioner = _provisioner(core_api=core_api, connectors_api=connectors_api, store=store)

        await provisioner.provision(ctx, "slack", "tok-123")
        connectors_api.fail = False
        retry = await provisioner.provision(ctx, "slack", "tok-123")

        assert retry.error.kind == ErrorKind.CONFLICT
        # Remote resources are created again before the conflict is detected
        assert len(core_api.projects) == 2
        assert len(connectors_api.calls) == 1

    @pytest.mark.asyncio
    async def test_conflict_is_per_tenant(self, provisioner, store):
        other_tenant = "9b2e4f61-0c3a-4d7e-8f15-6a2b9c0d1e22"

        first = await provisioner.provision(ProvisioningContext(tenant=make_tenant()), "slack", "tok-1")
        second = await provisioner.provision(
            ProvisioningContext(tenant=make_tenant(tenant_id=other_tenant)), "slack", "tok-2"
        )

        assert first.ok and second.ok
        assert store.get(other_tenant, "managed-slack") is not None

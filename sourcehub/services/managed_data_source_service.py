"""Managed data source provisioning - orchestrates credential, core API, local record and connector steps."""

import logging
import time
from contextlib import contextmanager
from typing import Any, Awaitable, Callable, Dict, Iterator, List, Optional

from sourcehub.adapters.connectors_api_client import ConnectorsAPIClient, connectors_api_client
from sourcehub.adapters.core_api_client import CoreAPIClient, core_api_client, managed_provider_credentials
from sourcehub.infra.error_handler import PolicyRejection, ProvisioningError, ValidationError
from sourcehub.infra.metrics import (
    provisioning_outcomes_total,
    provisioning_step_duration,
    provisioning_step_failures_total,
)
from sourcehub.infra.validation import validate_provisioning_request
from sourcehub.models.data_source import (
    DEFAULT_VISIBILITY,
    MANAGED_DATA_SOURCE_CONFIG,
    LocalDataSourceRecord,
    ProvisioningContext,
    ProvisioningOutcome,
    ProvisioningState,
    ResourceKind,
    SystemAPIKey,
    managed_data_source_description,
    managed_data_source_name,
    serialize_remote_config,
)
from sourcehub.models.tenant import TenantContext
from sourcehub.services import plan_gate
from sourcehub.services.api_key_service import get_or_create_system_api_key
from sourcehub.services.data_source_store import DataSourceStore, data_source_store

logger = logging.getLogger(__name__)


class ManagedDataSourceProvisioner:
    """
    Creates a managed data source for a tenant.

    Steps run strictly in order and the first failure ends the run:

        validate -> plan gate -> system API key -> core project ->
        core data source -> local record -> connector -> bind connector

    Nothing created by an earlier step is removed when a later step fails.
    A connector failure therefore leaves the local record in place with no
    connector binding, and a data source failure leaves the core project
    allocated. Every outcome, including failures, is returned as a
    ProvisioningOutcome; ProvisioningError never escapes `provision`.
    """

    def __init__(
        self,
        credential_resolver: Callable[[str], Awaitable[SystemAPIKey]] = get_or_create_system_api_key,
        core_api: Optional[CoreAPIClient] = None,
        connectors_api: Optional[ConnectorsAPIClient] = None,
        store: Optional[DataSourceStore] = None,
        capability_gate: Callable[[TenantContext, ResourceKind], bool] = plan_gate.allows,
        credentials_factory: Callable[[], Dict[str, Any]] = managed_provider_credentials,
    ):
        self.credential_resolver = credential_resolver
        self.core_api = core_api or core_api_client
        self.connectors_api = connectors_api or connectors_api_client
        self.store = store or data_source_store
        self.capability_gate = capability_gate
        self.credentials_factory = credentials_factory

    @contextmanager
    def _step(self, state: ProvisioningState, visited: List[ProvisioningState], log_extra: Dict[str, Any]) -> Iterator[None]:
        visited.append(state)
        logger.debug("Provisioning step started", extra=dict(log_extra, state=state.value))
        start_time = time.time()
        try:
            yield
        finally:
            provisioning_step_duration.labels(state.value).observe(time.time() - start_time)

    def _finish(
        self,
        state: ProvisioningState,
        visited: List[ProvisioningState],
        log_extra: Dict[str, Any],
        provider_label: str,
        data_source: Optional[LocalDataSourceRecord] = None,
        error: Optional[ProvisioningError] = None,
    ) -> ProvisioningOutcome:
        visited.append(state)
        error_kind = error.kind.value if error else "none"
        provisioning_outcomes_total.labels(provider_label, state.value, error_kind).inc()

        if error is None:
            logger.info("Managed data source provisioned", extra=dict(log_extra, state=state.value))
        elif state == ProvisioningState.REJECTED:
            logger.info(
                f"Managed data source request rejected: {error.message}",
                extra=dict(log_extra, state=state.value, error_kind=error_kind),
            )
        else:
            step = error.step.value if error.step else None
            provisioning_step_failures_total.labels(step or "unknown").inc()
            logger.error(
                f"Managed data source provisioning failed at {step}: {error.message}",
                extra=dict(
                    log_extra,
                    state=state.value,
                    failed_step=step,
                    error_kind=error_kind,
                    upstream_error=error.upstream,
                ),
            )

        return ProvisioningOutcome(state=state, data_source=data_source, error=error, visited=visited)

    async def provision(
        self,
        ctx: ProvisioningContext,
        provider_kind: Any,
        external_connection_token: Any,
    ) -> ProvisioningOutcome:
        """
        Provision a managed data source for `ctx.tenant`.

        Args:
            ctx: Request-scoped tenant and tracing values
            provider_kind: Raw provider value from the request (validated here)
            external_connection_token: Raw connection token from the request (validated here)

        Returns:
            ProvisioningOutcome in state DONE, REJECTED or FAILED
        """
        tenant = ctx.tenant
        visited: List[ProvisioningState] = []
        log_extra: Dict[str, Any] = {
            "tenant_id": tenant.tenant_id,
            "request_id": ctx.request_id,
            "actor": ctx.actor,
        }

        try:
            with self._step(ProvisioningState.VALIDATING, visited, log_extra):
                request = validate_provisioning_request(
                    tenant.tenant_id, provider_kind, external_connection_token
                )
        except ValidationError as e:
            return self._finish(ProvisioningState.REJECTED, visited, log_extra, "invalid", error=e)

        provider_label = request.provider_kind.value
        log_extra["provider_kind"] = provider_label
        name = managed_data_source_name(request.provider_kind)
        log_extra["data_source"] = name

        with self._step(ProvisioningState.GATING, visited, log_extra):
            allowed = self.capability_gate(tenant, ResourceKind.MANAGED_DATA_SOURCE)
        if not allowed:
            return self._finish(
                ProvisioningState.REJECTED, visited, log_extra, provider_label,
                error=PolicyRejection("Your plan does not allow you to create managed data sources."),
            )

        try:
            with self._step(ProvisioningState.RESOLVING_CREDENTIAL, visited, log_extra):
                system_key = await self.credential_resolver(tenant.tenant_id)

            with self._step(ProvisioningState.PROVISIONING_WORKSPACE, visited, log_extra):
                workspace = await self.core_api.create_project()
            log_extra["remote_workspace_id"] = workspace.workspace_id

            with self._step(ProvisioningState.PROVISIONING_RESOURCE, visited, log_extra):
                remote_data_source = await self.core_api.create_data_source(
                    workspace,
                    name,
                    MANAGED_DATA_SOURCE_CONFIG,
                    self.credentials_factory(),
                )

            with self._step(ProvisioningState.WRITING_LOCAL_RECORD, visited, log_extra):
                record = self.store.create(
                    tenant_id=tenant.tenant_id,
                    name=name,
                    description=managed_data_source_description(request.provider_kind),
                    visibility=DEFAULT_VISIBILITY,
                    configuration=serialize_remote_config(remote_data_source.config),
                    remote_workspace_id=workspace.workspace_id,
                )

            with self._step(ProvisioningState.PROVISIONING_CONNECTOR, visited, log_extra):
                connector = await self.connectors_api.create_connector(
                    request.provider_kind,
                    tenant.tenant_id,
                    system_key.secret,
                    name,
                    request.external_connection_token,
                )
            log_extra["connector_id"] = connector.connector_id

            with self._step(ProvisioningState.BINDING_CONNECTOR, visited, log_extra):
                record = self.store.update(record, {
                    "connector_id": connector.connector_id,
                    "connector_provider_kind": connector.provider_kind.value,
                })
        except ProvisioningError as e:
            return self._finish(ProvisioningState.FAILED, visited, log_extra, provider_label, error=e)

        return self._finish(ProvisioningState.DONE, visited, log_extra, provider_label, data_source=record)


managed_data_source_provisioner = ManagedDataSourceProvisioner()

"""Tests for the provisioning error taxonomy."""

import httpx
import pytest
from sqlalchemy.exc import DataError, ResourceClosedError

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
    describe_storage_error,
    describe_upstream_error,
)


class TestErrorTaxonomy:
    """Each error maps to one kind and, for step failures, one step."""

    @pytest.mark.parametrize("error_class, kind, step", [
        (ValidationError, ErrorKind.INVALID_REQUEST, None),
        (PolicyRejection, ErrorKind.PLAN_LIMIT, None),
        (CredentialError, ErrorKind.INTERNAL, ProvisioningStep.CREDENTIAL_ISSUANCE),
        (RemoteWorkspaceError, ErrorKind.INTERNAL, ProvisioningStep.REMOTE_WORKSPACE_CREATION),
        (RemoteResourceError, ErrorKind.INTERNAL, ProvisioningStep.REMOTE_RESOURCE_CREATION),
        (LocalRecordError, ErrorKind.INTERNAL, ProvisioningStep.LOCAL_RECORD_WRITE),
        (ConnectorError, ErrorKind.INTERNAL, ProvisioningStep.CONNECTOR_CREATION),
        (ConflictError, ErrorKind.CONFLICT, ProvisioningStep.LOCAL_RECORD_WRITE),
    ])
    def test_kind_and_step(self, error_class, kind, step):
        error = error_class("failed")

        assert error.kind == kind
        assert error.step == step

    def test_step_override(self):
        error = LocalRecordError("bind failed", step=ProvisioningStep.CONNECTOR_BINDING)

        assert error.step == ProvisioningStep.CONNECTOR_BINDING
        assert LocalRecordError("other").step == ProvisioningStep.LOCAL_RECORD_WRITE

    def test_to_dict(self):
        error = ConnectorError("Failed to create the connector.", upstream={"type": "timeout"})

        assert error.to_dict() == {
            "kind": "internal",
            "message": "Failed to create the connector.",
            "step": "connector_creation",
            "upstream_error": {"type": "timeout"},
        }


class TestDescribeUpstreamError:
    """Normalization of transport and remote failures."""

    def test_http_status_error_with_json_body(self):
        request = httpx.Request("POST", "http://core.test/projects")
        response = httpx.Response(503, json={"error": "unavailable"}, request=request)
        error = httpx.HTTPStatusError("service unavailable", request=request, response=response)

        described = describe_upstream_error(error)

        assert described["type"] == "http_status_error"
        assert described["status_code"] == 503
        assert described["body"] == {"error": "unavailable"}

    def test_http_status_error_with_text_body(self):
        request = httpx.Request("POST", "http://core.test/projects")
        response = httpx.Response(502, text="<html>bad gateway</html>", request=request)
        error = httpx.HTTPStatusError("bad gateway", request=request, response=response)

        assert describe_upstream_error(error)["body"] == "<html>bad gateway</html>"

    def test_timeout(self):
        assert describe_upstream_error(httpx.ReadTimeout("read timed out")) == {
            "type": "timeout",
            "message": "read timed out",
        }

    def test_transport_error(self):
        assert describe_upstream_error(httpx.ConnectError("refused"))["type"] == "transport_error"

    def test_other_error(self):
        assert describe_upstream_error(KeyError("connectorId"))["type"] == "KeyError"


class TestDescribeStorageError:
    """Database failures keep the driver message only."""

    def test_statement_and_parameters_are_dropped(self):
        error = DataError(
            "UPDATE api_keys SET secret = %(secret)s WHERE tenant_id = %(tenant_id)s",
            {"secret": "sk-live-secret", "tenant_id": "not-a-uuid"},
            Exception('invalid input syntax for type uuid: "not-a-uuid"'),
        )

        described = describe_storage_error(error)

        assert described == {
            "type": "DataError",
            "message": 'invalid input syntax for type uuid: "not-a-uuid"',
        }
        assert "[SQL:" in str(error)
        assert "sk-live-secret" not in str(described)

    def test_error_without_driver_exception(self):
        assert describe_storage_error(ResourceClosedError("closed")) == {
            "type": "ResourceClosedError",
            "message": "ResourceClosedError",
        }

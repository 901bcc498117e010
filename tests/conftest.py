"""Pytest configuration and fixtures."""

import os

import pytest
from dotenv import load_dotenv

# Load test environment variables
load_dotenv()

# Set test environment
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DEBUG", "true")

from fakes import (
    TENANT_ID,
    FakeConnectorsAPI,
    FakeCoreAPI,
    FakeCredentialResolver,
    InMemoryDataSourceStore,
    make_tenant,
)
from sourcehub.models.data_source import ProvisioningContext
from sourcehub.services.managed_data_source_service import ManagedDataSourceProvisioner


@pytest.fixture
def tenant():
    return make_tenant(managed=True)


@pytest.fixture
def ctx(tenant):
    return ProvisioningContext(tenant=tenant, request_id="req-1", actor=TENANT_ID)


@pytest.fixture
def credential_resolver():
    return FakeCredentialResolver()


@pytest.fixture
def core_api():
    return FakeCoreAPI()


@pytest.fixture
def connectors_api():
    return FakeConnectorsAPI()


@pytest.fixture
def store():
    return InMemoryDataSourceStore()


@pytest.fixture
def provisioner(credential_resolver, core_api, connectors_api, store):
    return ManagedDataSourceProvisioner(
        credential_resolver=credential_resolver,
        core_api=core_api,
        connectors_api=connectors_api,
        store=store,
        credentials_factory=lambda: {"OPENAI_API_KEY": "sk-managed"},
    )

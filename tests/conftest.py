"""
Shared pytest fixtures for gateway tests.

These fixtures are automatically available to all tests.
"""

import pytest

from wa_gateway.credentials.models import IntegrationCredentials
from wa_gateway.credentials.store import CredentialStore
from wa_gateway.utils.encryption import CredentialEncryptor, MasterKey

ZERO_KEY_HEX = "00" * 32


class FakeKeyValueStore:
    """In-memory stand-in for Redis exposing only get/set."""

    def __init__(self):
        self.data = {}

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value):
        self.data[key] = value
        return True


@pytest.fixture
def master_key() -> MasterKey:
    return MasterKey.from_material(ZERO_KEY_HEX)


@pytest.fixture
def encryptor(master_key: MasterKey) -> CredentialEncryptor:
    return CredentialEncryptor(master_key)


@pytest.fixture
def kv() -> FakeKeyValueStore:
    return FakeKeyValueStore()


@pytest.fixture
def store(kv, encryptor) -> CredentialStore:
    return CredentialStore(kv, encryptor)


@pytest.fixture
def sample_credentials() -> IntegrationCredentials:
    """
    NOTE: Tokens are intentionally fake values to avoid triggering
    secret scanning.
    """
    return IntegrationCredentials(
        api_version="v20.0",
        account_id="A1",
        sender_id="P1",
        access_token="secret-token",
        webhook_verify_token="verify-me",
        display_name="Support line",
    )

"""
Credential storage service for per-integration WhatsApp credentials.

SECURITY REQUIREMENTS:
- Records are encrypted before they reach the key-value store
- No plaintext tokens outside process memory
- No caching of decrypted records: every read re-fetches and re-decrypts,
  so a rotation is visible to the very next request
- Tokens are never logged

Key schema:
- wa:integration:{integration_id}:creds -> base64(nonce || tag || ciphertext)

Usage:
    store = CredentialStore(redis_client, CredentialEncryptor(master_key))

    store.save_credentials("acme", IntegrationCredentials(
        account_id="1234", sender_id="5678", access_token="EAA...",
    ))
    creds = store.get_credentials("acme")
"""

import logging
from typing import Callable, Optional, Protocol, TypeVar, Union

import redis

from wa_gateway.config.settings import Settings
from wa_gateway.credentials.models import IntegrationCredentials
from wa_gateway.credentials.redaction import AuditEventType, CredentialAuditLogger
from wa_gateway.platform.errors import (
    DecryptionError,
    NotFoundError,
    StoreUnavailableError,
    ValidationError,
)
from wa_gateway.utils.encryption import CredentialEncryptor

logger = logging.getLogger(__name__)

T = TypeVar("T")

KEY_PREFIX = "wa:integration"

# Transient store failures; eligible for exactly one retry
TRANSIENT_ERRORS = (redis.TimeoutError, redis.ConnectionError)


class KeyValueStore(Protocol):
    """The only store capability the credential core depends on."""

    def get(self, key: str) -> Optional[Union[str, bytes]]:
        ...

    def set(self, key: str, value: str) -> object:
        ...


def credentials_key(integration_id: str) -> str:
    """
    Derive the store key for an integration.

    Raises:
        ValidationError: If integration_id is empty
    """
    if not integration_id or not integration_id.strip():
        raise ValidationError("integration_id is required")
    return f"{KEY_PREFIX}:{integration_id}:creds"


def create_redis_client(settings: Settings) -> redis.Redis:
    """Build the Redis client used as the credential key-value store."""
    return redis.Redis.from_url(
        settings.redis_url,
        socket_timeout=settings.redis_timeout_seconds,
        socket_connect_timeout=settings.redis_timeout_seconds,
        decode_responses=True,
    )


class CredentialStore:
    """
    Maps integration ids to encrypted credential blobs.

    Holds no mutable state; concurrent calls for different integrations are
    independent and calls for the same integration are last-writer-wins at
    the store.
    """

    def __init__(self, kv: KeyValueStore, encryptor: CredentialEncryptor):
        self._kv = kv
        self._encryptor = encryptor

    def save_credentials(self, integration_id: str, record: IntegrationCredentials) -> None:
        """
        Encrypt and store credentials, replacing any previous record.

        Raises:
            ValidationError: If required fields are missing (nothing is written)
            StoreUnavailableError: If the store is unreachable after one retry
        """
        key = credentials_key(integration_id)
        record.validate()

        blob = self._encryptor.encrypt(record.to_payload())
        self._call_store("set", integration_id, lambda: self._kv.set(key, blob))

        CredentialAuditLogger(integration_id).log(
            AuditEventType.CREDENTIAL_STORED,
            display_name=record.display_name,
            metadata={"api_version": record.api_version},
        )
        logger.info(
            "Credentials stored",
            extra={"integration_id": integration_id, "display_name": record.display_name},
        )

    def get_credentials(self, integration_id: str) -> IntegrationCredentials:
        """
        Fetch and decrypt credentials for an integration.

        Raises:
            NotFoundError: If no credentials exist for the integration
            DecryptionError: If the stored blob is corrupt, tampered with, or
                             was written under a different master key
            StoreUnavailableError: If the store is unreachable after one retry
        """
        key = credentials_key(integration_id)
        blob = self._call_store("get", integration_id, lambda: self._kv.get(key))

        if blob is None:
            raise NotFoundError("Credentials", integration_id)

        if isinstance(blob, bytes):
            try:
                blob = blob.decode("ascii")
            except UnicodeDecodeError:
                self._report_corrupt(integration_id, "non-ascii blob")
                raise DecryptionError("Stored credentials are not a valid blob")

        try:
            record = IntegrationCredentials.from_payload(self._encryptor.decrypt(blob))
        except DecryptionError as e:
            self._report_corrupt(integration_id, e.message)
            raise

        CredentialAuditLogger(integration_id).log(
            AuditEventType.CREDENTIAL_ACCESSED,
            display_name=record.display_name,
        )
        return record

    def _call_store(self, operation: str, integration_id: str, call: Callable[[], T]) -> T:
        try:
            return call()
        except TRANSIENT_ERRORS as first:
            logger.warning(
                "Credential store call failed, retrying once",
                extra={
                    "operation": operation,
                    "integration_id": integration_id,
                    "error_type": type(first).__name__,
                },
            )
        try:
            return call()
        except TRANSIENT_ERRORS as e:
            logger.error(
                "Credential store unavailable",
                extra={
                    "operation": operation,
                    "integration_id": integration_id,
                    "error_type": type(e).__name__,
                },
            )
            raise StoreUnavailableError() from e

    @staticmethod
    def _report_corrupt(integration_id: str, reason: str) -> None:
        logger.error(
            "Stored credentials could not be decrypted",
            extra={"integration_id": integration_id, "reason": reason},
        )
        CredentialAuditLogger(integration_id).log_error(reason, error_type="DecryptionError")

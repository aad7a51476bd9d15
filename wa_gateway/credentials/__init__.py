"""
Credentials module for per-integration WhatsApp credential management.

This module provides:
- Encrypted storage of integration credentials in Redis
- Master key loading and validation
- Webhook verify token resolution
- Audit logging with automatic redaction

SECURITY:
- Credentials are encrypted at rest with AES-256-GCM under MASTER_KEY_HEX
- No plaintext tokens outside process memory
- Tokens NEVER appear in logs or API responses

Usage:
    from wa_gateway.credentials import CredentialStore, IntegrationCredentials

    store = CredentialStore(redis_client, encryptor)
    store.save_credentials("acme", IntegrationCredentials(
        account_id="1234", sender_id="5678", access_token="EAA...",
    ))
    creds = store.get_credentials("acme")
"""

from wa_gateway.credentials.models import IntegrationCredentials, DEFAULT_API_VERSION
from wa_gateway.credentials.store import (
    CredentialStore,
    KeyValueStore,
    credentials_key,
    create_redis_client,
)
from wa_gateway.credentials.keys import (
    generate_master_key,
    generate_master_key_hex,
    is_valid_master_key_hex,
    hex_key_to_bytes,
    load_master_key,
)
from wa_gateway.credentials.redaction import (
    redact_credential_data,
    CredentialAuditLogger,
    CredentialLoggingFilter,
    AuditEventType,
    setup_credential_logging,
)

__all__ = [
    # Model
    "IntegrationCredentials",
    "DEFAULT_API_VERSION",
    # Store
    "CredentialStore",
    "KeyValueStore",
    "credentials_key",
    "create_redis_client",
    # Keys
    "generate_master_key",
    "generate_master_key_hex",
    "is_valid_master_key_hex",
    "hex_key_to_bytes",
    "load_master_key",
    # Redaction & Audit
    "redact_credential_data",
    "CredentialAuditLogger",
    "CredentialLoggingFilter",
    "AuditEventType",
    "setup_credential_logging",
]

"""
Utility modules for the WhatsApp credential gateway.

This package contains shared utilities used across the application.
"""

from wa_gateway.utils.encryption import (
    CredentialEncryptor,
    MasterKey,
    KEY_SIZE,
    NONCE_SIZE,
    TAG_SIZE,
    MIN_BLOB_SIZE,
)

__all__ = [
    "CredentialEncryptor",
    "MasterKey",
    "KEY_SIZE",
    "NONCE_SIZE",
    "TAG_SIZE",
    "MIN_BLOB_SIZE",
]

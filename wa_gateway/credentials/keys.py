"""
Master key bootstrap and validation helpers.

The gateway never generates a key on its own: a missing or malformed
MASTER_KEY_HEX is a ConfigurationError at startup. Generation is an explicit
operator step (see scripts/generate_master_key.py).
"""

import logging
import secrets

from wa_gateway.config.settings import Settings
from wa_gateway.platform.errors import ConfigurationError
from wa_gateway.utils.encryption import HEX_KEY_PATTERN, KEY_SIZE, MasterKey

logger = logging.getLogger(__name__)


def generate_master_key() -> bytes:
    """Generate a cryptographically secure 32-byte key."""
    return secrets.token_bytes(KEY_SIZE)


def generate_master_key_hex() -> str:
    """Generate a new key as a 64-character hex string."""
    return generate_master_key().hex()


def is_valid_master_key_hex(value) -> bool:
    """True if value is exactly 64 hex characters (32 bytes)."""
    return isinstance(value, str) and bool(HEX_KEY_PATTERN.match(value))


def hex_key_to_bytes(value: str) -> bytes:
    """
    Convert a hex key to bytes.

    Raises:
        ConfigurationError: If value is not 64 hex characters
    """
    if not is_valid_master_key_hex(value):
        raise ConfigurationError("Invalid master key: must be 64 hex characters (32 bytes)")
    return bytes.fromhex(value)


def load_master_key(settings: Settings) -> MasterKey:
    """
    Build the process MasterKey from settings.

    Call once during application startup; the result is passed to
    CredentialEncryptor.

    Raises:
        ConfigurationError: If the key is missing or not exactly 32 bytes
    """
    try:
        key = MasterKey.from_material(
            settings.master_key_material,
            encoding=settings.master_key_encoding,
        )
    except ConfigurationError as e:
        logger.critical(
            "Master key rejected; refusing to handle credentials",
            extra={"reason": e.message},
        )
        raise

    logger.info("Master key loaded", extra={"key_bytes": KEY_SIZE})
    return key

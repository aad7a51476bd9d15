"""
Encryption utilities for secure credential storage.

Implements AES-256-GCM encryption for storing integration credentials at rest.

SECURITY:
- Uses AES-256-GCM for authenticated encryption
- Each encryption uses a unique random 12-byte nonce
- Key is exactly 32 bytes (256 bits), loaded once at startup
- Tampering, truncation or a wrong key surfaces as DecryptionError,
  never as wrong plaintext

Blob format (stable across releases):
    base64(nonce[12] || tag[16] || ciphertext)

Usage:
    from wa_gateway.utils.encryption import CredentialEncryptor, MasterKey

    key = MasterKey.from_material(os.environ["MASTER_KEY_HEX"])
    encryptor = CredentialEncryptor(key)

    blob = encryptor.encrypt({"token": "secret"})
    data = encryptor.decrypt(blob)
"""

import base64
import binascii
import json
import logging
import re
import secrets
from typing import Any, Optional, Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from wa_gateway.platform.errors import (
    ConfigurationError,
    DecryptionError,
    EncryptionError,
)

logger = logging.getLogger(__name__)


# AES-GCM constants
NONCE_SIZE = 12  # 96 bits, recommended for AES-GCM
TAG_SIZE = 16    # 128 bits, standard for AES-GCM
KEY_SIZE = 32    # 256 bits for AES-256
MIN_BLOB_SIZE = NONCE_SIZE + TAG_SIZE

HEX_KEY_PATTERN = re.compile(r"^[a-fA-F0-9]{64}$")
KEY_ENCODINGS = ("hex", "base64")


class MasterKey:
    """
    Process-wide 256-bit key.

    Constructed once at startup and passed to CredentialEncryptor. Never
    derived from request data; immutable after construction.
    """

    __slots__ = ("_raw",)

    def __init__(self, raw: bytes):
        if not isinstance(raw, (bytes, bytearray)):
            raise ConfigurationError("Master key must be bytes")
        if len(raw) != KEY_SIZE:
            raise ConfigurationError(
                f"Master key must be {KEY_SIZE} bytes, got {len(raw)}"
            )
        object.__setattr__(self, "_raw", bytes(raw))

    def __setattr__(self, name, value):
        raise AttributeError("MasterKey is immutable")

    def __repr__(self) -> str:
        return "MasterKey(<redacted>)"

    def __eq__(self, other) -> bool:
        if not isinstance(other, MasterKey):
            return NotImplemented
        return secrets.compare_digest(self._raw, other._raw)

    def __hash__(self) -> int:
        return hash((MasterKey, self._raw))

    @property
    def raw(self) -> bytes:
        return self._raw

    @classmethod
    def from_material(
        cls,
        material: Optional[str],
        encoding: Optional[str] = None,
    ) -> "MasterKey":
        """
        Decode key material from configuration.

        Args:
            material: 64 hex characters or a base64 string of 32 bytes
            encoding: "hex", "base64", or None to detect (hex when the
                      value is exactly 64 hex characters, base64 otherwise)

        Raises:
            ConfigurationError: If material is missing, undecodable, or does
                                not decode to exactly 32 bytes
        """
        if not material:
            raise ConfigurationError(
                "MASTER_KEY_HEX is required: 32 bytes as 64 hex characters or base64"
            )
        if encoding is not None and encoding not in KEY_ENCODINGS:
            raise ConfigurationError(
                f"MASTER_KEY_ENCODING must be one of {', '.join(KEY_ENCODINGS)}"
            )

        value = material.strip()
        if encoding is None:
            encoding = "hex" if HEX_KEY_PATTERN.match(value) else "base64"

        if encoding == "hex":
            if not HEX_KEY_PATTERN.match(value):
                raise ConfigurationError(
                    "MASTER_KEY_HEX must be 64 hex characters (32 bytes)"
                )
            return cls(bytes.fromhex(value))

        try:
            decoded = base64.b64decode(value, validate=True)
        except (binascii.Error, ValueError):
            raise ConfigurationError("MASTER_KEY_HEX is not valid hex or base64")
        return cls(decoded)


class CredentialEncryptor:
    """
    AES-256-GCM encryptor for credential storage.

    Stateless apart from the master key, so one instance can be shared
    across threads and tasks without locking.

    SECURITY:
    - Never reuse nonces with the same key (fresh nonce per call)
    - Plaintext and key bytes are never logged
    """

    def __init__(self, master_key: Union[MasterKey, bytes]):
        """
        Initialize encryptor with the process master key.

        Args:
            master_key: MasterKey, or raw 32-byte key

        Raises:
            ConfigurationError: If the key is not exactly 32 bytes
        """
        if not isinstance(master_key, MasterKey):
            master_key = MasterKey(master_key)
        self._aesgcm = AESGCM(master_key.raw)

    @staticmethod
    def generate_nonce() -> bytes:
        """
        Generate a new random nonce for encryption.

        Returns:
            12-byte cryptographically secure random nonce
        """
        return secrets.token_bytes(NONCE_SIZE)

    def encrypt(self, data: Any, associated_data: Optional[bytes] = None) -> str:
        """
        Encrypt a JSON-serialisable value.

        Args:
            data: Value to encrypt
            associated_data: Optional additional data for authentication

        Returns:
            base64(nonce || tag || ciphertext)

        Raises:
            EncryptionError: If data cannot be serialised or encryption fails
        """
        try:
            plaintext = json.dumps(
                data, sort_keys=True, separators=(",", ":"), ensure_ascii=False
            ).encode("utf-8")
        except (TypeError, ValueError) as e:
            logger.error(
                "Encryption failed: payload is not JSON serialisable",
                extra={"operation": "encrypt", "error_type": type(e).__name__},
            )
            raise EncryptionError("Failed to encrypt data: payload is not serialisable") from e

        nonce = self.generate_nonce()

        # AESGCM.encrypt returns ciphertext + tag concatenated
        ciphertext_with_tag = self._aesgcm.encrypt(nonce, plaintext, associated_data)
        ciphertext = ciphertext_with_tag[:-TAG_SIZE]
        auth_tag = ciphertext_with_tag[-TAG_SIZE:]

        return base64.b64encode(nonce + auth_tag + ciphertext).decode("ascii")

    def decrypt(
        self,
        blob: Union[str, bytes],
        associated_data: Optional[bytes] = None,
    ) -> Any:
        """
        Decrypt a blob produced by encrypt().

        All-or-nothing: any failure raises and no plaintext is returned.

        Args:
            blob: base64(nonce || tag || ciphertext)
            associated_data: Optional additional data for authentication

        Returns:
            The decoded JSON value

        Raises:
            DecryptionError: If the blob is malformed, too short, fails
                             authentication, or is not valid JSON
        """
        if not blob:
            raise DecryptionError("Cannot decrypt empty blob")

        try:
            raw = base64.b64decode(blob, validate=True)
        except (binascii.Error, ValueError):
            logger.error("Decryption failed: invalid base64", extra={"operation": "decrypt"})
            raise DecryptionError("Decryption failed: blob is not valid base64")

        if len(raw) < MIN_BLOB_SIZE:
            logger.error(
                "Decryption failed: blob too short",
                extra={"operation": "decrypt", "blob_size": len(raw)},
            )
            raise DecryptionError("Decryption failed: blob is truncated")

        nonce = raw[:NONCE_SIZE]
        auth_tag = raw[NONCE_SIZE:MIN_BLOB_SIZE]
        ciphertext = raw[MIN_BLOB_SIZE:]

        try:
            plaintext = self._aesgcm.decrypt(nonce, ciphertext + auth_tag, associated_data)
        except InvalidTag:
            logger.error("Decryption failed: authentication tag mismatch", extra={"operation": "decrypt"})
            raise DecryptionError(
                "Decryption failed: data may have been tampered with or the master key changed"
            )

        try:
            return json.loads(plaintext.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            logger.error("Decryption failed: invalid JSON payload", extra={"operation": "decrypt"})
            raise DecryptionError("Decrypted data is not valid JSON")

"""
Integration credential record.

The encrypted payload keeps the JSON keys written by earlier deployments
(version, wabaId, phoneNumberId, token, verifyToken, displayName) so blobs
stay readable by any process sharing the same master key.

SECURITY: access_token and webhook_verify_token never appear in repr().
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from wa_gateway.platform.errors import DecryptionError, ValidationError

DEFAULT_API_VERSION = "v20.0"
REDACTED_VALUE = "[REDACTED]"

# attribute -> payload key
PAYLOAD_KEYS = {
    "api_version": "version",
    "account_id": "wabaId",
    "sender_id": "phoneNumberId",
    "access_token": "token",
    "webhook_verify_token": "verifyToken",
    "display_name": "displayName",
}
REQUIRED_FIELDS = ("account_id", "sender_id", "access_token")


@dataclass(frozen=True)
class IntegrationCredentials:
    """
    Per-integration WhatsApp Cloud API credentials.

    Records are replaced as a whole on save; there are no partial updates.
    """
    account_id: str
    sender_id: str
    access_token: str = field(repr=False)
    api_version: str = DEFAULT_API_VERSION
    webhook_verify_token: Optional[str] = field(default=None, repr=False)
    display_name: Optional[str] = None

    def missing_fields(self) -> List[str]:
        """Names of required fields that are empty."""
        return [
            name for name in REQUIRED_FIELDS
            if not isinstance(getattr(self, name), str) or not getattr(self, name).strip()
        ]

    def validate(self) -> None:
        """
        Raises:
            ValidationError: If account_id, sender_id or access_token is empty
        """
        missing = self.missing_fields()
        if missing:
            raise ValidationError(
                f"Missing required credential fields: {', '.join(missing)}",
                details={"missing_fields": missing},
            )
        if not self.api_version:
            raise ValidationError("api_version must not be empty", details={"field": "api_version"})

    def to_payload(self) -> Dict[str, str]:
        """Mapping stored inside the encrypted blob. None values are omitted."""
        return {
            key: getattr(self, attr)
            for attr, key in PAYLOAD_KEYS.items()
            if getattr(self, attr) is not None
        }

    @classmethod
    def from_payload(cls, payload: Any) -> "IntegrationCredentials":
        """
        Rebuild a record from a decrypted payload.

        Raises:
            DecryptionError: If the payload does not have the record's shape
        """
        if not isinstance(payload, dict):
            raise DecryptionError("Decrypted credentials have an unexpected structure")

        values = {}
        for attr, key in PAYLOAD_KEYS.items():
            value = payload.get(key)
            if value is not None and not isinstance(value, str):
                raise DecryptionError("Decrypted credentials have an unexpected structure")
            values[attr] = value

        if values["api_version"] is None:
            values["api_version"] = DEFAULT_API_VERSION

        record = cls(**values)
        if record.missing_fields() or not record.api_version.strip():
            raise DecryptionError("Decrypted credentials are missing required fields")
        return record

    def redacted(self) -> Dict[str, Any]:
        """Metadata safe for logs and API responses."""
        return {
            "apiVersion": self.api_version,
            "accountId": self.account_id,
            "senderId": self.sender_id,
            "accessToken": REDACTED_VALUE,
            "webhookVerifyToken": REDACTED_VALUE if self.webhook_verify_token else None,
            "displayName": self.display_name,
        }

"""
Credential redaction and audit logging utilities.

SECURITY REQUIREMENTS:
- Tokens NEVER appear in logs (access token, webhook verify token, keys)
- ALLOWED in logs: integration_id, display_name, account_id, sender_id
- All credential operations logged for audit trail

Audit Events:
- credential.stored
- credential.accessed
- credential.error

Usage:
    from wa_gateway.credentials.redaction import CredentialAuditLogger, AuditEventType

    audit = CredentialAuditLogger(integration_id)
    audit.log(AuditEventType.CREDENTIAL_STORED, display_name="Support line")
"""

import logging
import re
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Dict

from wa_gateway.credentials.models import REDACTED_VALUE

logger = logging.getLogger(__name__)


class AuditEventType(str, Enum):
    """Credential audit event types."""
    CREDENTIAL_STORED = "credential.stored"
    CREDENTIAL_ACCESSED = "credential.accessed"
    CREDENTIAL_ERROR = "credential.error"


SECRET_VALUE_PATTERNS = [
    re.compile(r"(EAA[a-zA-Z0-9]{8,})"),  # Graph API access tokens
    re.compile(r"(bearer\s+[a-zA-Z0-9._\-]+)", re.IGNORECASE),
    re.compile(r"(sha256=[a-fA-F0-9]{64})"),  # webhook signatures
    re.compile(r"\b([a-fA-F0-9]{64})\b"),  # hex master keys
]

SECRET_KEY_PATTERNS = [
    "token", "secret", "credential", "auth", "bearer",
    "password", "api_key", "api-key", "apikey", "master_key",
]

# Keys that look secret but carry allowed metadata
ALLOWED_KEYS = ("integration_id", "display_name", "account_id", "sender_id", "error_type")


def is_credential_secret_key(key: str) -> bool:
    """
    Check if a key name indicates a credential secret.

    Args:
        key: The key name to check

    Returns:
        True if the key likely contains a secret
    """
    key_lower = key.lower()
    if key_lower in ALLOWED_KEYS:
        return False
    return any(pattern in key_lower for pattern in SECRET_KEY_PATTERNS)


def redact_credential_value(value: Any) -> Any:
    """Redact secret patterns from a string value."""
    if not isinstance(value, str):
        return value

    result = value
    for pattern in SECRET_VALUE_PATTERNS:
        result = pattern.sub(REDACTED_VALUE, result)
    return result


def redact_credential_data(data: Any, _depth: int = 0) -> Any:
    """
    Recursively redact credential secrets from a data structure.

    SECURITY: Always use this before logging credential-related data.

    Args:
        data: Dictionary, list, or other data structure

    Returns:
        Copy of data with secrets redacted
    """
    # Prevent infinite recursion
    if _depth > 10:
        return data

    if isinstance(data, dict):
        result = {}
        for key, value in data.items():
            if isinstance(key, str) and is_credential_secret_key(key):
                result[key] = REDACTED_VALUE
            else:
                result[key] = redact_credential_data(value, _depth + 1)
        return result

    if isinstance(data, (list, tuple)):
        return [redact_credential_data(item, _depth + 1) for item in data]

    if isinstance(data, str):
        return redact_credential_value(data)

    return data


class CredentialAuditLogger:
    """
    Structured audit logger for credential operations.

    SECURITY:
    - Tokens are NEVER logged
    - metadata is redacted before it is emitted
    """

    def __init__(self, integration_id: str):
        self.integration_id = integration_id
        self.logger = logging.getLogger("wa_gateway.credentials.audit")

    def log(
        self,
        event_type: AuditEventType,
        display_name: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Log an audit event.

        Args:
            event_type: Type of audit event
            display_name: Integration display name (allowed in logs)
            metadata: Additional context (will be redacted)
        """
        safe_metadata = redact_credential_data(metadata) if metadata else {}

        audit_record = {
            "event_type": event_type.value,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "integration_id": self.integration_id,
            "display_name": display_name,
            **safe_metadata,
        }

        self.logger.info(
            f"Credential audit: {event_type.value}",
            extra=audit_record
        )

    def log_error(self, error: str, error_type: Optional[str] = None) -> None:
        """Log a credential error. The message is redacted."""
        self.log(
            event_type=AuditEventType.CREDENTIAL_ERROR,
            metadata={"error": redact_credential_value(error), "error_type": error_type},
        )


class CredentialLoggingFilter(logging.Filter):
    """
    Logging filter that redacts credential secrets from log records.

    Usage:
        handler.addFilter(CredentialLoggingFilter())
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = redact_credential_value(record.msg)

        if record.args:
            if isinstance(record.args, dict):
                record.args = redact_credential_data(record.args)
            elif isinstance(record.args, tuple):
                record.args = tuple(
                    redact_credential_value(arg) if isinstance(arg, str) else arg
                    for arg in record.args
                )

        for key in list(record.__dict__.keys()):
            if key in _LOG_RECORD_ATTRS:
                continue
            if is_credential_secret_key(key):
                setattr(record, key, REDACTED_VALUE)
            elif isinstance(getattr(record, key), str):
                setattr(record, key, redact_credential_value(getattr(record, key)))

        return True


# Standard LogRecord attributes, never rewritten
_LOG_RECORD_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__.keys()
) | {"message", "asctime"}


# Logger-level filters do not reach child loggers, so every module logger
# in the package is listed by its own name.
CREDENTIAL_LOGGERS = (
    "wa_gateway",
    "wa_gateway.main",
    "wa_gateway.api.dependencies",
    "wa_gateway.api.routes.admin",
    "wa_gateway.api.routes.health",
    "wa_gateway.api.routes.messages",
    "wa_gateway.api.routes.webhooks_whatsapp",
    "wa_gateway.credentials.audit",
    "wa_gateway.credentials.keys",
    "wa_gateway.credentials.redaction",
    "wa_gateway.credentials.store",
    "wa_gateway.credentials.webhook",
    "wa_gateway.integrations.whatsapp.client",
    "wa_gateway.platform.errors",
    "wa_gateway.utils.encryption",
)


def setup_credential_logging() -> None:
    """
    Configure credential-safe logging.

    Call this during application startup so every gateway logger has the
    redaction filter applied.
    """
    redaction_filter = CredentialLoggingFilter()

    for logger_name in CREDENTIAL_LOGGERS:
        log = logging.getLogger(logger_name)
        if not any(isinstance(f, CredentialLoggingFilter) for f in log.filters):
            log.addFilter(redaction_filter)

    logger.info("Credential logging configured with redaction filter")

"""
Webhook verification helpers.

Handles the two checks the Graph API webhook contract requires:
- GET subscription handshake: hub.mode == "subscribe" and hub.verify_token
  matches the integration's verify token, then echo hub.challenge
- POST event delivery: X-Hub-Signature-256 HMAC over the raw body, enforced
  when an app secret is configured

Verify token resolution order:
1. webhook_verify_token stored with the integration's credentials
2. DEFAULT_VERIFY_TOKEN, only when the integration has no stored record or
   its record has no verify token

A stored record that fails decryption never falls back to the default.
"""

import hashlib
import hmac
import logging
from typing import Any, Dict, Optional

from wa_gateway.credentials.store import CredentialStore
from wa_gateway.platform.errors import NotFoundError

logger = logging.getLogger(__name__)

SIGNATURE_PREFIX = "sha256="


def resolve_verify_token(
    store: CredentialStore,
    integration_id: str,
    default_verify_token: Optional[str] = None,
) -> Optional[str]:
    """
    Return the token a subscription handshake must present, or None.

    Raises:
        DecryptionError: If the stored credentials are corrupt
        StoreUnavailableError: If the store cannot be reached
    """
    try:
        creds = store.get_credentials(integration_id)
    except NotFoundError:
        creds = None

    if creds is not None and creds.webhook_verify_token:
        return creds.webhook_verify_token

    if default_verify_token:
        logger.info(
            "Using default webhook verify token",
            extra={"integration_id": integration_id, "has_credentials": creds is not None},
        )
        return default_verify_token

    return None


def verify_subscription(mode: Optional[str], token: Optional[str], expected: Optional[str]) -> bool:
    """True if the handshake is a subscribe request with the expected token."""
    if mode != "subscribe" or not token or not expected:
        return False
    return hmac.compare_digest(token.encode("utf-8"), expected.encode("utf-8"))


def verify_signature(body: bytes, signature_header: Optional[str], app_secret: str) -> bool:
    """
    Verify an X-Hub-Signature-256 header.

    Args:
        body: Raw request body
        signature_header: Header value, "sha256=<hex digest>"
        app_secret: Meta app secret

    Returns:
        True if the signature matches
    """
    if not signature_header or not signature_header.startswith(SIGNATURE_PREFIX):
        return False

    expected = hmac.new(
        app_secret.encode("utf-8"),
        body,
        hashlib.sha256,
    ).hexdigest()

    return hmac.compare_digest(expected, signature_header[len(SIGNATURE_PREFIX):].lower())


def summarize_event(payload: Any) -> Dict[str, Any]:
    """
    Extract loggable fields from the first change of a webhook delivery.

    Message bodies are not included.
    """
    summary: Dict[str, Any] = {"message": None, "status": None}
    if not isinstance(payload, dict):
        return summary

    try:
        value = payload["entry"][0]["changes"][0]["value"]
    except (KeyError, IndexError, TypeError):
        return summary
    if not isinstance(value, dict):
        return summary

    messages = value.get("messages") or []
    if messages and isinstance(messages[0], dict):
        m = messages[0]
        summary["message"] = {"from": m.get("from"), "type": m.get("type"), "id": m.get("id")}

    statuses = value.get("statuses") or []
    if statuses and isinstance(statuses[0], dict):
        s = statuses[0]
        summary["status"] = {"id": s.get("id"), "status": s.get("status"), "timestamp": s.get("timestamp")}

    return summary

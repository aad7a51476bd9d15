"""
FastAPI dependencies shared by the gateway routes.

Process-wide objects (settings, credential store, WhatsApp client) are built
once in create_app() and read from app.state here.
"""

import hmac
import logging
from typing import Optional

from fastapi import Header, Request

from wa_gateway.config.settings import Settings
from wa_gateway.credentials.store import CredentialStore
from wa_gateway.integrations.whatsapp.client import WhatsAppClient
from wa_gateway.platform.errors import AuthenticationError, ValidationError

logger = logging.getLogger(__name__)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_credential_store(request: Request) -> CredentialStore:
    return request.app.state.credential_store


def get_whatsapp_client(request: Request) -> WhatsAppClient:
    return request.app.state.whatsapp_client


async def require_api_key(
    request: Request,
    x_api_key: Optional[str] = Header(None, alias="X-API-Key"),
) -> None:
    """
    Enforce the shared API key on admin and messaging routes.

    Raises:
        ValidationError: If the header is missing (400)
        AuthenticationError: If the key does not match, or no key is configured (401)
    """
    if not x_api_key:
        raise ValidationError("Missing X-API-Key header")

    expected = request.app.state.settings.api_key
    if not expected:
        logger.warning("API_KEY not configured; rejecting request", extra={"path": request.url.path})
        raise AuthenticationError()

    if not hmac.compare_digest(x_api_key.encode("utf-8"), expected.encode("utf-8")):
        logger.warning("Invalid API key", extra={"path": request.url.path})
        raise AuthenticationError()

"""
Application entry point.

Builds every process-wide object once (settings, master key, encryptor,
Redis client, credential store, WhatsApp client) and fails fast with
ConfigurationError if the master key is missing or malformed, so a
misconfigured process never serves traffic.

Run with:
    uvicorn wa_gateway.main:create_app --factory
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from wa_gateway.api.routes import admin, health, messages, webhooks_whatsapp
from wa_gateway.config.settings import Settings, load_settings
from wa_gateway.credentials.keys import load_master_key
from wa_gateway.credentials.redaction import setup_credential_logging
from wa_gateway.credentials.store import (
    CredentialStore,
    KeyValueStore,
    create_redis_client,
)
from wa_gateway.integrations.whatsapp.client import WhatsAppClient
from wa_gateway.platform.errors import ErrorHandlerMiddleware
from wa_gateway.utils.encryption import CredentialEncryptor

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    setup_credential_logging()


def create_app(
    settings: Optional[Settings] = None,
    kv: Optional[KeyValueStore] = None,
    whatsapp_client: Optional[WhatsAppClient] = None,
) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        settings: Configuration (read from the environment if omitted)
        kv: Key-value store (Redis from REDIS_URL if omitted)
        whatsapp_client: Graph API client (built from settings if omitted)

    Raises:
        ConfigurationError: If the master key is invalid
    """
    settings = settings or load_settings()
    configure_logging(settings.log_level)

    encryptor = CredentialEncryptor(load_master_key(settings))

    redis_client = None
    if kv is None:
        redis_client = create_redis_client(settings)
        kv = redis_client
    store = CredentialStore(kv, encryptor)

    if whatsapp_client is None:
        whatsapp_client = WhatsAppClient(
            store,
            base_url=settings.graph_url,
            timeout=settings.upstream_timeout_seconds,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await whatsapp_client.close()
        if redis_client is not None:
            redis_client.close()

    app = FastAPI(title="WhatsApp Credential Gateway", lifespan=lifespan)
    app.state.settings = settings
    app.state.credential_store = store
    app.state.whatsapp_client = whatsapp_client
    app.state.redis_client = redis_client

    app.add_middleware(ErrorHandlerMiddleware)

    app.include_router(health.router)
    app.include_router(admin.router)
    app.include_router(messages.router)
    app.include_router(webhooks_whatsapp.router)

    logger.info("Gateway started", extra={"graph_url": settings.graph_url})
    return app

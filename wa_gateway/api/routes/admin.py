"""
Admin routes for managing integration credentials.

SECURITY:
- Require X-API-Key
- Responses never include tokens (redacted metadata only)
"""

import logging

from fastapi import APIRouter, Depends

from wa_gateway.api.dependencies import (
    get_credential_store,
    get_whatsapp_client,
    require_api_key,
)
from wa_gateway.api.schemas import CredentialsMetadata, CredentialsRequest, OkResponse
from wa_gateway.credentials.store import CredentialStore
from wa_gateway.integrations.whatsapp.client import WhatsAppClient

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/admin/integrations",
    tags=["admin"],
    dependencies=[Depends(require_api_key)],
)


@router.post("/{integration_id}/credentials", response_model=OkResponse)
def save_credentials(
    integration_id: str,
    body: CredentialsRequest,
    store: CredentialStore = Depends(get_credential_store),
):
    """Store (or replace) the WhatsApp credentials of an integration."""
    store.save_credentials(integration_id, body.to_credentials())
    return OkResponse()


@router.get("/{integration_id}/credentials", response_model=CredentialsMetadata)
def get_credentials_metadata(
    integration_id: str,
    store: CredentialStore = Depends(get_credential_store),
):
    """Return stored credentials with secrets redacted."""
    return store.get_credentials(integration_id).redacted()


@router.post("/{integration_id}/subscribe")
async def subscribe(
    integration_id: str,
    client: WhatsAppClient = Depends(get_whatsapp_client),
):
    """Subscribe the app to the integration's webhook events."""
    return await client.subscribe_app(integration_id)

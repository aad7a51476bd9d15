"""Messaging routes forwarded to the Graph API."""

from fastapi import APIRouter, Depends

from wa_gateway.api.dependencies import get_whatsapp_client, require_api_key
from wa_gateway.api.schemas import TextMessageRequest
from wa_gateway.integrations.whatsapp.client import WhatsAppClient

router = APIRouter(
    prefix="/api/integrations",
    tags=["messaging"],
    dependencies=[Depends(require_api_key)],
)


@router.post("/{integration_id}/messages/text")
async def send_text(
    integration_id: str,
    body: TextMessageRequest,
    client: WhatsAppClient = Depends(get_whatsapp_client),
):
    return await client.send_text_message(
        integration_id,
        to=body.to,
        text=body.text,
        preview_url=body.previewUrl,
    )


@router.get("/{integration_id}/phone-numbers")
async def phone_numbers(
    integration_id: str,
    client: WhatsAppClient = Depends(get_whatsapp_client),
):
    return await client.get_phone_numbers(integration_id)


@router.get("/{integration_id}/business-profile")
async def business_profile(
    integration_id: str,
    client: WhatsAppClient = Depends(get_whatsapp_client),
):
    return await client.get_business_profile(integration_id)

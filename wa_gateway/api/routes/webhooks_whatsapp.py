"""
WhatsApp webhook handlers.

SECURITY:
- No API key (calls come from Meta, not users)
- Subscription handshake compares verify tokens in constant time
- Event deliveries are HMAC-verified when WHATSAPP_APP_SECRET is set
"""

import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import PlainTextResponse, Response

from wa_gateway.api.dependencies import get_credential_store, get_settings
from wa_gateway.config.settings import Settings
from wa_gateway.credentials.store import CredentialStore
from wa_gateway.credentials.webhook import (
    resolve_verify_token,
    summarize_event,
    verify_signature,
    verify_subscription,
)
from wa_gateway.platform.errors import AppError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhook/whatsapp", tags=["webhooks"])


@router.get("/{integration_id}")
def verify_webhook(
    integration_id: str,
    request: Request,
    store: CredentialStore = Depends(get_credential_store),
    settings: Settings = Depends(get_settings),
):
    """
    Answer Meta's subscription handshake.

    Echoes hub.challenge when hub.mode is "subscribe" and hub.verify_token
    matches; 403 otherwise, including when credentials cannot be read.
    """
    params = request.query_params
    try:
        expected = resolve_verify_token(store, integration_id, settings.default_verify_token)
    except AppError as e:
        logger.warning("Webhook verification could not resolve token", extra={
            "integration_id": integration_id,
            "error_code": e.code,
        })
        return Response(status_code=status.HTTP_403_FORBIDDEN)

    if verify_subscription(params.get("hub.mode"), params.get("hub.verify_token"), expected):
        logger.info("Webhook subscription verified", extra={"integration_id": integration_id})
        return PlainTextResponse(params.get("hub.challenge") or "")

    logger.warning("Webhook subscription rejected", extra={"integration_id": integration_id})
    return Response(status_code=status.HTTP_403_FORBIDDEN)


@router.post("/{integration_id}")
async def receive_event(
    integration_id: str,
    request: Request,
    settings: Settings = Depends(get_settings),
):
    """
    Receive message and status events.

    Returns 200 for every authentic delivery so Meta does not retry.
    """
    body = await request.body()

    if settings.app_secret and not verify_signature(
        body, request.headers.get("X-Hub-Signature-256"), settings.app_secret
    ):
        logger.warning("Invalid webhook signature", extra={
            "integration_id": integration_id,
            "path": request.url.path,
        })
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid webhook signature"
        )

    try:
        payload = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        logger.error("Invalid webhook JSON payload", extra={"integration_id": integration_id})
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid JSON payload"
        )

    summary = summarize_event(payload)
    if summary["message"]:
        logger.info("Incoming message", extra={
            "integration_id": integration_id,
            "sender": summary["message"]["from"],
            "message_type": summary["message"]["type"],
            "message_id": summary["message"]["id"],
        })
    if summary["status"]:
        logger.info("Message status", extra={
            "integration_id": integration_id,
            "message_id": summary["status"]["id"],
            "delivery_status": summary["status"]["status"],
            "status_timestamp": summary["status"]["timestamp"],
        })

    return {"status": "received"}

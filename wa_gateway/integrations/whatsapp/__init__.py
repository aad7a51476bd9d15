"""WhatsApp Cloud API integration."""

from wa_gateway.integrations.whatsapp.client import WhatsAppClient

__all__ = ["WhatsAppClient"]

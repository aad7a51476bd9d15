"""
WhatsApp Cloud API client that forwards calls with per-integration credentials.

Every call reads the integration's credentials exactly once, on a worker
thread so a slow store never stalls the event loop. A rotated token or API
version takes effect on the next call, and the path ids and the bearer token
of one call always come from the same record.

SECURITY:
- The bearer token is attached per request and never logged
- Non-2xx responses raise UpstreamError with the status and body
"""

import logging
from typing import Any, Dict, Optional

import anyio
import httpx

from wa_gateway.config.settings import DEFAULT_GRAPH_URL
from wa_gateway.credentials.models import IntegrationCredentials
from wa_gateway.credentials.store import CredentialStore
from wa_gateway.platform.errors import UpstreamError

logger = logging.getLogger(__name__)

ALLOWED_METHODS = ("GET", "POST", "DELETE")
MAX_ERROR_BODY = 2000


class WhatsAppClient:
    """
    Async client for the Graph API on behalf of stored integrations.

    Handles:
    - Credential lookup before each call
    - Versioned URL construction
    - Mapping upstream failures to UpstreamError
    """

    def __init__(
        self,
        store: CredentialStore,
        base_url: str = DEFAULT_GRAPH_URL,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            store: Credential store used to resolve tokens
            base_url: Graph API base URL
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests)
        """
        self._store = store
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def close(self):
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def request(
        self,
        integration_id: str,
        path: str,
        method: str = "GET",
        body: Optional[Any] = None,
        extra_headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        """
        Forward a call to the Graph API.

        Args:
            integration_id: Integration whose credentials authorize the call
            path: API path after the version, e.g. "/12345/messages"
            method: GET, POST or DELETE
            body: Optional JSON body
            extra_headers: Additional request headers

        Returns:
            Parsed JSON response ({} for an empty body)

        Raises:
            NotFoundError: If the integration has no credentials
            DecryptionError: If stored credentials are corrupt
            UpstreamError: If the call fails or returns non-2xx
        """
        method = method.upper()
        if method not in ALLOWED_METHODS:
            raise ValueError(f"Unsupported method: {method}")

        creds = await self._load_credentials(integration_id)
        return await self._send(integration_id, creds, path, method, body, extra_headers)

    async def _load_credentials(self, integration_id: str) -> IntegrationCredentials:
        # Store calls block on redis-py sockets; keep them off the event loop
        return await anyio.to_thread.run_sync(self._store.get_credentials, integration_id)

    async def _send(
        self,
        integration_id: str,
        creds: IntegrationCredentials,
        path: str,
        method: str = "GET",
        body: Optional[Any] = None,
        extra_headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        if not path.startswith("/"):
            path = f"/{path}"
        url = f"{self.base_url}/{creds.api_version}{path}"

        headers = {
            "Content-Type": "application/json",
            **(extra_headers or {}),
            "Authorization": f"Bearer {creds.access_token}",
        }

        try:
            response = await self._client.request(
                method,
                url,
                headers=headers,
                json=body,
            )
        except httpx.RequestError as e:
            logger.error("Graph API request error", extra={
                "integration_id": integration_id,
                "method": method,
                "path": path,
                "error_type": type(e).__name__,
            })
            raise UpstreamError(f"{method} {path} failed: {type(e).__name__}") from e

        if not response.is_success:
            logger.error("Graph API HTTP error", extra={
                "integration_id": integration_id,
                "method": method,
                "path": path,
                "status_code": response.status_code,
            })
            raise UpstreamError(
                f"{method} {path} -> {response.status_code}",
                upstream_status=response.status_code,
                body=response.text[:MAX_ERROR_BODY],
            )

        logger.info("Graph API call succeeded", extra={
            "integration_id": integration_id,
            "method": method,
            "path": path,
            "status_code": response.status_code,
        })

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            raise UpstreamError(
                f"{method} {path} returned a non-JSON body",
                upstream_status=response.status_code,
                body=response.text[:MAX_ERROR_BODY],
            )

    async def subscribe_app(self, integration_id: str) -> Any:
        """Subscribe the app to the integration's business account webhooks."""
        creds = await self._load_credentials(integration_id)
        return await self._send(integration_id, creds, f"/{creds.account_id}/subscribed_apps", "POST")

    async def send_text_message(
        self,
        integration_id: str,
        to: str,
        text: str,
        preview_url: bool = False,
    ) -> Any:
        """Send a plain text message from the integration's phone number."""
        creds = await self._load_credentials(integration_id)
        payload = {
            "messaging_product": "whatsapp",
            "to": to,
            "type": "text",
            "text": {"body": text, "preview_url": preview_url},
        }
        return await self._send(integration_id, creds, f"/{creds.sender_id}/messages", "POST", payload)

    async def get_phone_numbers(self, integration_id: str) -> Any:
        """List phone numbers registered on the business account."""
        creds = await self._load_credentials(integration_id)
        return await self._send(integration_id, creds, f"/{creds.account_id}/phone_numbers")

    async def get_business_profile(self, integration_id: str) -> Any:
        """Fetch the WhatsApp business profile of the integration's phone number."""
        creds = await self._load_credentials(integration_id)
        return await self._send(
            integration_id,
            creds,
            f"/{creds.sender_id}/whatsapp_business_profile"
            "?fields=about,address,description,email,profile_picture_url,websites,vertical",
        )

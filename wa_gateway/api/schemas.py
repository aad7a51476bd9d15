"""
Request and response schemas for the gateway API.

Field names follow the camelCase JSON used by existing clients.
"""

from typing import Optional

from pydantic import BaseModel, Field

from wa_gateway.credentials.models import DEFAULT_API_VERSION, IntegrationCredentials


class CredentialsRequest(BaseModel):
    """
    Body of POST /admin/integrations/{integration_id}/credentials.

    Required fields are checked by IntegrationCredentials.validate() so a
    missing field is a 400 VALIDATION_ERROR rather than a schema error.
    """
    version: str = DEFAULT_API_VERSION
    wabaId: Optional[str] = None
    phoneNumberId: Optional[str] = None
    token: Optional[str] = Field(default=None, repr=False)
    verifyToken: Optional[str] = Field(default=None, repr=False)
    displayName: Optional[str] = None

    def to_credentials(self) -> IntegrationCredentials:
        return IntegrationCredentials(
            api_version=self.version or DEFAULT_API_VERSION,
            account_id=self.wabaId or "",
            sender_id=self.phoneNumberId or "",
            access_token=self.token or "",
            webhook_verify_token=self.verifyToken,
            display_name=self.displayName,
        )


class CredentialsMetadata(BaseModel):
    """Redacted view of stored credentials."""
    apiVersion: str
    accountId: str
    senderId: str
    accessToken: str
    webhookVerifyToken: Optional[str] = None
    displayName: Optional[str] = None


class TextMessageRequest(BaseModel):
    to: str = Field(min_length=1)
    text: str = Field(min_length=1, max_length=4096)
    previewUrl: bool = False


class OkResponse(BaseModel):
    ok: bool = True

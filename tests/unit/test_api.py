"""
API tests for the gateway routes.

CRITICAL: These tests verify that:
1. Errors map to consistent shapes and status codes
2. Tokens never appear in responses
3. A bad master key prevents the app from starting
"""

import hashlib
import hmac
import json
from unittest.mock import Mock

import httpx
import pytest
import redis
from fastapi.testclient import TestClient

from wa_gateway.config.settings import Settings
from wa_gateway.integrations.whatsapp.client import WhatsAppClient
from wa_gateway.main import create_app
from wa_gateway.platform.errors import ConfigurationError

API_KEY = "test-api-key"
HEADERS = {"X-API-Key": API_KEY}
CREDS_BODY = {
    "wabaId": "A1",
    "phoneNumberId": "P1",
    "token": "secret-token",
    "verifyToken": "verify-me",
    "displayName": "Support line",
}


def _settings(**overrides) -> Settings:
    values = {
        "master_key_material": "00" * 32,
        "api_key": API_KEY,
        "default_verify_token": None,
        "app_secret": None,
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def upstream():
    """Records Graph API requests; returns 200 unless status is changed."""
    state = {"requests": [], "status": 200, "body": {"messages": [{"id": "wamid.1"}]}}

    def handler(request: httpx.Request) -> httpx.Response:
        state["requests"].append(request)
        return httpx.Response(state["status"], json=state["body"])

    state["transport"] = httpx.MockTransport(handler)
    return state


@pytest.fixture
def app(kv, upstream):
    app = create_app(settings=_settings(), kv=kv)
    app.state.whatsapp_client = WhatsAppClient(
        app.state.credential_store, transport=upstream["transport"]
    )
    return app


@pytest.fixture
def client(app):
    return TestClient(app)


# ============================================================================
# STARTUP
# ============================================================================

class TestStartup:

    @pytest.mark.parametrize("material", [None, "00" * 31, "00" * 33, "not-a-key"])
    def test_bad_master_key_prevents_startup(self, kv, material):
        with pytest.raises(ConfigurationError):
            create_app(settings=_settings(master_key_material=material), kv=kv)

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}
        assert "X-Correlation-ID" in response.headers

    def test_readiness_without_redis_client(self, client):
        response = client.get("/health/readiness")
        assert response.status_code == 200
        assert response.json()["checks"]["store"] == "not_checked"

    def test_readiness_ok(self, app, client):
        app.state.redis_client = Mock()
        response = client.get("/health/readiness")
        assert response.status_code == 200
        assert response.json() == {"status": "ready", "checks": {"store": "ok"}}

    def test_readiness_store_down(self, app, client):
        app.state.redis_client = Mock()
        app.state.redis_client.ping.side_effect = redis.ConnectionError("down")
        response = client.get("/health/readiness")
        assert response.status_code == 503
        assert response.json()["status"] == "not_ready"


# ============================================================================
# API KEY
# ============================================================================

class TestApiKey:

    def test_missing_api_key_is_400(self, client):
        response = client.post("/admin/integrations/acme/credentials", json=CREDS_BODY)
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_wrong_api_key_is_401(self, client, kv):
        response = client.post(
            "/admin/integrations/acme/credentials",
            json=CREDS_BODY,
            headers={"X-API-Key": "wrong"},
        )
        assert response.status_code == 401
        assert response.json()["error"]["code"] == "AUTHENTICATION_ERROR"
        assert kv.data == {}

    def test_unconfigured_api_key_rejects_everything(self, kv):
        client = TestClient(create_app(settings=_settings(api_key=None), kv=kv))
        response = client.post("/admin/integrations/acme/credentials", json=CREDS_BODY, headers=HEADERS)
        assert response.status_code == 401


# ============================================================================
# CREDENTIALS
# ============================================================================

class TestCredentialsRoutes:

    def test_save_credentials(self, client, kv, app):
        response = client.post("/admin/integrations/acme/credentials", json=CREDS_BODY, headers=HEADERS)

        assert response.status_code == 200
        assert response.json() == {"ok": True}
        assert "wa:integration:acme:creds" in kv.data

        creds = app.state.credential_store.get_credentials("acme")
        assert creds.api_version == "v20.0"
        assert creds.access_token == "secret-token"

    @pytest.mark.parametrize("field", ["wabaId", "phoneNumberId", "token"])
    def test_missing_field_is_400_without_write(self, client, kv, field):
        body = {k: v for k, v in CREDS_BODY.items() if k != field}
        response = client.post("/admin/integrations/acme/credentials", json=body, headers=HEADERS)

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"
        assert kv.data == {}

    def test_get_credentials_is_redacted(self, client):
        client.post("/admin/integrations/acme/credentials", json=CREDS_BODY, headers=HEADERS)

        response = client.get("/admin/integrations/acme/credentials", headers=HEADERS)

        assert response.status_code == 200
        data = response.json()
        assert data["accountId"] == "A1"
        assert data["accessToken"] == "[REDACTED]"
        assert "secret-token" not in response.text
        assert "verify-me" not in response.text

    def test_get_missing_credentials_is_404(self, client):
        response = client.get("/admin/integrations/nope/credentials", headers=HEADERS)
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"

    def test_corrupt_credentials_are_500_and_distinct(self, client, kv):
        kv.data["wa:integration:acme:creds"] = "garbage"

        response = client.get("/admin/integrations/acme/credentials", headers=HEADERS)

        assert response.status_code == 500
        assert response.json()["error"]["code"] == "CREDENTIALS_CORRUPT"


# ============================================================================
# FORWARDING
# ============================================================================

class TestForwardingRoutes:

    def test_send_text_forwards_with_token(self, client, upstream):
        client.post("/admin/integrations/acme/credentials", json=CREDS_BODY, headers=HEADERS)

        response = client.post(
            "/api/integrations/acme/messages/text",
            json={"to": "15550001", "text": "hello"},
            headers=HEADERS,
        )

        assert response.status_code == 200
        assert response.json() == {"messages": [{"id": "wamid.1"}]}
        request = upstream["requests"][0]
        assert request.url.path == "/v20.0/P1/messages"
        assert request.headers["Authorization"] == "Bearer secret-token"

    def test_upstream_failure_is_502(self, client, upstream):
        client.post("/admin/integrations/acme/credentials", json=CREDS_BODY, headers=HEADERS)
        upstream["status"] = 401
        upstream["body"] = {"error": {"message": "Invalid OAuth access token"}}

        response = client.post("/admin/integrations/acme/subscribe", headers=HEADERS)

        assert response.status_code == 502
        error = response.json()["error"]
        assert error["code"] == "UPSTREAM_ERROR"
        assert error["details"]["upstream_status"] == 401
        assert "secret-token" not in response.text

    def test_forwarding_without_credentials_is_404(self, client, upstream):
        response = client.get("/api/integrations/nope/phone-numbers", headers=HEADERS)

        assert response.status_code == 404
        assert upstream["requests"] == []


# ============================================================================
# WEBHOOKS
# ============================================================================

class TestWebhookRoutes:

    def _verify(self, client, integration_id, token, mode="subscribe"):
        return client.get(
            f"/webhook/whatsapp/{integration_id}",
            params={"hub.mode": mode, "hub.verify_token": token, "hub.challenge": "12345"},
        )

    def test_challenge_echoed_with_stored_token(self, client):
        client.post("/admin/integrations/acme/credentials", json=CREDS_BODY, headers=HEADERS)

        response = self._verify(client, "acme", "verify-me")

        assert response.status_code == 200
        assert response.text == "12345"

    def test_wrong_token_is_403(self, client):
        client.post("/admin/integrations/acme/credentials", json=CREDS_BODY, headers=HEADERS)
        assert self._verify(client, "acme", "nope").status_code == 403

    def test_wrong_mode_is_403(self, client):
        client.post("/admin/integrations/acme/credentials", json=CREDS_BODY, headers=HEADERS)
        assert self._verify(client, "acme", "verify-me", mode="unsubscribe").status_code == 403

    def test_default_token_for_unknown_integration(self, kv):
        client = TestClient(create_app(settings=_settings(default_verify_token="shared"), kv=kv))
        assert self._verify(client, "unknown", "shared").status_code == 200

    def test_no_token_configured_is_403(self, client):
        assert self._verify(client, "unknown", "anything").status_code == 403

    def test_corrupt_credentials_fail_closed(self, kv):
        kv.data["wa:integration:acme:creds"] = "garbage"
        client = TestClient(create_app(settings=_settings(default_verify_token="shared"), kv=kv))

        assert self._verify(client, "acme", "shared").status_code == 403

    def test_event_delivery_acknowledged(self, client):
        payload = {"entry": [{"changes": [{"value": {"messages": [{"from": "1", "type": "text", "id": "m"}]}}]}]}
        response = client.post("/webhook/whatsapp/acme", json=payload)

        assert response.status_code == 200
        assert response.json() == {"status": "received"}

    def test_signed_delivery_accepted(self, kv):
        client = TestClient(create_app(settings=_settings(app_secret="app-secret"), kv=kv))
        body = json.dumps({"entry": []}).encode()
        signature = "sha256=" + hmac.new(b"app-secret", body, hashlib.sha256).hexdigest()

        response = client.post(
            "/webhook/whatsapp/acme",
            content=body,
            headers={"X-Hub-Signature-256": signature, "Content-Type": "application/json"},
        )

        assert response.status_code == 200

    def test_bad_signature_rejected(self, kv):
        client = TestClient(create_app(settings=_settings(app_secret="app-secret"), kv=kv))

        response = client.post(
            "/webhook/whatsapp/acme",
            content=b'{"entry": []}',
            headers={"X-Hub-Signature-256": "sha256=" + "0" * 64},
        )

        assert response.status_code == 401

    def test_invalid_json_is_400(self, client):
        response = client.post("/webhook/whatsapp/acme", content=b"not json")
        assert response.status_code == 400

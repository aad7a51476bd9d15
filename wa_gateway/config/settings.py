"""
Process configuration loaded from environment variables.

Configuration (environment variables):
- MASTER_KEY_HEX:           32-byte master key, 64 hex chars or base64 (required)
- MASTER_KEY_ENCODING:      "hex" or "base64" to force a decoding (optional)
- REDIS_URL:                Redis connection URL (default: "redis://redis:6379/0")
- REDIS_TIMEOUT_SECONDS:    Socket timeout for store calls (default: "5")
- API_KEY:                  Value expected in the X-API-Key header
- DEFAULT_VERIFY_TOKEN:     Shared webhook verify token fallback (optional)
- WHATSAPP_APP_SECRET:      App secret for X-Hub-Signature-256 checks (optional)
- WHATSAPP_GRAPH_URL:       Graph API base URL (default: "https://graph.facebook.com")
- UPSTREAM_TIMEOUT_SECONDS: Timeout for Graph API calls (default: "30")
- LOG_LEVEL:                Root log level (default: "INFO")

SECURITY: Settings never render secret values in repr().
"""

import os
from dataclasses import dataclass, field
from typing import Optional

DEFAULT_REDIS_URL = "redis://redis:6379/0"
DEFAULT_GRAPH_URL = "https://graph.facebook.com"


def _optional(name: str) -> Optional[str]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value.strip()


@dataclass(frozen=True)
class Settings:
    """Immutable snapshot of process configuration."""
    master_key_material: Optional[str] = field(default=None, repr=False)
    master_key_encoding: Optional[str] = None
    redis_url: str = DEFAULT_REDIS_URL
    redis_timeout_seconds: float = 5.0
    api_key: Optional[str] = field(default=None, repr=False)
    default_verify_token: Optional[str] = field(default=None, repr=False)
    app_secret: Optional[str] = field(default=None, repr=False)
    graph_url: str = DEFAULT_GRAPH_URL
    upstream_timeout_seconds: float = 30.0
    log_level: str = "INFO"


def load_settings() -> Settings:
    """
    Build Settings from the current environment.

    Only parses values; master key validation happens in
    ``wa_gateway.credentials.keys.load_master_key`` so that the failure is a
    ConfigurationError raised at startup.
    """
    encoding = _optional("MASTER_KEY_ENCODING")
    return Settings(
        master_key_material=_optional("MASTER_KEY_HEX"),
        master_key_encoding=encoding.lower() if encoding else None,
        redis_url=os.getenv("REDIS_URL", DEFAULT_REDIS_URL),
        redis_timeout_seconds=float(os.getenv("REDIS_TIMEOUT_SECONDS", "5")),
        api_key=_optional("API_KEY"),
        default_verify_token=_optional("DEFAULT_VERIFY_TOKEN"),
        app_secret=_optional("WHATSAPP_APP_SECRET"),
        graph_url=os.getenv("WHATSAPP_GRAPH_URL", DEFAULT_GRAPH_URL).rstrip("/"),
        upstream_timeout_seconds=float(os.getenv("UPSTREAM_TIMEOUT_SECONDS", "30")),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )

"""Configuration module for the gateway."""

from wa_gateway.config.settings import (
    DEFAULT_GRAPH_URL,
    DEFAULT_REDIS_URL,
    Settings,
    load_settings,
)

__all__ = [
    "DEFAULT_GRAPH_URL",
    "DEFAULT_REDIS_URL",
    "Settings",
    "load_settings",
]

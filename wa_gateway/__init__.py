"""Multi-tenant credential store and request forwarder for the WhatsApp Cloud API."""

__version__ = "0.1.0"

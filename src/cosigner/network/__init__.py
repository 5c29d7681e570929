"""Transport to the coordination service."""

from .http_client import HTTPTransport, Transport

__all__ = ["HTTPTransport", "Transport"]

"""HTTP access to the completion gateway."""

from .client import EVENT_STREAM, GatewayClient, ResponseByteStream

__all__ = ["EVENT_STREAM", "GatewayClient", "ResponseByteStream"]

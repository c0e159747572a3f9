"""Service layer utilities consolidating reusable relay logic."""

from .network_manager import network_manager, get_http_client
from .relay_service import ChatRelayService
from .stream_reframer import StreamReframer

__all__ = [
    "network_manager",
    "get_http_client",
    "ChatRelayService",
    "StreamReframer",
]

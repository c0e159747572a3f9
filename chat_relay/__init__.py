"""
chat_relay package - Core application modules
"""

from .config import settings, get_settings, Settings
from .helpers import debug_log, info_log, error_log, configure_structlog
from .exceptions import RelayError, ClientInputError, UpstreamHTTPError
from .schemas import ChatRequest, UpstreamRequest, ChatReply, ErrorBody, Message

__all__ = [
    "settings",
    "get_settings",
    "Settings",
    "debug_log",
    "info_log",
    "error_log",
    "configure_structlog",
    "RelayError",
    "ClientInputError",
    "UpstreamHTTPError",
    "ChatRequest",
    "UpstreamRequest",
    "ChatReply",
    "ErrorBody",
    "Message",
]

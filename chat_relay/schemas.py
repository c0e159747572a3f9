"""
Application data models
"""

from typing import Any, List, Optional
from pydantic import BaseModel, ConfigDict, Field


DEFAULT_TEMPERATURE = 0.7


class Message(BaseModel):
    """Chat message model"""
    role: str
    content: str

    model_config = ConfigDict(extra="allow")


class ChatRequest(BaseModel):
    """Inbound /api/chat request.

    Field types are intentionally loose: the relay applies truthiness and
    type checks itself instead of rejecting the request, and forwards the
    caller's messages without re-validating them.
    """
    messages: List[Any]
    model: Optional[Any] = None
    system_prompt: Optional[Any] = Field(default=None, alias="systemPrompt")
    temperature: Optional[Any] = DEFAULT_TEMPERATURE
    stream: Optional[Any] = False

    model_config = ConfigDict(extra="allow")


class UpstreamRequest(BaseModel):
    """Payload sent to <base>/chat/completions"""
    model: Any
    messages: List[Any]
    temperature: float = DEFAULT_TEMPERATURE
    stream: bool = False


class ChatReply(BaseModel):
    """Non-streaming response body"""
    reply: str


class ErrorBody(BaseModel):
    """Error response body"""
    error: str

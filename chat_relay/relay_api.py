"""
Chat relay API endpoint
"""

import uuid
from contextlib import aclosing
from typing import Any, AsyncIterator

import httpx
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, StreamingResponse

from .config import Settings, get_settings
from .exceptions import ClientInputError, UpstreamHTTPError
from .helpers import (
    error_log,
    bind_request_context,
    reset_request_context,
    request_stage_log,
)
from .schemas import ChatReply, ErrorBody
from .services.network_manager import get_http_client
from .services.relay_service import ChatRelayService, compose_upstream_request, parse_chat_request
from .services.stream_reframer import error_events

router = APIRouter()

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}


class RelayStreamingResponse(StreamingResponse):
    """StreamingResponse that always closes its body iterator.

    Starlette leaves the generator suspended (or never started) when the
    caller goes away; closing it here runs its cleanup on that path too.
    """

    async def __call__(self, scope, receive, send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            await self.body_iterator.aclose()


def _error_stream(message: str) -> StreamingResponse:
    """Error frame plus terminal frame, delivered with HTTP 200."""

    async def frames() -> AsyncIterator[str]:
        for event in error_events(message):
            yield event

    return RelayStreamingResponse(frames(), media_type="text/event-stream", headers=SSE_HEADERS)


def _error_json(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorBody(error=message).model_dump())


async def _read_body(request: Request) -> Any:
    try:
        return await request.json()
    except ValueError:
        # 非 JSON 请求体按缺少 messages 处理
        return None


def _wants_stream(body: Any) -> bool:
    return isinstance(body, dict) and bool(body.get("stream"))


@router.post("/api/chat")
async def chat(
    request: Request,
    client: httpx.AsyncClient = Depends(get_http_client),
    settings: Settings = Depends(get_settings),
):
    """Relay a chat request upstream, buffered or as an event stream"""
    body = await _read_body(request)
    stream = _wants_stream(body)
    service = ChatRelayService(settings)

    try:
        chat_request = parse_chat_request(body)
        request_stage_log(
            "received",
            "收到客户端请求",
            model=chat_request.model or settings.OPENAI_MODEL,
            stream=stream,
            message_count=len(chat_request.messages),
        )
        bind_request_context(
            request_id=uuid.uuid4().hex[:12],
            mode="stream" if stream else "non_stream",
        )

        upstream_request = compose_upstream_request(chat_request, settings)

        if not stream:
            response = await service.open_upstream(client, upstream_request)
            reply = await service.read_reply(response)
            request_stage_log("non_stream_ready", "非流式结果已生成", reply_length=len(reply))
            return ChatReply(reply=reply).model_dump()

        async def stream_response():
            try:
                async with aclosing(service.stream_chat(client, upstream_request, request)) as events:
                    async for event in events:
                        yield event
            finally:
                request_stage_log("stream_cleanup", "流式上下文清理")

        request_stage_log("stream_ready", "流式响应已交给 FastAPI", media_type="text/event-stream")
        return RelayStreamingResponse(
            stream_response(),
            media_type="text/event-stream",
            headers=SSE_HEADERS,
        )

    except ClientInputError as exc:
        request_stage_log("rejected", "请求缺少 messages", status_code=exc.status_code)
        return _error_json(exc.status_code, exc.message)
    except UpstreamHTTPError as exc:
        return _error_json(exc.status_code, exc.text)
    except Exception as e:
        message = str(e) or e.__class__.__name__
        error_log("处理请求时发生错误", error=message, error_type=e.__class__.__name__)
        if stream:
            return _error_stream(message)
        return _error_json(500, message)
    finally:
        reset_request_context("request_id", "mode")

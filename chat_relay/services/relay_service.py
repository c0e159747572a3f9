"""Service layer relaying /api/chat requests to the upstream chat completions API."""

from __future__ import annotations

from contextlib import aclosing
from typing import Any, AsyncIterator, Dict, Optional

import httpx
import orjson
from fastapi import Request
from pydantic import ValidationError

from ..config import Settings
from ..exceptions import ClientInputError, UpstreamHTTPError
from ..helpers import debug_log, error_log, perf_timer, request_stage_log
from ..schemas import DEFAULT_TEMPERATURE, ChatRequest, Message, UpstreamRequest
from .stream_reframer import StreamReframer, error_events, extract_message_content


def parse_chat_request(body: Any) -> ChatRequest:
    """Validate the inbound body; only ``messages`` is mandatory."""
    if not isinstance(body, dict) or not isinstance(body.get("messages"), list):
        raise ClientInputError()
    try:
        return ChatRequest.model_validate(body)
    except ValidationError as exc:
        raise ClientInputError() from exc


def resolve_temperature(value: Any) -> float:
    # bool is an int subclass but not a temperature
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value
    return DEFAULT_TEMPERATURE


def compose_upstream_request(chat_request: ChatRequest, settings: Settings) -> UpstreamRequest:
    messages = []
    system_prompt = chat_request.system_prompt
    if isinstance(system_prompt, str) and system_prompt.strip():
        messages.append(Message(role="system", content=system_prompt.strip()).model_dump())
    messages.extend(chat_request.messages)

    return UpstreamRequest(
        model=chat_request.model or settings.OPENAI_MODEL,
        messages=messages,
        temperature=resolve_temperature(chat_request.temperature),
        stream=bool(chat_request.stream),
    )


def build_headers(settings: Settings) -> Dict[str, str]:
    headers = {"Content-Type": "application/json"}
    if settings.OPENAI_API_KEY:
        headers["Authorization"] = f"Bearer {settings.OPENAI_API_KEY}"
    return headers


class ChatRelayService:
    """Upstream dispatch plus the two response modes of /api/chat."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    async def open_upstream(
        self,
        client: httpx.AsyncClient,
        upstream_request: UpstreamRequest,
    ) -> httpx.Response:
        """POST to the upstream and return the response with its body unread.

        Raises UpstreamHTTPError, after reading and closing the body, when the
        upstream status is not 2xx.
        """
        url = self.settings.chat_completions_url
        request_stage_log(
            "upstream_request",
            "向上游发起请求",
            upstream=url,
            model=upstream_request.model,
            stream=upstream_request.stream,
        )
        request = client.build_request(
            "POST",
            url,
            content=orjson.dumps(upstream_request.model_dump()),
            headers=build_headers(self.settings),
        )
        with perf_timer("upstream_ttfb"):
            response = await client.send(request, stream=True)

        if not response.is_success:
            try:
                error_text = (await response.aread()).decode("utf-8", errors="replace")
            finally:
                await response.aclose()
            error_log(
                "上游返回错误",
                status_code=response.status_code,
                error_detail=error_text[:200],
            )
            raise UpstreamHTTPError(response.status_code, error_text)

        request_stage_log("upstream_response", "上游响应成功", status_code=response.status_code)
        return response

    async def read_reply(self, response: httpx.Response) -> str:
        """Buffer a non-streaming completion and return the assistant text."""
        try:
            body = await response.aread()
        finally:
            await response.aclose()
        return extract_message_content(orjson.loads(body))

    async def relay_stream(
        self,
        response: httpx.Response,
        request: Optional[Request] = None,
    ) -> AsyncIterator[str]:
        """Re-frame the upstream event stream into downstream token events.

        Ends on the terminal token, on upstream end-of-stream (no terminal
        frame is synthesized) or when the caller disconnects. The upstream
        response is closed on every path.
        """
        reframer = StreamReframer()
        frames = 0
        try:
            async for chunk in response.aiter_bytes():
                if request is not None and await request.is_disconnected():
                    request_stage_log("stream_disconnected", "客户端已断开，停止流式传输")
                    return
                for event in reframer.feed(chunk):
                    frames += 1
                    yield event
                if reframer.finished:
                    break
            else:
                # flush the decoder; an unterminated last line is dropped
                for event in reframer.feed(b"", final=True):
                    frames += 1
                    yield event
                if not reframer.finished:
                    debug_log("上游未发送 [DONE] 即关闭", pending=len(reframer.pending))
            request_stage_log("stream_finished", "流式响应完成", frames=frames, done=reframer.finished)
        except Exception as exc:
            error_log("流式读取上游失败", error=str(exc))
            for event in error_events(str(exc) or exc.__class__.__name__):
                yield event
        finally:
            await response.aclose()

    async def stream_chat(
        self,
        client: httpx.AsyncClient,
        upstream_request: UpstreamRequest,
        request: Optional[Request] = None,
    ) -> AsyncIterator[str]:
        """Dispatch upstream and relay the event stream from inside the body iterator.

        Nothing is sent upstream until the downstream response starts
        iterating, so a caller gone before that point leaves no open
        upstream response. Upstream and transport errors become an error
        frame followed by the terminal frame.
        """
        try:
            response = await self.open_upstream(client, upstream_request)
        except UpstreamHTTPError as exc:
            for event in error_events(exc.text):
                yield event
            return
        except Exception as exc:
            message = str(exc) or exc.__class__.__name__
            error_log("流式请求上游失败", error=message, error_type=exc.__class__.__name__)
            for event in error_events(message):
                yield event
            return

        try:
            async with aclosing(self.relay_stream(response, request)) as events:
                async for event in events:
                    yield event
        finally:
            await response.aclose()

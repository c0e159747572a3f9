#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
SSE 重组模块 - 将上游 chat.completion.chunk 事件流转换为逐 token 的下游事件

上游按任意边界切分字节流，这里负责：
1. 增量 UTF-8 解码（多字节字符可能跨 chunk）
2. 按换行重组完整行，最后一段不完整的行留到下一个 chunk
3. 提取 choices[0].delta.content 并输出 `data: <text>\n\n`
"""

import codecs
from typing import Any, List, Optional

import orjson


DATA_PREFIX = "data: "
DONE_TOKEN = "[DONE]"
DONE_EVENT = f"data: {DONE_TOKEN}\n\n"


def flatten_newlines(text: str) -> str:
    return text.replace("\n", " ")


def format_event(text: str) -> str:
    """Frame one downstream event; embedded newlines become spaces."""
    return f"{DATA_PREFIX}{flatten_newlines(text)}\n\n"


def error_events(message: str) -> List[str]:
    """Error frame followed by the terminal frame."""
    return [format_event(f"Error: {message}"), DONE_EVENT]


def _first_choice(payload: Any) -> Optional[dict]:
    if not isinstance(payload, dict):
        return None
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    choice = choices[0]
    return choice if isinstance(choice, dict) else None


def extract_delta_content(payload: Any) -> Optional[str]:
    """choices[0].delta.content of a streaming chunk, or None."""
    choice = _first_choice(payload)
    delta = choice.get("delta") if choice else None
    if not isinstance(delta, dict):
        return None
    content = delta.get("content")
    return content if isinstance(content, str) else None


def extract_message_content(payload: Any) -> str:
    """choices[0].message.content of a full completion, or ""."""
    choice = _first_choice(payload)
    message = choice.get("message") if choice else None
    if not isinstance(message, dict):
        return ""
    content = message.get("content")
    return content if isinstance(content, str) else ""


class StreamReframer:
    """Line-reassembly state machine for one upstream event stream.

    ``feed`` takes raw body chunks and returns the downstream frames they
    complete. Once the terminal token is seen ``finished`` is set and any
    later input is ignored.
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self.finished = False

    def feed(self, chunk: bytes, final: bool = False) -> List[str]:
        if self.finished:
            return []

        self._buffer += self._decoder.decode(chunk, final=final)
        lines = self._buffer.split("\n")
        # 最后一段可能是不完整的行
        self._buffer = lines.pop()

        events: List[str] = []
        for line in lines:
            event = self._handle_line(line)
            if event is None:
                continue
            events.append(event)
            if self.finished:
                break
        return events

    def _handle_line(self, line: str) -> Optional[str]:
        trimmed = line.strip()
        if not trimmed or not trimmed.startswith(DATA_PREFIX):
            return None

        payload = trimmed[len(DATA_PREFIX):]
        if payload == DONE_TOKEN:
            self.finished = True
            self._buffer = ""
            return DONE_EVENT

        try:
            parsed = orjson.loads(payload)
        except orjson.JSONDecodeError:
            # malformed upstream line, skip
            return None

        content = extract_delta_content(parsed)
        if not content:
            return None
        return format_event(content)

    @property
    def pending(self) -> str:
        """Text received after the last complete line."""
        return self._buffer

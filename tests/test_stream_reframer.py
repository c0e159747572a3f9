#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
StreamReframer 单元测试：行重组、增量解码、终止符
"""

import pytest

from chat_relay.services.stream_reframer import (
    DONE_EVENT,
    StreamReframer,
    error_events,
    extract_delta_content,
    extract_message_content,
    format_event,
)
from conftest import delta, sse_lines


def feed_all(reframer, *chunks):
    events = []
    for chunk in chunks:
        events.extend(reframer.feed(chunk))
    return events


def test_partial_line_is_held_back():
    reframer = StreamReframer()
    line = sse_lines(delta("A"))

    assert reframer.feed(line[:10]) == []
    assert reframer.pending == line[:10].decode()
    assert reframer.feed(line[10:]) == ["data: A\n\n"]
    assert reframer.pending == ""


def test_multibyte_character_split_across_chunks():
    body = sse_lines(delta("日本語"))
    split = body.index("本".encode("utf-8")) + 2
    with pytest.raises(UnicodeDecodeError):
        body[:split].decode("utf-8")

    events = feed_all(StreamReframer(), body[:split], body[split:])

    assert events == ["data: 日本語\n\n"]


def test_byte_at_a_time():
    body = sse_lines(delta("ça"), delta(" va"), "[DONE]")
    assert "ç".encode("utf-8") in body
    chunks = [body[i:i + 1] for i in range(len(body))]

    events = feed_all(StreamReframer(), *chunks)

    assert events == ["data: ça\n\n", "data:  va\n\n", DONE_EVENT]


def test_done_stops_processing():
    reframer = StreamReframer()
    body = sse_lines(delta("A"), "[DONE]", delta("B"))

    assert reframer.feed(body) == ["data: A\n\n", DONE_EVENT]
    assert reframer.finished
    assert reframer.feed(sse_lines(delta("C"))) == []


def test_non_data_and_blank_lines_are_skipped():
    body = b": keep-alive\n\nevent: message\nid: 1\n" + sse_lines(delta("A"))

    assert StreamReframer().feed(body) == ["data: A\n\n"]


def test_prefix_requires_space():
    body = b'data:{"choices":[{"delta":{"content":"A"}}]}\n'

    assert StreamReframer().feed(body) == []


def test_crlf_lines_are_trimmed():
    body = sse_lines(delta("A")).replace(b"\n", b"\r\n") + b"data: [DONE]\r\n\r\n"

    assert StreamReframer().feed(body) == ["data: A\n\n", DONE_EVENT]


def test_events_without_text_are_skipped():
    body = sse_lines(
        {"choices": [{"delta": {"role": "assistant"}}]},
        delta(""),
        {"choices": []},
        {"usage": {"total_tokens": 3}},
        {"choices": [{"delta": {"content": None}, "finish_reason": "stop"}]},
        "12",
        "not json",
    )

    assert StreamReframer().feed(body) == []


def test_unterminated_last_line_is_dropped():
    reframer = StreamReframer()
    body = sse_lines(delta("A")) + b'data: {"choices":[{"delta":{"content":"B"}}]}'

    assert reframer.feed(body) == ["data: A\n\n"]
    assert reframer.feed(b"", final=True) == []
    assert not reframer.finished


def test_format_event_flattens_newlines():
    assert format_event("a\nb\n") == "data: a b \n\n"


def test_error_events():
    assert error_events("bad\nthing") == ["data: Error: bad thing\n\n", DONE_EVENT]


def test_content_extraction():
    assert extract_delta_content(delta("x")) == "x"
    assert extract_delta_content({"choices": [{"delta": "x"}]}) is None
    assert extract_delta_content(["x"]) is None
    assert extract_message_content({"choices": [{"message": {"content": "hi"}}]}) == "hi"
    assert extract_message_content({"choices": None}) == ""

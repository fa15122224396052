"""Tests for the server-sent event framer."""
from __future__ import annotations

import asyncio

from interview_session.framing import EventFramer, iter_events, parse_event_block


def test_event_split_across_chunks():
    framer = EventFramer()
    assert framer.feed(b'data: {"text": "Hel') == []
    assert framer.feed(b'lo"}\n\n') == [{"text": "Hello"}]


TWO_EVENTS = 'data: {"text":"a"}\n\ndata: {"text":"b"}\n\n'


def _frame_all(*chunks):
    framer = EventFramer()
    events = []
    for chunk in chunks:
        events.extend(framer.feed(chunk))
    return events + framer.flush()


def test_any_two_chunk_split_matches_whole_feed():
    whole = _frame_all(TWO_EVENTS)
    assert whole == [{"text": "a"}, {"text": "b"}]
    for index in range(len(TWO_EVENTS) + 1):
        assert _frame_all(TWO_EVENTS[:index], TWO_EVENTS[index:]) == whole, index
    raw = TWO_EVENTS.encode("utf-8")
    for index in range(len(raw) + 1):
        assert _frame_all(raw[:index], raw[index:]) == whole, index


def test_all_separator_styles():
    framer = EventFramer()
    events = framer.feed('data: {"text": "a"}\r\n\r\ndata: {"text": "b"}\n\ndata: {"text": "c"}\r\r')
    assert [e["text"] for e in events] == ["a", "b", "c"]


def test_multiple_data_lines_are_joined():
    framer = EventFramer()
    events = framer.feed('data: {"text":\ndata: "hi"}\n\n')
    assert events == [{"text": "hi"}]


def test_malformed_event_is_skipped():
    framer = EventFramer()
    events = framer.feed('data: {bad json\n\ndata: {"text": "ok"}\n\n')
    assert events == [{"text": "ok"}]


def test_done_stops_processing():
    framer = EventFramer()
    events = framer.feed('data: {"text": "a"}\n\ndata: {"done": true}\n\ndata: {"text": "b"}\n\n')
    assert events == [{"text": "a"}]
    assert framer.done
    assert framer.feed('data: {"text": "c"}\n\n') == []
    assert framer.flush() == []


def test_flush_emits_trailing_event_once():
    framer = EventFramer()
    assert framer.feed('data: {"text": "tail"}') == []
    assert framer.flush() == [{"text": "tail"}]
    assert framer.flush() == []


def test_multibyte_character_split_between_chunks():
    raw = 'data: {"text": "café"}\n\n'.encode("utf-8")
    split = raw.index(b"\xc3") + 1
    framer = EventFramer()
    assert framer.feed(raw[:split]) == []
    assert framer.feed(raw[split:]) == [{"text": "café"}]


def test_non_data_lines_and_non_objects():
    assert parse_event_block(": keep-alive") is None
    assert parse_event_block("data: [1, 2]") is None
    assert parse_event_block("event: message\ndata: {\"error\": \"boom\"}") == {"error": "boom"}


def test_iter_events_over_async_chunks():
    async def chunks():
        for piece in [b'data: {"text": "one"}\n', b'\ndata: {"text": "two"}', b"\n\n", b'data: {"done": true}\n\n']:
            yield piece

    async def collect():
        return [event async for event in iter_events(chunks())]

    assert asyncio.run(collect()) == [{"text": "one"}, {"text": "two"}]

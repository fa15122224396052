"""Tests for the streaming-aware transcript store."""
from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Tuple

from interview_session.models import Turn
from interview_session.tasks import drain_detached
from interview_session.transcript import TranscriptStore


def _recorder() -> Tuple[List[Tuple[Turn, Dict[str, Any]]], Any]:
    persisted: List[Tuple[Turn, Dict[str, Any]]] = []

    async def persist(turn: Turn, metadata: Dict[str, Any]) -> None:
        persisted.append((turn, metadata))

    return persisted, persist


def test_deltas_grow_a_single_streaming_turn():
    store = TranscriptStore()
    store.append_or_update_assistant_delta("Welcome")
    store.append_or_update_assistant_delta("Welcome to the")
    store.append_or_update_assistant_delta(" interview.")
    assert len(store) == 1
    turn = store.last()
    assert turn.content == "Welcome to the interview."
    assert turn.streaming
    assert store.last_assistant_text() == ""


def test_finalize_persists_exactly_once():
    async def scenario():
        persisted, persist = _recorder()
        store = TranscriptStore(persist, session_id="s1")
        store.append_or_update_assistant_delta("First question?")
        store.finalize_assistant_turn()
        store.finalize_assistant_turn()
        await drain_detached()
        return store, persisted

    store, persisted = asyncio.run(scenario())
    assert [turn.content for turn, _ in persisted] == ["First question?"]
    assert store.last_assistant_text() == "First question?"
    assert store.last().streaming is False


def test_blank_turns_are_not_recorded():
    async def scenario():
        persisted, persist = _recorder()
        store = TranscriptStore(persist)
        assert store.append_user_turn("   ") is None
        store.start_assistant_turn()
        store.finalize_assistant_turn()
        await drain_detached()
        return store, persisted

    store, persisted = asyncio.run(scenario())
    assert len(store) == 1
    assert store.last().content == ""
    assert persisted == []


def test_user_turn_is_trimmed_and_carries_metadata():
    async def scenario():
        persisted, persist = _recorder()
        store = TranscriptStore(persist)
        store.append_user_turn("  My answer  ", "transcript", {"attempt": 1})
        await drain_detached()
        return persisted

    persisted = asyncio.run(scenario())
    turn, metadata = persisted[0]
    assert turn.content == "My answer"
    assert turn.source == "transcript"
    assert metadata == {"attempt": 1}


def test_failed_persistence_keeps_visible_turn():
    async def scenario():
        async def broken(turn: Turn, metadata: Dict[str, Any]) -> None:
            raise RuntimeError("disk full")

        store = TranscriptStore(broken, session_id="s1")
        store.append_user_turn("Answer")
        store.append_assistant_message("Feedback")
        await drain_detached()
        return store

    store = asyncio.run(scenario())
    assert [turn.content for turn in store.turns] == ["Answer", "Feedback"]


def test_remove_turn_and_clear():
    store = TranscriptStore()
    placeholder = store.start_assistant_turn()
    assert store.remove_turn(placeholder.id)
    assert not store.remove_turn(placeholder.id)
    store.append_or_update_assistant_delta("x")
    store.clear()
    assert store.turns == []

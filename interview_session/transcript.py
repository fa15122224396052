"""Ordered, streaming-aware interview transcript.

The in-memory list is authoritative for what the candidate sees. Finalized
turns are mirrored to durable storage through a detached task, so a slow or
failing write never reorders, delays or removes a visible turn.
"""
from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from .deltas import merge_delta
from .models import Turn, TurnSource
from .tasks import spawn_detached

logger = logging.getLogger(__name__)

PersistFn = Callable[[Turn, Dict[str, Any]], Awaitable[None]]


class TranscriptStore:
    def __init__(self, persist: Optional[PersistFn] = None, *, session_id: Optional[str] = None) -> None:
        self._turns: List[Turn] = []
        self._persist = persist
        self.session_id = session_id

    @property
    def turns(self) -> List[Turn]:
        return list(self._turns)

    def __len__(self) -> int:
        return len(self._turns)

    def last(self) -> Optional[Turn]:
        return self._turns[-1] if self._turns else None

    def clear(self) -> None:
        self._turns.clear()

    def last_assistant_text(self) -> str:
        for turn in reversed(self._turns):
            if turn.role == "assistant" and not turn.streaming:
                return turn.content
        return ""

    def append_or_update_assistant_delta(self, text: str, source: TurnSource = "text") -> Optional[Turn]:
        if not text:
            return None
        last = self.last()
        if last is not None and last.role == "assistant" and last.streaming:
            last.content = merge_delta(last.content, text)
            return last
        turn = Turn(role="assistant", content=text, streaming=True, source=source)
        self._turns.append(turn)
        return turn

    def start_assistant_turn(self, source: TurnSource = "text") -> Turn:
        """Append an empty streaming placeholder that deltas will grow."""

        turn = Turn(role="assistant", content="", streaming=True, source=source)
        self._turns.append(turn)
        return turn

    def finalize_assistant_turn(self) -> Optional[Turn]:
        for turn in reversed(self._turns):
            if turn.role == "assistant" and turn.streaming:
                turn.streaming = False
                if turn.content.strip():
                    self._mirror(turn, {})
                return turn
        return None

    def append_user_turn(
        self,
        text: str,
        source: TurnSource = "text",
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Optional[Turn]:
        content = text.strip()
        if not content:
            return None
        turn = Turn(role="user", content=content, source=source)
        self._turns.append(turn)
        self._mirror(turn, metadata or {})
        return turn

    def start_user_turn(self, source: TurnSource = "transcript") -> Turn:
        """Reserve the slot of an answer whose transcript has not arrived yet."""

        turn = Turn(role="user", content="", streaming=True, source=source)
        self._turns.append(turn)
        return turn

    def complete_user_turn(
        self,
        turn_id: str,
        text: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Optional[Turn]:
        """Fill a reserved user turn in place; an empty text drops the slot."""

        content = text.strip()
        for index, turn in enumerate(self._turns):
            if turn.id != turn_id:
                continue
            if not content:
                del self._turns[index]
                return None
            turn.content = content
            turn.streaming = False
            self._mirror(turn, metadata or {})
            return turn
        return None

    def append_assistant_message(self, text: str, source: TurnSource = "text") -> Optional[Turn]:
        """Append an already complete assistant message (no streaming phase)."""

        content = text.strip()
        if not content:
            return None
        turn = Turn(role="assistant", content=content, source=source)
        self._turns.append(turn)
        self._mirror(turn, {})
        return turn

    def remove_turn(self, turn_id: str) -> bool:
        for index, turn in enumerate(self._turns):
            if turn.id == turn_id:
                del self._turns[index]
                return True
        return False

    def mirror_only(self, turn: Turn, metadata: Dict[str, Any]) -> None:
        """Persist a turn that is not shown in the visible transcript."""

        self._mirror(turn, metadata)

    def _mirror(self, turn: Turn, metadata: Dict[str, Any]) -> None:
        if self._persist is None:
            return
        spawn_detached(
            self._persist(turn, metadata),
            what="persist_message",
            session_id=self.session_id,
        )


__all__ = ["PersistFn", "TranscriptStore"]

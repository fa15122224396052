"""Lifecycle of one live interview attempt.

idle -> connecting -> active -> ended | error, with reset returning to idle.
The machine owns the :class:`SessionContext`, tracks question progress and
is the only place that issues end-of-session persistence updates.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Literal, Optional, Protocol

from observability import log_event

from .context import SessionContext
from .errors import InterviewError, SessionStateError, TransportError
from .models import InterviewSettings, SessionRecord, SessionStatus, utcnow
from .tasks import spawn_detached

logger = logging.getLogger(__name__)

EndReason = Literal["user", "auto", "error"]

_TRANSITIONS: Dict[SessionStatus, tuple[SessionStatus, ...]] = {
    "idle": ("connecting",),
    "connecting": ("active", "ended", "error"),
    "active": ("ended", "error"),
    "ended": ("idle",),
    "error": ("idle",),
}


class ChannelAdapter(Protocol):  # Transport variant plugged into the machine
    kind: str
    model: Optional[str]

    async def open(self, machine: "SessionStateMachine") -> None: ...

    async def close(self, reason: EndReason) -> None: ...


class SessionStateMachine:
    def __init__(self, context: SessionContext, *, inspiration_limit: int = 10) -> None:
        self.context = context
        self._channel: Optional[ChannelAdapter] = None
        self._awaiting_feedback = False
        self._last_question = False
        self._closed_remotely = False
        self._inspiration_limit = inspiration_limit

    @property
    def status(self) -> SessionStatus:
        return self.context.status

    @property
    def questions_asked(self) -> int:
        return self.context.questions_asked

    @property
    def channel(self) -> Optional[ChannelAdapter]:
        return self._channel

    def _transition(self, target: SessionStatus) -> None:
        current = self.context.status
        if target not in _TRANSITIONS[current]:
            raise SessionStateError(f"Cannot move from {current} to {target}")
        self.context.status = target
        log_event(
            "state_transition",
            self.context.session_id,
            status=target,
            previous=current,
            questions_asked=self.context.questions_asked,
            target=self.context.target_question_count,
        )

    async def start(self, settings: InterviewSettings, channel: ChannelAdapter) -> None:
        """Create the session record, load inspiration and open ``channel``.

        Only valid from ``idle``. A failed record write is logged and the
        interview proceeds without a session id. Channel failures move the
        machine to ``error`` and are re-raised for the caller to surface.
        """

        if self.context.status != "idle":
            raise SessionStateError("A session is already in progress.")
        if not self.context.backend.authenticated:
            raise SessionStateError(
                "Missing access token",
                user_message="Please sign in to start a live session.",
            )
        role = settings.resolved_role()
        if settings.role == "custom" and len(role) <= 1:
            raise SessionStateError("Custom role too short", user_message="Please enter a custom role.")
        if not role:
            raise SessionStateError("Empty role", user_message="Please choose a role.")

        self.context.reset()
        self.context.settings = settings
        self._channel = channel
        self._awaiting_feedback = False
        self._last_question = False
        self._closed_remotely = False
        self._transition("connecting")

        record = SessionRecord(
            role=role,
            interview_type=settings.interview_type,
            level=settings.level,
            topics=settings.topics,
            target_question_count=settings.question_count,
            status="connecting",
            model=channel.model,
            metadata={
                "source": channel.kind,
                "topics": settings.topics,
                "question_count": settings.question_count,
            },
        )
        try:
            record.id = await self.context.backend.create_session(
                {
                    "role": role,
                    "interview_type": settings.interview_type,
                    "level": settings.level,
                    "model": channel.model,
                    "metadata": record.metadata,
                }
            )
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to persist live session: %s", exc)
            log_event("persistence_failed", None, level=logging.WARNING, outcome="create_session", error=str(exc))
        self.context.bind_record(record)
        await self._load_inspiration(settings)

        try:
            await channel.open(self)
        except InterviewError as exc:
            await self.fail(exc.user_message, exc)
            raise
        except Exception as exc:  # noqa: BLE001
            logger.exception("Failed to open %s channel", channel.kind)
            await self.fail(TransportError.user_message, exc)
            raise TransportError(str(exc)) from exc

    async def _load_inspiration(self, settings: InterviewSettings) -> None:
        try:
            supply = await self.context.backend.fetch_inspiration(
                topics=settings.topics,
                level=settings.level,
                interview_type=settings.interview_type,
                question_count=settings.question_count,
            )
        except Exception as exc:  # noqa: BLE001
            logger.warning("Inspiration questions unavailable: %s", exc)
            return
        self.context.inspiration = supply.questions[: self._inspiration_limit]

    def mark_active(self) -> None:
        if self.context.status == "connecting":
            if self.context.record is not None:
                self.context.record.status = "active"
            self._transition("active")

    def on_user_answer(self) -> bool:
        """Register a submitted answer; returns True when it answers the last question."""

        self._awaiting_feedback = True
        self._last_question = self.context.questions_asked >= self.context.target_question_count
        return self._last_question

    async def on_assistant_turn_finalized(self) -> None:
        """Advance progress after a finalized assistant turn with content."""

        if self.context.status not in ("connecting", "active"):
            return
        self.mark_active()
        if self.context.questions_asked == 0:
            self.context.questions_asked = 1
            return
        if not self._awaiting_feedback:
            return
        self._awaiting_feedback = False
        if self._last_question:
            await self.end("auto")
        else:
            self.context.questions_asked += 1

    async def end(self, reason: EndReason = "user") -> None:
        """Close the channel and mark the session ended; repeated calls are no-ops."""

        if self.context.status in ("idle", "ended", "error"):
            return
        self._transition("ended")
        if self.context.record is not None:
            self.context.record.status = "ended"
            self.context.record.ended_at = utcnow()
        await self._close_channel(reason)
        self._mark_remote("ended")
        log_event("session_ended", self.context.session_id, outcome=reason, questions_asked=self.context.questions_asked)

    async def fail(self, message: str, exc: Optional[BaseException] = None) -> None:
        """Move to ``error`` from any live state, tear down and record the failure."""

        if self.context.status in ("idle", "ended", "error"):
            return
        self.context.error = message
        self._transition("error")
        if self.context.record is not None:
            self.context.record.status = "error"
            self.context.record.ended_at = utcnow()
        await self._close_channel("error")
        self._mark_remote("error")
        log_event(
            "session_error",
            self.context.session_id,
            level=logging.ERROR,
            error=str(exc) if exc is not None else message,
        )

    def report_error(self, message: str) -> None:
        """Surface a non-fatal upstream error without leaving the current state."""

        self.context.error = message
        log_event("upstream_error", self.context.session_id, level=logging.WARNING, error=message)

    def reset(self) -> None:
        if self.context.status == "idle":
            return
        if self.context.status not in ("ended", "error"):
            raise SessionStateError("End the current session before starting over.")
        self._transition("idle")
        self.context.reset()
        self._channel = None

    async def _close_channel(self, reason: EndReason) -> None:
        channel = self._channel
        if channel is None:
            return
        try:
            await channel.close(reason)
        except Exception:  # noqa: BLE001
            logger.exception("Error while closing %s channel", channel.kind)

    def _mark_remote(self, status: str) -> None:
        session_id = self.context.session_id
        if self._closed_remotely or not session_id:
            return
        self._closed_remotely = True
        spawn_detached(
            self.context.backend.update_session(session_id, status, utcnow().isoformat()),
            what="update_session",
            session_id=session_id,
        )

    def snapshot(self) -> Dict[str, Any]:
        return {
            "status": self.context.status,
            "session_id": self.context.session_id,
            "questions_asked": self.context.questions_asked,
            "target_question_count": self.context.target_question_count,
            "error": self.context.error,
            "turns": [turn.model_dump() for turn in self.context.transcript.turns],
        }


__all__ = ["ChannelAdapter", "EndReason", "SessionStateMachine"]

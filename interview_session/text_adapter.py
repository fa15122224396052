"""Turn-based text channel: one streaming completion request per turn."""
from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Dict, List, Optional

import httpx

from config.settings import settings as app_settings
from observability import log_event

from .backend import BackendError
from .errors import SessionStateError, TransportError, UpstreamContentError
from .framing import iter_events
from .models import Turn
from .prompts import build_text_prompt, wrap_candidate_answer, wrap_up_message

if TYPE_CHECKING:
    from .state_machine import EndReason, SessionStateMachine

logger = logging.getLogger(__name__)


class TextChannel:
    kind = "text"

    def __init__(self, *, model: Optional[str] = None) -> None:
        self.model: Optional[str] = model or app_settings.CHAT_MODEL
        self._machine: Optional["SessionStateMachine"] = None
        self._history: List[Dict[str, str]] = []
        self._inflight: Optional["asyncio.Task[str]"] = None
        self._aborted = False
        self._busy = False

    @property
    def history(self) -> List[Dict[str, str]]:
        return list(self._history)

    @property
    def busy(self) -> bool:
        return self._busy

    def _require_machine(self) -> "SessionStateMachine":
        if self._machine is None:
            raise SessionStateError("Text channel is not open")
        return self._machine

    def _prompt(self, *, is_first_message: bool) -> str:
        machine = self._require_machine()
        ctx = machine.context
        record = ctx.record
        return build_text_prompt(
            role=record.role if record else ctx.settings.resolved_role(),
            interview_type=ctx.settings.interview_type,
            level=ctx.settings.level or app_settings.DEFAULT_LEVEL,
            question_count=ctx.target_question_count,
            questions_asked=ctx.questions_asked,
            is_first_message=is_first_message,
            topics=ctx.settings.topics,
            inspiration=ctx.inspiration,
            inspiration_limit=app_settings.MAX_INSPIRATION_QUESTIONS,
        )

    async def open(self, machine: "SessionStateMachine") -> None:
        """Ask for the welcome and first question; the channel is ready once it arrives."""

        self._machine = machine
        self._history = []
        self._aborted = False
        system_prompt = self._prompt(is_first_message=True)
        messages = [{"role": "user", "content": system_prompt}]
        try:
            text = await self._run_turn(messages)
        except UpstreamContentError as exc:
            raise TransportError(str(exc), user_message=exc.user_message) from exc
        if text is None:
            return
        self._history = messages + [{"role": "assistant", "content": text}]
        await machine.on_assistant_turn_finalized()

    async def send_answer(self, answer: str) -> Optional[Turn]:
        """Submit a candidate answer and stream the interviewer's reply.

        Returns the finalized assistant turn, or ``None`` when the turn was
        aborted or failed upstream (the error is recorded on the context).
        """

        machine = self._require_machine()
        content = answer.strip()
        if not content:
            return None
        if machine.status != "active":
            raise SessionStateError(f"Cannot answer while {machine.status}")
        if self._busy:
            raise SessionStateError("Still waiting for the interviewer", user_message="Please wait for the reply.")

        ctx = machine.context
        ctx.error = None
        ctx.transcript.append_user_turn(content, "text")
        machine.on_user_answer()
        context_prompt = self._prompt(is_first_message=False)
        messages = self._history + [{"role": "user", "content": wrap_candidate_answer(context_prompt, content)}]
        try:
            text = await self._run_turn(messages)
        except UpstreamContentError as exc:
            machine.report_error(exc.user_message)
            return None
        if text is None:
            return None
        self._history = self._history + [
            {"role": "user", "content": content},
            {"role": "assistant", "content": text},
        ]
        turn = self._last_assistant_turn()
        await machine.on_assistant_turn_finalized()
        return turn

    def _last_assistant_turn(self) -> Optional[Turn]:
        transcript = self._require_machine().context.transcript
        for turn in reversed(transcript.turns):
            if turn.role == "assistant":
                return turn
        return None

    async def _run_turn(self, messages: List[Dict[str, str]]) -> Optional[str]:
        transcript = self._require_machine().context.transcript
        placeholder = transcript.start_assistant_turn("text")
        self._busy = True
        self._inflight = asyncio.get_running_loop().create_task(self._stream(messages))
        try:
            text = await self._inflight
        except asyncio.CancelledError:
            if not self._aborted:
                transcript.remove_turn(placeholder.id)
                raise
            if placeholder.content.strip():
                placeholder.streaming = False
            else:
                transcript.remove_turn(placeholder.id)
            logger.info("Completion request aborted")
            return None
        except UpstreamContentError:
            transcript.remove_turn(placeholder.id)
            raise
        finally:
            self._busy = False
            self._inflight = None
        transcript.finalize_assistant_turn()
        return text

    async def _stream(self, messages: List[Dict[str, str]]) -> str:
        machine = self._require_machine()
        transcript = machine.context.transcript
        model = self.model or app_settings.CHAT_MODEL
        logger.info("Completion request start: model=%s messages=%d", model, len(messages))
        turn: Optional[Turn] = None
        try:
            async for event in iter_events(machine.context.backend.stream_completion(messages, model)):
                error = event.get("error")
                if error:
                    raise UpstreamContentError(str(error), user_message=str(error))
                text = event.get("text")
                if isinstance(text, str) and text:
                    turn = transcript.append_or_update_assistant_delta(text, "text") or turn
        except BackendError as exc:
            raise UpstreamContentError(str(exc), user_message=str(exc) or None) from exc
        except httpx.HTTPError as exc:
            logger.warning("Completion transport error: %s", exc)
            raise UpstreamContentError(str(exc), user_message="Failed to communicate with AI") from exc
        content = turn.content if turn is not None else ""
        if not content.strip():
            raise UpstreamContentError("Empty completion", user_message="The interviewer returned an empty reply.")
        logger.info("Completion request done: chars=%d", len(content))
        return content

    async def close(self, reason: "EndReason") -> None:
        machine = self._machine
        self._aborted = True
        if self._inflight is not None and not self._inflight.done():
            self._inflight.cancel()
        if machine is None:
            return
        if reason == "user":
            machine.context.transcript.append_assistant_message(wrap_up_message(machine.context.questions_asked))
        log_event("channel_closed", machine.context.session_id, channel=self.kind, outcome=reason)


__all__ = ["TextChannel"]

"""Realtime audio channel: session setup, control events and barge-in.

Control messages are queued and handled strictly one at a time in arrival
order. Playback is paused synchronously on ``speech_started`` so the
assistant never talks over the candidate.
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional, Set

from config.settings import settings as app_settings
from observability import log_event

from .backend import BackendError
from .errors import ProtocolError, TokenExpiredError, TransportError
from .events import (
    AudioCommitted,
    ConversationItem,
    ErrorEvent,
    FunctionCall,
    FunctionCallDelta,
    FunctionCallDone,
    RealtimeEvent,
    ResponseCreated,
    ResponseDone,
    ResponseTextDelta,
    SessionCreated,
    SpeechStarted,
    TranscriptionCompleted,
    TranscriptionDelta,
    extract_content_text,
    extract_response_text,
    parse_event,
    response_error_message,
)
from .prompts import build_realtime_instructions
from .realtime_transport import AiortcTransport, AudioPlayback, RealtimeTransport, open_speaker
from .tasks import spawn_detached
from .tools import TOOL_DEFINITIONS, ToolDispatcher, parse_tool_args

if TYPE_CHECKING:
    from .state_machine import EndReason, SessionStateMachine

logger = logging.getLogger(__name__)

CONNECTION_FAILED = "Realtime connection failed. Please reconnect."


def session_update(instructions: str, transcription_model: str) -> Dict[str, Any]:
    audio_format = {"type": "audio/pcm", "rate": 24000}
    return {
        "type": "session.update",
        "session": {
            "type": "realtime",
            "output_modalities": ["audio"],
            "audio": {
                "input": {
                    "format": audio_format,
                    "transcription": {"model": transcription_model},
                    "turn_detection": {
                        "type": "semantic_vad",
                        "create_response": True,
                        "interrupt_response": True,
                    },
                },
                "output": {"format": dict(audio_format)},
            },
            "instructions": instructions,
            "tools": TOOL_DEFINITIONS,
            "tool_choice": "auto",
        },
    }


def client_secret_from(token: Dict[str, Any]) -> Optional[str]:
    value = token.get("value")
    if isinstance(value, str) and value:
        return value
    secret = token.get("client_secret")
    if isinstance(secret, dict) and isinstance(secret.get("value"), str):
        return secret["value"] or None
    return None


class RealtimeChannel:
    kind = "realtime"

    def __init__(
        self,
        *,
        transport_factory: Optional[Callable[[], RealtimeTransport]] = None,
        playback: Optional[AudioPlayback] = None,
        model: Optional[str] = None,
        token_ttl_s: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.model: Optional[str] = model or app_settings.REALTIME_MODEL
        self.playback = playback or AudioPlayback(open_speaker())
        self.muted = False
        self._transport_factory = transport_factory or AiortcTransport
        self._transport: Optional[RealtimeTransport] = None
        self._ttl = token_ttl_s or app_settings.REALTIME_TOKEN_TTL_SECONDS
        self._clock = clock
        self._deadline: Optional[float] = None
        self._expiry_handle: Optional[asyncio.TimerHandle] = None
        self._machine: Optional["SessionStateMachine"] = None
        self._dispatcher: Optional[ToolDispatcher] = None
        self._instructions = ""
        self._input_transcripts: Dict[str, str] = {}
        self._pending_answers: Dict[str, str] = {}
        self._answered_items: Set[str] = set()
        self._last_assistant_text = ""
        self._response_counted = False
        self._queue: "asyncio.Queue[Optional[str]]" = asyncio.Queue()
        self._pump: Optional["asyncio.Task[None]"] = None
        self._closed = False

    @property
    def dispatcher(self) -> Optional[ToolDispatcher]:
        return self._dispatcher

    @property
    def live_input_transcript(self) -> str:
        return " ".join(text for text in self._input_transcripts.values() if text)

    @property
    def expired(self) -> bool:
        return self._deadline is not None and self._clock() >= self._deadline

    async def open(self, machine: "SessionStateMachine") -> None:
        """Mint a credential, negotiate the peer connection and start the event pump."""

        self._machine = machine
        self._closed = False
        self._input_transcripts = {}
        self._pending_answers = {}
        self._answered_items = set()
        self._last_assistant_text = ""
        ctx = machine.context
        self._dispatcher = ToolDispatcher(ctx, self.send)
        role = ctx.record.role if ctx.record else ctx.settings.resolved_role()
        request = {
            "role": role,
            "interview_type": ctx.settings.interview_type,
            "level": ctx.settings.level,
            "topics": ctx.settings.topics,
            "question_count": ctx.settings.question_count,
        }
        try:
            token = await ctx.backend.create_realtime_token(request)
        except BackendError as exc:
            raise TransportError(str(exc), user_message=str(exc) or None) from exc
        secret = client_secret_from(token)
        if not secret:
            raise TransportError(
                "Client secret missing",
                user_message="Realtime client secret missing from response.",
            )
        session_info = token.get("session")
        if isinstance(session_info, dict) and session_info.get("model"):
            self.model = session_info["model"]

        self._instructions = build_realtime_instructions(
            role=role,
            interview_type=ctx.settings.interview_type,
            level=ctx.settings.level,
            topics=ctx.settings.topics,
            question_count=ctx.settings.question_count,
            inspiration=ctx.inspiration,
            inspiration_limit=app_settings.MAX_INSPIRATION_QUESTIONS,
        )
        self._arm_expiry()
        self._pump = asyncio.get_running_loop().create_task(self._run_pump())

        self._transport = self._transport_factory()
        try:
            await self._transport.connect(
                lambda offer: ctx.backend.exchange_sdp(secret, offer),
                on_open=self._on_channel_open,
                on_message=self.receive,
                on_state=self._on_connection_state,
                on_track=self.playback.attach,
            )
        except BackendError as exc:
            raise TransportError(str(exc), user_message=str(exc) or None) from exc
        log_event("channel_opened", ctx.session_id, channel=self.kind)

    def _arm_expiry(self) -> None:
        self._deadline = self._clock() + self._ttl
        loop = asyncio.get_running_loop()
        self._expiry_handle = loop.call_later(self._ttl, self._on_expired)

    def _on_expired(self) -> None:
        machine = self._machine
        if machine is None or self._closed:
            return
        logger.warning("Realtime credential expired after %ss", self._ttl)
        spawn_detached(
            machine.fail(TokenExpiredError.user_message, TokenExpiredError()),
            what="expire_session",
            session_id=machine.context.session_id,
        )

    def _on_channel_open(self) -> None:
        self.send(session_update(self._instructions, app_settings.REALTIME_TRANSCRIPTION_MODEL))
        self.send({"type": "response.create", "response": {"output_modalities": ["audio"]}})

    def _on_connection_state(self, state: str) -> None:
        if state != "failed" or self._machine is None or self._closed:
            return
        spawn_detached(
            self._machine.fail(CONNECTION_FAILED),
            what="fail_session",
            session_id=self._machine.context.session_id,
        )

    def send(self, payload: Dict[str, Any]) -> None:
        if self._transport is None or self._closed:
            return
        if self.expired:
            logger.warning("Dropping %s on an expired realtime channel", payload.get("type"))
            return
        self._transport.send(payload)

    def set_muted(self, muted: bool) -> None:
        self.muted = muted
        if self._transport is not None:
            self._transport.set_microphone_enabled(not muted)

    def receive(self, message: str) -> None:
        """Queue a raw control message for in-order handling."""

        if not self._closed:
            self._queue.put_nowait(message)

    async def wait_processed(self) -> None:
        """Wait until every queued control message has been handled."""

        if self._pump is not None and not self._pump.done():
            await self._queue.join()

    async def _run_pump(self) -> None:
        while True:
            message = await self._queue.get()
            try:
                if message is None:
                    return
                await self.handle_message(message)
            except asyncio.CancelledError:
                raise
            except Exception:  # noqa: BLE001
                logger.exception("Failed to handle realtime event")
            finally:
                self._queue.task_done()

    async def handle_message(self, message: str) -> None:
        if self.expired:
            if self._machine is not None:
                await self._machine.fail(TokenExpiredError.user_message, TokenExpiredError())
            return
        try:
            event = parse_event(message)
        except ProtocolError as exc:
            log_event("protocol_error", self._session_id(), level=logging.WARNING, error=str(exc))
            return
        await self.handle(event)

    def _session_id(self) -> Optional[str]:
        return self._machine.context.session_id if self._machine is not None else None

    async def handle(self, event: RealtimeEvent) -> None:
        machine = self._machine
        if machine is None:
            return
        transcript = machine.context.transcript
        dispatcher = self._dispatcher

        if isinstance(event, SpeechStarted):
            self.playback.pause()
        elif isinstance(event, SessionCreated):
            machine.mark_active()
        elif isinstance(event, ResponseCreated):
            self._response_counted = False
            self.playback.resume()
        elif isinstance(event, ResponseTextDelta):
            transcript.append_or_update_assistant_delta(event.delta, "audio")
        elif isinstance(event, ResponseDone):
            await self._on_response_done(event)
        elif isinstance(event, ConversationItem):
            await self._on_conversation_item(event)
        elif isinstance(event, TranscriptionDelta):
            if event.item_id and event.delta:
                self._input_transcripts[event.item_id] = self._input_transcripts.get(event.item_id, "") + event.delta
        elif isinstance(event, AudioCommitted):
            if event.item_id and event.item_id not in self._answered_items:
                self._answered_items.add(event.item_id)
                self._pending_answers[event.item_id] = transcript.start_user_turn("transcript").id
                machine.on_user_answer()
        elif isinstance(event, TranscriptionCompleted):
            if not event.item_id:
                return
            text = self._input_transcripts.pop(event.item_id, "") or (event.transcript or "")
            turn_id = self._pending_answers.pop(event.item_id, None)
            if turn_id is not None:
                transcript.complete_user_turn(turn_id, text)
            elif text.strip() and event.item_id not in self._answered_items:
                self._answered_items.add(event.item_id)
                transcript.append_user_turn(text, "transcript")
                machine.on_user_answer()
        elif isinstance(event, FunctionCallDelta):
            if dispatcher is not None:
                dispatcher.on_arguments_delta(event.correlation_id(), event.name, event.delta)
        elif isinstance(event, FunctionCallDone):
            if dispatcher is not None:
                dispatcher.on_arguments_done(event.correlation_id(), event.name, event.arguments)
        elif isinstance(event, FunctionCall):
            call_id = event.call_id or event.id
            if dispatcher is not None and call_id and event.name:
                dispatcher.submit(call_id, event.name, parse_tool_args(event.raw_arguments()))
        elif isinstance(event, ErrorEvent):
            await machine.fail(event.message())

    async def _on_response_done(self, event: ResponseDone) -> None:
        machine = self._machine
        assert machine is not None
        transcript = machine.context.transcript
        text = extract_response_text(event.response)
        spoke = False
        last = transcript.last()
        if last is not None and last.role == "assistant" and last.streaming:
            if text:
                transcript.append_or_update_assistant_delta(text, "audio")
            finalized = transcript.finalize_assistant_turn()
            if finalized is not None and finalized.content.strip():
                self._last_assistant_text = finalized.content
                spoke = True
        elif text and text != self._last_assistant_text:
            self._last_assistant_text = text
            transcript.append_assistant_message(text, "audio")
            spoke = True
        error = response_error_message(event.response)
        if error:
            machine.report_error(error)
        self.playback.resume()
        if spoke:
            await self._assistant_spoke()

    async def _on_conversation_item(self, event: ConversationItem) -> None:
        item = event.item or {}
        if item.get("type") != "message" or item.get("role") != "assistant":
            return
        text = extract_content_text(item.get("content"))
        if text and text != self._last_assistant_text:
            machine = self._machine
            assert machine is not None
            self._last_assistant_text = text
            machine.context.transcript.append_assistant_message(text, "audio")
            self.playback.resume()
            await self._assistant_spoke()
            return
        self.playback.resume()

    async def _assistant_spoke(self) -> None:
        if self._response_counted or self._machine is None:
            return
        self._response_counted = True
        await self._machine.on_assistant_turn_finalized()

    async def close(self, reason: "EndReason") -> None:
        """Stop capture, drop in-flight tool calls and close the peer connection."""

        self._closed = True
        self.playback.stop()
        if self._expiry_handle is not None:
            self._expiry_handle.cancel()
            self._expiry_handle = None
        if self._dispatcher is not None:
            self._dispatcher.cancel_all()
        if self._machine is not None:
            transcript = self._machine.context.transcript
            for item_id, turn_id in self._pending_answers.items():
                transcript.complete_user_turn(turn_id, self._input_transcripts.get(item_id, ""))
        self._pending_answers = {}
        self._input_transcripts = {}
        transport, self._transport = self._transport, None
        while not self._queue.empty():
            self._queue.get_nowait()
            self._queue.task_done()
        if self._pump is not None:
            if self._pump is asyncio.current_task():
                self._queue.put_nowait(None)
            else:
                self._pump.cancel()
        self._pump = None
        if transport is not None:
            transport.set_microphone_enabled(False)
            await transport.close()
        await self.playback.close()
        if self._machine is not None:
            log_event("channel_closed", self._machine.context.session_id, channel=self.kind, outcome=reason)


__all__ = ["RealtimeChannel", "client_secret_from", "session_update"]

"""Typed inbound realtime control events.

Raw JSON from the control channel is parsed once into a closed set of
variants; anything unrecognized becomes :class:`Unknown` and is ignored by
the handlers.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, ValidationError

from .errors import ProtocolError

logger = logging.getLogger(__name__)


class _Event(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: str


class SessionCreated(_Event):
    pass


class SpeechStarted(_Event):  # Barge-in signal
    pass


class AudioCommitted(_Event):  # A finished user utterance, before its transcript
    item_id: Optional[str] = None


class ResponseCreated(_Event):
    pass


class ResponseTextDelta(_Event):
    delta: str = ""


class ResponseDone(_Event):  # response.done and response.output_text.done
    response: Optional[Dict[str, Any]] = None


class ConversationItem(_Event):  # conversation.item.added / conversation.item.done
    item: Optional[Dict[str, Any]] = None


class TranscriptionDelta(_Event):
    item_id: Optional[str] = None
    delta: str = ""


class TranscriptionCompleted(_Event):
    item_id: Optional[str] = None
    transcript: Optional[str] = None


class FunctionCallDelta(_Event):
    call_id: Optional[str] = None
    item_id: Optional[str] = None
    id: Optional[str] = None
    name: Optional[str] = None
    delta: str = ""

    def correlation_id(self) -> Optional[str]:
        return self.call_id or self.item_id or self.id


class FunctionCallDone(_Event):
    call_id: Optional[str] = None
    item_id: Optional[str] = None
    id: Optional[str] = None
    name: Optional[str] = None
    arguments: Any = None

    def correlation_id(self) -> Optional[str]:
        return self.call_id or self.item_id or self.id


class FunctionCall(_Event):  # Legacy single-shot function call
    call_id: Optional[str] = None
    id: Optional[str] = None
    name: Optional[str] = None
    arguments: Any = None
    arguments_json: Any = None
    arguments_text: Any = None

    def raw_arguments(self) -> Any:
        for value in (self.arguments, self.arguments_json, self.arguments_text):
            if value is not None:
                return value
        return {}


class ErrorEvent(_Event):
    error: Optional[Dict[str, Any]] = None

    def message(self) -> str:
        if self.error and isinstance(self.error.get("message"), str) and self.error["message"]:
            return self.error["message"]
        return "Realtime session error."


class Unknown(_Event):
    pass


RealtimeEvent = Union[
    SessionCreated,
    SpeechStarted,
    AudioCommitted,
    ResponseCreated,
    ResponseTextDelta,
    ResponseDone,
    ConversationItem,
    TranscriptionDelta,
    TranscriptionCompleted,
    FunctionCallDelta,
    FunctionCallDone,
    FunctionCall,
    ErrorEvent,
    Unknown,
]

EVENT_TYPES: Dict[str, type] = {
    "session.created": SessionCreated,
    "input_audio_buffer.speech_started": SpeechStarted,
    "input_audio_buffer.committed": AudioCommitted,
    "response.created": ResponseCreated,
    "response.output_text.delta": ResponseTextDelta,
    "response.output_text.done": ResponseDone,
    "response.done": ResponseDone,
    "conversation.item.added": ConversationItem,
    "conversation.item.done": ConversationItem,
    "conversation.item.input_audio_transcription.delta": TranscriptionDelta,
    "conversation.item.input_audio_transcription.completed": TranscriptionCompleted,
    "conversation.item.input_audio_transcription.done": TranscriptionCompleted,
    "response.function_call_arguments.delta": FunctionCallDelta,
    "response.function_call_arguments.done": FunctionCallDone,
    "response.function_call": FunctionCall,
    "error": ErrorEvent,
}


def parse_event(payload: Union[str, bytes, Dict[str, Any]]) -> RealtimeEvent:
    """Parse a control message.

    Raises :class:`ProtocolError` when the message is not JSON at all;
    unrecognized or malformed events become :class:`Unknown`.
    """

    if isinstance(payload, (str, bytes)):
        try:
            payload = json.loads(payload)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise ProtocolError(f"Unparseable realtime event: {exc}") from exc
    if not isinstance(payload, dict) or not isinstance(payload.get("type"), str):
        return Unknown(type="")
    model = EVENT_TYPES.get(payload["type"], Unknown)
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        logger.warning("Malformed %s event: %s", payload["type"], exc.errors()[:1])
        return Unknown.model_validate(payload)


def extract_content_text(content: Any) -> str:
    """Join the text parts of a message item's ``content`` list."""

    if not isinstance(content, list):
        return ""
    parts: List[str] = []
    for entry in content:
        if not isinstance(entry, dict):
            continue
        if entry.get("type") in ("output_text", "text", "input_text"):
            text = entry.get("text") or entry.get("content") or ""
        else:
            text = entry.get("transcript") or ""
        if isinstance(text, str) and text:
            parts.append(text)
    return " ".join(parts).strip()


def extract_response_text(response: Any) -> str:
    if not isinstance(response, dict):
        return ""
    output = response.get("output")
    if not isinstance(output, list):
        return ""
    parts: List[str] = []
    for item in output:
        if not isinstance(item, dict):
            continue
        text = item.get("text")
        if isinstance(text, str) and text.strip():
            parts.append(text.strip())
            continue
        joined = extract_content_text(item.get("content"))
        if joined:
            parts.append(joined)
    return " ".join(parts).strip()


def response_error_message(response: Any) -> Optional[str]:
    if not isinstance(response, dict):
        return None
    details = response.get("status_details")
    if not isinstance(details, dict):
        return None
    error = details.get("error")
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    if details.get("message"):
        return str(details["message"])
    return None


__all__ = [
    "AudioCommitted",
    "ConversationItem",
    "ErrorEvent",
    "EVENT_TYPES",
    "FunctionCall",
    "FunctionCallDelta",
    "FunctionCallDone",
    "RealtimeEvent",
    "ResponseCreated",
    "ResponseDone",
    "ResponseTextDelta",
    "SessionCreated",
    "SpeechStarted",
    "TranscriptionCompleted",
    "TranscriptionDelta",
    "Unknown",
    "extract_content_text",
    "extract_response_text",
    "parse_event",
    "response_error_message",
]

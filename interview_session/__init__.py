"""Live mock-interview session orchestration."""
from .backend import BackendError, HttpSessionBackend, SessionBackend
from .context import SessionContext
from .deltas import merge_delta
from .errors import (
    InterviewError,
    ProtocolError,
    SessionStateError,
    TokenExpiredError,
    TransportError,
    UpstreamContentError,
)
from .framing import EventFramer, iter_events, parse_event_block
from .models import InterviewSettings, SessionRecord, SupplyResult, Turn
from .realtime_adapter import RealtimeChannel
from .state_machine import SessionStateMachine
from .tasks import drain_detached, spawn_detached
from .text_adapter import TextChannel
from .tools import TOOL_DEFINITIONS, ToolDispatcher, parse_tool_args
from .transcript import TranscriptStore

__all__ = [
    "BackendError",
    "EventFramer",
    "HttpSessionBackend",
    "InterviewError",
    "InterviewSettings",
    "ProtocolError",
    "RealtimeChannel",
    "SessionBackend",
    "SessionContext",
    "SessionRecord",
    "SessionStateError",
    "SessionStateMachine",
    "SupplyResult",
    "TOOL_DEFINITIONS",
    "TextChannel",
    "TokenExpiredError",
    "ToolDispatcher",
    "TranscriptStore",
    "TransportError",
    "Turn",
    "UpstreamContentError",
    "drain_detached",
    "iter_events",
    "merge_delta",
    "parse_event_block",
    "parse_tool_args",
    "spawn_detached",
]

from __future__ import annotations  # Live interview session data models

import math
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator

InterviewType = Literal["mixed", "knowledge", "scenario", "behavioral"]
SessionStatus = Literal["idle", "connecting", "active", "ended", "error"]
TurnRole = Literal["user", "assistant"]
TurnSource = Literal["text", "audio", "transcript"]

DEFAULT_ROLE = "Salesforce Developer"
DEFAULT_QUESTION_COUNT = 5
QUESTION_COUNT_MIN = 1
QUESTION_COUNT_MAX = 10
CUSTOM_ROLE = "custom"


def new_id() -> str:
    return uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def normalize_question_count(value: Any) -> int:  # Round and clamp to 1..10, default 5
    try:
        numeric = float(value)
    except (TypeError, ValueError):
        return DEFAULT_QUESTION_COUNT
    if not math.isfinite(numeric):
        return DEFAULT_QUESTION_COUNT
    rounded = int(round(numeric))
    return min(QUESTION_COUNT_MAX, max(QUESTION_COUNT_MIN, rounded))


def parse_topics(value: str | List[str] | None) -> List[str]:  # Split, trim and dedupe preserving order
    if value is None:
        return []
    raw = value.split(",") if isinstance(value, str) else list(value)
    topics: List[str] = []
    for item in raw:
        if not isinstance(item, str):
            continue
        topic = item.strip()
        if topic and topic not in topics:
            topics.append(topic)
    return topics


class InterviewSettings(BaseModel):  # User-chosen interview parameters
    role: str = DEFAULT_ROLE
    custom_role: str = ""
    interview_type: InterviewType = "mixed"
    level: str = "Mid-level"
    topics: List[str] = Field(default_factory=list)
    question_count: int = DEFAULT_QUESTION_COUNT

    @field_validator("topics", mode="before")
    @classmethod
    def _normalize_topics(cls, value: Any) -> List[str]:
        return parse_topics(value)

    @field_validator("question_count", mode="before")
    @classmethod
    def _normalize_count(cls, value: Any) -> int:
        return normalize_question_count(value)

    def resolved_role(self) -> str:
        if self.role == CUSTOM_ROLE:
            return self.custom_role.strip()
        return self.role.strip()


class Turn(BaseModel):  # One transcript message
    id: str = Field(default_factory=new_id)
    role: TurnRole
    content: str = ""
    streaming: bool = False
    source: TurnSource = "text"


class InspirationQuestion(BaseModel):  # Read-only question bank snapshot
    id: str
    question_text: str
    topic: str = "General"
    difficulty: str = "medium"
    question_type: str = "Knowledge"


class SupplyMeta(BaseModel):  # Provenance of a question supply result
    requested_count: int
    fetched_count: int = 0
    distribution: Dict[str, int] = Field(default_factory=dict)
    fallback_used: bool = False
    note: Optional[str] = None


class SupplyResult(BaseModel):
    questions: List[InspirationQuestion] = Field(default_factory=list)
    meta: SupplyMeta


class ToolCall(BaseModel):  # Accumulating function call buffer
    call_id: str
    name: Optional[str] = None
    args: str = ""


class Feedback(BaseModel):  # Per-question evaluation reported by the model
    session_id: Optional[str] = None
    question_text: Optional[str] = None
    score: Optional[float] = None
    rubric: Dict[str, Any] = Field(default_factory=dict)
    feedback: str


class SessionRecord(BaseModel):  # Client-side view of the persisted session
    id: Optional[str] = None
    role: str
    interview_type: InterviewType
    level: str
    topics: List[str] = Field(default_factory=list)
    target_question_count: int = DEFAULT_QUESTION_COUNT
    status: SessionStatus = "idle"
    model: Optional[str] = None
    started_at: datetime = Field(default_factory=utcnow)
    ended_at: Optional[datetime] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


__all__ = [
    "CUSTOM_ROLE",
    "DEFAULT_QUESTION_COUNT",
    "DEFAULT_ROLE",
    "Feedback",
    "InspirationQuestion",
    "InterviewSettings",
    "InterviewType",
    "SessionRecord",
    "SessionStatus",
    "SupplyMeta",
    "SupplyResult",
    "ToolCall",
    "Turn",
    "TurnRole",
    "TurnSource",
    "new_id",
    "normalize_question_count",
    "parse_topics",
    "utcnow",
]

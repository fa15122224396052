"""Pydantic schemas for the live agent API."""
from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from interview_session.models import parse_topics


class SessionCreateReq(BaseModel):
    role: Optional[str] = None
    interview_type: Optional[str] = None
    level: Optional[str] = None
    model: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class SessionUpdateReq(BaseModel):
    session_id: Optional[str] = None
    status: Optional[str] = None
    ended_at: Optional[str] = None


class MessageReq(BaseModel):
    session_id: Optional[str] = None
    role: Optional[Literal["user", "assistant", "system"]] = None
    content: Optional[str] = None
    source: Literal["text", "audio", "transcript"] = "text"
    metadata: Dict[str, Any] = Field(default_factory=dict)


class FeedbackReq(BaseModel):
    session_id: Optional[str] = None
    question_text: Optional[str] = None
    score: Optional[float] = None
    rubric: Dict[str, Any] = Field(default_factory=dict)
    feedback: Optional[str] = None


class QuestionsReq(BaseModel):
    topics: List[str] = Field(default_factory=list)
    level: Optional[str] = None
    interview_type: Optional[str] = None
    question_count: Optional[Any] = None

    @field_validator("topics", mode="before")
    @classmethod
    def _normalize_topics(cls, value: Any) -> List[str]:
        return parse_topics(value if isinstance(value, (str, list)) else None)


class QuestionReq(BaseModel):
    topic: Optional[str] = None
    difficulty: Optional[str] = None
    category: Optional[str] = None


class QuestionOut(BaseModel):
    id: str
    question_text: str
    topic: Optional[str] = None
    category: Optional[str] = None
    difficulty: Optional[str] = None


class RealtimeSessionReq(BaseModel):
    role: Optional[str] = None
    interview_type: Optional[str] = None
    level: Optional[str] = None
    topics: List[str] = Field(default_factory=list)
    question_count: Optional[float] = None

    @field_validator("topics", mode="before")
    @classmethod
    def _normalize_topics(cls, value: Any) -> List[str]:
        return parse_topics(value if isinstance(value, (str, list)) else None)


class ChatMessage(BaseModel):
    role: Literal["user", "assistant", "system"]
    content: str


class ChatStreamReq(BaseModel):
    messages: List[ChatMessage] = Field(default_factory=list)
    model: Optional[str] = None

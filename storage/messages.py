"""Persistence helpers for transcript messages and feedback."""
from __future__ import annotations

import datetime as dt
import json
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from .sqlite import get_conn


class MessagePayload(BaseModel):
    session_id: str
    user_id: str
    role: Literal["user", "assistant", "system"]
    content: str = Field(min_length=1)
    source: Literal["text", "audio", "transcript"] = "text"
    metadata: Dict[str, Any] = Field(default_factory=dict)


class FeedbackPayload(BaseModel):
    session_id: str
    user_id: str
    question_text: Optional[str] = None
    score: Optional[float] = None
    rubric: Dict[str, Any] = Field(default_factory=dict)
    feedback: str = Field(min_length=1)


def insert_message(**data: Any) -> int:
    """Insert a transcript message row and return its primary key."""

    payload = MessagePayload(**data)
    timestamp = dt.datetime.now(dt.timezone.utc).isoformat()
    with get_conn() as conn:
        cur = conn.cursor()
        cur.execute(
            """INSERT INTO live_agent_messages
               (session_id, user_id, role, content, source, metadata, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?)""",
            (
                payload.session_id,
                payload.user_id,
                payload.role,
                payload.content,
                payload.source,
                json.dumps(payload.metadata),
                timestamp,
            ),
        )
        return int(cur.lastrowid)


def insert_feedback(**data: Any) -> int:
    """Insert a feedback row and return its primary key."""

    payload = FeedbackPayload(**data)
    timestamp = dt.datetime.now(dt.timezone.utc).isoformat()
    with get_conn() as conn:
        cur = conn.cursor()
        cur.execute(
            """INSERT INTO live_agent_feedback
               (session_id, user_id, question_text, score, rubric, feedback, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?)""",
            (
                payload.session_id,
                payload.user_id,
                payload.question_text,
                payload.score,
                json.dumps(payload.rubric),
                payload.feedback,
                timestamp,
            ),
        )
        return int(cur.lastrowid)


def list_messages(session_id: str) -> List[Dict[str, Any]]:
    """Return persisted messages for a session in insertion order."""

    with get_conn() as conn:
        rows = conn.execute(
            "SELECT role, content, source, metadata FROM live_agent_messages WHERE session_id = ? ORDER BY id",
            (session_id,),
        ).fetchall()
    return [
        {
            "role": row["role"],
            "content": row["content"],
            "source": row["source"],
            "metadata": json.loads(row["metadata"] or "{}"),
        }
        for row in rows
    ]


def list_feedback(session_id: str) -> List[Dict[str, Any]]:
    with get_conn() as conn:
        rows = conn.execute(
            "SELECT question_text, score, rubric, feedback FROM live_agent_feedback WHERE session_id = ? ORDER BY id",
            (session_id,),
        ).fetchall()
    return [
        {
            "question_text": row["question_text"],
            "score": row["score"],
            "rubric": json.loads(row["rubric"] or "{}"),
            "feedback": row["feedback"],
        }
        for row in rows
    ]

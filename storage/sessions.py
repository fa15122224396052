"""Persistence helpers for live interview sessions."""
from __future__ import annotations

import datetime as dt
import json
from typing import Any, Dict, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from .sqlite import get_conn


class SessionRecord(BaseModel):
    id: str
    user_id: str
    role: str
    interview_type: str
    level: Optional[str] = None
    model: Optional[str] = None
    status: str = "active"
    metadata: Dict[str, Any] = Field(default_factory=dict)
    started_at: str
    ended_at: Optional[str] = None


def _row_to_record(row: Any) -> SessionRecord:
    return SessionRecord(
        id=row["id"],
        user_id=row["user_id"],
        role=row["role"],
        interview_type=row["interview_type"],
        level=row["level"],
        model=row["model"],
        status=row["status"],
        metadata=json.loads(row["metadata"] or "{}"),
        started_at=row["started_at"],
        ended_at=row["ended_at"],
    )


def insert_session(
    *,
    user_id: str,
    role: str,
    interview_type: str,
    level: Optional[str],
    model: Optional[str],
    metadata: Optional[Dict[str, Any]] = None,
) -> SessionRecord:
    """Insert a new active session row and return it."""

    record = SessionRecord(
        id=uuid4().hex,
        user_id=user_id,
        role=role,
        interview_type=interview_type,
        level=level,
        model=model,
        metadata=metadata or {},
        started_at=dt.datetime.now(dt.timezone.utc).isoformat(),
    )
    with get_conn() as conn:
        conn.execute(
            """INSERT INTO live_agent_sessions
               (id, user_id, role, interview_type, level, model, status, metadata, started_at, ended_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                record.id,
                record.user_id,
                record.role,
                record.interview_type,
                record.level,
                record.model,
                record.status,
                json.dumps(record.metadata),
                record.started_at,
                None,
            ),
        )
    return record


def get_session(session_id: str, user_id: str) -> Optional[SessionRecord]:
    """Return the session owned by ``user_id`` or ``None``."""

    with get_conn() as conn:
        row = conn.execute(
            "SELECT * FROM live_agent_sessions WHERE id = ? AND user_id = ?",
            (session_id, user_id),
        ).fetchone()
    return _row_to_record(row) if row else None


def update_session_status(
    session_id: str,
    user_id: str,
    *,
    status: str,
    ended_at: Optional[str] = None,
) -> Optional[SessionRecord]:
    """Set status/ended_at on an owned session; ``None`` when nothing matched."""

    ended = ended_at or dt.datetime.now(dt.timezone.utc).isoformat()
    with get_conn() as conn:
        cur = conn.execute(
            "UPDATE live_agent_sessions SET status = ?, ended_at = ? WHERE id = ? AND user_id = ?",
            (status, ended, session_id, user_id),
        )
        if cur.rowcount == 0:
            return None
    return get_session(session_id, user_id)

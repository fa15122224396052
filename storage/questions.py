"""Question bank queries."""
from __future__ import annotations

import datetime as dt
from typing import Any, Dict, List, Optional, Sequence
from uuid import uuid4

from .sqlite import get_conn


def insert_question(
    *,
    question_text: str,
    topic: Optional[str] = None,
    difficulty: Optional[str] = None,
    question_type: Optional[str] = None,
    category: Optional[str] = None,
    answer_text: Optional[str] = None,
    is_mcq: bool = False,
    question_id: Optional[str] = None,
) -> str:
    """Insert a question bank row and return its id."""

    qid = question_id or uuid4().hex
    with get_conn() as conn:
        conn.execute(
            """INSERT INTO questions
               (id, question_text, answer_text, topic, category, difficulty, question_type, is_mcq, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                qid,
                question_text,
                answer_text,
                topic,
                category,
                difficulty,
                question_type,
                1 if is_mcq else 0,
                dt.datetime.now(dt.timezone.utc).isoformat(),
            ),
        )
    return qid


def _in_clause(column: str, values: Optional[Sequence[str]], clauses: List[str], params: List[Any]) -> None:
    if values is None:
        return
    if not values:
        # An empty filter list matches nothing, unlike None which disables the filter.
        clauses.append("0")
        return
    clauses.append(f"{column} IN ({', '.join('?' for _ in values)})")
    params.extend(values)


def random_questions(
    *,
    count: int,
    topics: Optional[Sequence[str]] = None,
    difficulties: Optional[Sequence[str]] = None,
    question_types: Optional[Sequence[str]] = None,
    categories: Optional[Sequence[str]] = None,
    mcq_only: bool = False,
) -> List[Dict[str, Any]]:
    """Return up to ``count`` random rows matching the given filters.

    ``None`` for any filter means "no filter". Fewer rows than requested is
    not an error.
    """

    if count <= 0:
        return []
    clauses: List[str] = []
    params: List[Any] = []
    _in_clause("topic", topics, clauses, params)
    _in_clause("difficulty", difficulties, clauses, params)
    _in_clause("question_type", question_types, clauses, params)
    _in_clause("category", categories, clauses, params)
    if mcq_only:
        clauses.append("is_mcq = 1")
    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    sql = (
        "SELECT id, question_text, topic, category, difficulty, question_type "
        f"FROM questions {where} ORDER BY RANDOM() LIMIT ?"
    )
    params.append(count)
    with get_conn() as conn:
        rows = conn.execute(sql, params).fetchall()
    return [dict(row) for row in rows]

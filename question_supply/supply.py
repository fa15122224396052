from __future__ import annotations  # Inspiration question selection from the question bank

import logging
from typing import Any, Callable, Dict, List, Optional, Sequence, Set

from interview_session.models import (
    InspirationQuestion,
    SupplyMeta,
    SupplyResult,
    normalize_question_count,
    parse_topics,
)

logger = logging.getLogger(__name__)

QuestionBank = Callable[..., List[Dict[str, Any]]]  # random_questions(count=, topics=, difficulties=, question_types=, mcq_only=)

LEVEL_TO_DIFFICULTY: Dict[str, str] = {
    "Junior": "easy",
    "Mid-level": "medium",
    "Senior": "hard",
    "Lead": "hard",
}

BEHAVIORAL_NOTE = "Behavioral questions are AI-generated"


def level_to_difficulty(level: Optional[str]) -> str:
    return LEVEL_TO_DIFFICULTY.get(level or "", "medium")


def question_types_for(interview_type: Optional[str]) -> Optional[List[str]]:  # None disables the filter
    if interview_type == "knowledge":
        return ["Knowledge"]
    if interview_type == "scenario":
        return ["Scenarios"]
    return None


def distribute(count: int, topic_count: int) -> List[int]:
    """Split ``count`` over topics; the first ``count % topic_count`` get one extra."""

    if topic_count <= 0:
        return []
    base, remainder = divmod(count, topic_count)
    return [base + (1 if index < remainder else 0) for index in range(topic_count)]


def _to_question(row: Dict[str, Any], *, topic: str, difficulty: str) -> InspirationQuestion:
    return InspirationQuestion(
        id=str(row["id"]),
        question_text=row.get("question_text") or "",
        topic=row.get("topic") or topic,
        difficulty=row.get("difficulty") or difficulty,
        question_type=row.get("question_type") or "Knowledge",
    )


def fetch_inspiration(
    bank: QuestionBank,
    *,
    topics: Sequence[str] | str | None,
    level: Optional[str],
    interview_type: Optional[str],
    question_count: Any,
) -> SupplyResult:
    """Pick reference questions for a session; never raises on bank failures."""

    count = normalize_question_count(question_count)
    selected_topics = parse_topics(topics if isinstance(topics, (str, list)) else list(topics or []))
    difficulty = level_to_difficulty(level)
    types = question_types_for(interview_type)

    if interview_type == "behavioral":
        return SupplyResult(meta=SupplyMeta(requested_count=count, note=BEHAVIORAL_NOTE))

    if not selected_topics:
        try:
            rows = bank(count=count, topics=None, difficulties=[difficulty], question_types=types, mcq_only=False)
        except Exception as exc:  # noqa: BLE001
            logger.error("Failed to fetch random questions: %s", exc)
            return SupplyResult(meta=SupplyMeta(requested_count=count, fallback_used=True))
        questions = [_to_question(row, topic="General", difficulty=difficulty) for row in rows[:count]]
        return SupplyResult(
            questions=questions,
            meta=SupplyMeta(
                requested_count=count,
                fetched_count=len(questions),
                distribution={"general": len(questions)},
            ),
        )

    collected: List[InspirationQuestion] = []
    achieved: Dict[str, int] = {}
    fallback_used = False
    for topic, wanted in zip(selected_topics, distribute(count, len(selected_topics))):
        if wanted == 0:
            continue
        try:
            rows = bank(count=wanted, topics=[topic], difficulties=[difficulty], question_types=types, mcq_only=False)
        except Exception as exc:  # noqa: BLE001
            logger.error("Failed to fetch questions for topic %s: %s", topic, exc)
            fallback_used = True
            continue
        found = [_to_question(row, topic=topic, difficulty=difficulty) for row in rows[:wanted]]
        collected.extend(found)
        achieved[topic] = len(found)
        if len(found) < wanted:
            fallback_used = True

    if len(collected) < count:
        shortfall = count - len(collected)
        seen: Set[str] = {question.id for question in collected}
        try:
            rows = bank(count=shortfall, topics=selected_topics, difficulties=None, question_types=types, mcq_only=False)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Relaxed question backfill failed: %s", exc)
            rows = []
        extra = [
            _to_question(row, topic="General", difficulty="medium")
            for row in rows
            if str(row.get("id")) not in seen
        ][:shortfall]
        collected.extend(extra)
        fallback_used = True

    return SupplyResult(
        questions=collected,
        meta=SupplyMeta(
            requested_count=count,
            fetched_count=len(collected),
            distribution=achieved,
            fallback_used=fallback_used,
        ),
    )


__all__ = [
    "BEHAVIORAL_NOTE",
    "LEVEL_TO_DIFFICULTY",
    "QuestionBank",
    "distribute",
    "fetch_inspiration",
    "level_to_difficulty",
    "question_types_for",
]

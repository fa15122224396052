"""Tests for inspiration question selection."""
from __future__ import annotations

from typing import Any, Dict, List

import pytest

from interview_session.models import InterviewSettings, normalize_question_count, parse_topics
from question_supply import distribute, fetch_inspiration, level_to_difficulty, question_types_for
from question_supply.supply import BEHAVIORAL_NOTE
from storage.questions import insert_question, random_questions


class FakeBank:
    """Question bank double keyed by (topic, difficulty) with a relaxed pool."""

    def __init__(self, by_topic: Dict[str, List[Dict[str, Any]]], relaxed: List[Dict[str, Any]] | None = None) -> None:
        self.by_topic = by_topic
        self.relaxed = relaxed or []
        self.calls: List[Dict[str, Any]] = []

    def __call__(self, **kwargs: Any) -> List[Dict[str, Any]]:
        self.calls.append(kwargs)
        if kwargs["difficulties"] is None:
            return self.relaxed[: kwargs["count"]]
        topic = (kwargs["topics"] or ["general"])[0]
        return self.by_topic.get(topic, [])[: kwargs["count"]]


def _rows(prefix: str, n: int, topic: str) -> List[Dict[str, Any]]:
    return [
        {"id": f"{prefix}{i}", "question_text": f"{topic} question {i}", "topic": topic, "difficulty": "hard"}
        for i in range(n)
    ]


def test_distribute_gives_remainder_to_first_topics():
    assert distribute(7, 3) == [3, 2, 2]
    assert distribute(2, 3) == [1, 1, 0]
    assert distribute(5, 0) == []


@pytest.mark.parametrize(
    "raw,expected",
    [(15, 10), (0, 1), (-3, 1), (3.6, 4), ("7", 7), ("abc", 5), (None, 5), (float("nan"), 5), (float("inf"), 5)],
)
def test_question_count_normalisation(raw, expected):
    assert normalize_question_count(raw) == expected


def test_topic_parsing_trims_and_dedupes():
    assert parse_topics(" Apex, LWC ,,Apex, Flows ") == ["Apex", "LWC", "Flows"]
    assert InterviewSettings(topics="Apex,Apex").topics == ["Apex"]


def test_level_and_type_mapping():
    assert level_to_difficulty("Senior") == "hard"
    assert level_to_difficulty("Junior") == "easy"
    assert level_to_difficulty("Principal") == "medium"
    assert question_types_for("knowledge") == ["Knowledge"]
    assert question_types_for("scenario") == ["Scenarios"]
    assert question_types_for("mixed") is None


def test_behavioral_never_queries_bank():
    bank = FakeBank({})
    result = fetch_inspiration(bank, topics=["Apex"], level="Senior", interview_type="behavioral", question_count=4)
    assert result.questions == []
    assert result.meta.note == BEHAVIORAL_NOTE
    assert result.meta.requested_count == 4
    assert bank.calls == []


def test_no_topics_uses_general_bucket():
    bank = FakeBank({"general": _rows("g", 5, "General")})
    result = fetch_inspiration(bank, topics=[], level="Mid-level", interview_type="knowledge", question_count=3)
    assert len(result.questions) == 3
    assert result.meta.distribution == {"general": 3}
    assert result.meta.fallback_used is False
    assert bank.calls[0]["difficulties"] == ["medium"]
    assert bank.calls[0]["question_types"] == ["Knowledge"]


def test_bank_failure_without_topics_flags_fallback():
    def broken(**_: Any) -> List[Dict[str, Any]]:
        raise RuntimeError("db down")

    result = fetch_inspiration(broken, topics=None, level="Senior", interview_type="mixed", question_count=2)
    assert result.questions == []
    assert result.meta.fallback_used is True


def test_backfill_skips_already_selected_questions():
    bank = FakeBank(
        {"Apex": _rows("a", 5, "Apex"), "LWC": _rows("l", 1, "LWC")},
        relaxed=[{"id": "a0", "question_text": "dup"}, {"id": "x1", "question_text": "extra one"}],
    )
    result = fetch_inspiration(bank, topics=["Apex", "LWC"], level="Senior", interview_type="mixed", question_count=4)
    ids = [question.id for question in result.questions]
    # the relaxed query only returned an already selected id
    assert ids == ["a0", "a1", "l0"]
    assert result.meta.distribution == {"Apex": 2, "LWC": 1}
    assert result.meta.fallback_used is True
    assert result.meta.fetched_count == len(ids)
    relaxed_call = bank.calls[-1]
    assert relaxed_call["difficulties"] is None
    assert relaxed_call["topics"] == ["Apex", "LWC"]
    assert relaxed_call["count"] == 1


def test_shortfall_backfilled_from_relaxed_query():
    bank = FakeBank({"Apex": _rows("a", 1, "Apex")}, relaxed=[{"id": "x1", "question_text": "Explain SOQL for loops"}])
    result = fetch_inspiration(bank, topics=["Apex"], level="Junior", interview_type="mixed", question_count=2)
    assert [q.id for q in result.questions] == ["a0", "x1"]
    assert result.questions[1].topic == "General"
    assert result.questions[1].difficulty == "medium"
    assert result.meta.distribution == {"Apex": 1}
    assert result.meta.fallback_used is True


def test_exact_supply_is_not_a_fallback():
    bank = FakeBank({"Apex": _rows("a", 3, "Apex"), "LWC": _rows("l", 3, "LWC")})
    result = fetch_inspiration(bank, topics="Apex, LWC", level="Lead", interview_type="mixed", question_count=5)
    assert [q.topic for q in result.questions] == ["Apex", "Apex", "Apex", "LWC", "LWC"]
    assert result.meta.fallback_used is False
    assert all(call["difficulties"] == ["hard"] for call in bank.calls)


def test_sqlite_question_bank_filters():
    insert_question(question_text="Bulkify a trigger", topic="Apex", difficulty="hard", question_type="Scenarios")
    insert_question(question_text="What is a wire adapter?", topic="LWC", difficulty="hard", question_type="Knowledge")
    insert_question(question_text="What is a sharing rule?", topic="Security", difficulty="easy", question_type="Knowledge")

    result = fetch_inspiration(
        random_questions, topics=["Apex", "LWC"], level="Senior", interview_type="mixed", question_count=2
    )
    assert sorted(q.topic for q in result.questions) == ["Apex", "LWC"]
    assert result.meta.fallback_used is False

    assert random_questions(count=5, topics=["Apex"], question_types=["Knowledge"]) == []
    assert random_questions(count=5, topics=[]) == []
    assert len(random_questions(count=5)) == 3

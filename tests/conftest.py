import asyncio
import os
import sys
import tempfile
from pathlib import Path
from typing import Any, AsyncIterator, Dict, List, Optional

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from storage.migrate import migrate
from config.settings import settings
from interview_session.models import InspirationQuestion, SupplyMeta, SupplyResult


@pytest.fixture(autouse=True)
def tmp_db(monkeypatch):
    td = tempfile.TemporaryDirectory()
    db_path = os.path.join(td.name, "test.db")
    monkeypatch.setattr(settings, "DB_PATH", db_path, raising=False)
    migrate(db_path)
    try:
        yield
    finally:
        td.cleanup()


@pytest.fixture
def auth_headers(monkeypatch):
    monkeypatch.setattr(settings, "ACCESS_TOKENS", {"tok-alice": "alice", "tok-bob": "bob"}, raising=False)
    return {"Authorization": "Bearer tok-alice"}


class FakeBackend:
    """In-memory SessionBackend recording every call."""

    def __init__(
        self,
        *,
        session_id: Optional[str] = "sess-1",
        replies: Optional[List[List[bytes]]] = None,
        question: Optional[Dict[str, Any]] = None,
        token: Optional[Dict[str, Any]] = None,
        authenticated: bool = True,
        fail_create: bool = False,
    ) -> None:
        self.session_id = session_id
        self.replies = list(replies or [])
        self.question = question
        self.token = token if token is not None else {"value": "ek_test", "session": {"model": "gpt-realtime"}}
        self._authenticated = authenticated
        self.fail_create = fail_create
        self.created: List[Dict[str, Any]] = []
        self.updates: List[Dict[str, Any]] = []
        self.messages: List[Dict[str, Any]] = []
        self.feedback: List[Dict[str, Any]] = []
        self.completions: List[List[Dict[str, str]]] = []
        self.question_requests: List[Dict[str, Any]] = []
        self.sdp_offers: List[str] = []

    @property
    def authenticated(self) -> bool:
        return self._authenticated

    async def create_session(self, payload):
        self.created.append(payload)
        if self.fail_create:
            raise RuntimeError("database unavailable")
        return self.session_id

    async def update_session(self, session_id, status, ended_at=None):
        self.updates.append({"session_id": session_id, "status": status, "ended_at": ended_at})

    async def persist_message(self, session_id, *, role, content, source, metadata=None):
        self.messages.append(
            {"session_id": session_id, "role": role, "content": content, "source": source, "metadata": metadata or {}}
        )

    async def persist_feedback(self, session_id, *, question_text, score, rubric, feedback):
        self.feedback.append(
            {"session_id": session_id, "question_text": question_text, "score": score, "rubric": rubric, "feedback": feedback}
        )

    async def fetch_question(self, *, topic=None, difficulty=None, category=None):
        self.question_requests.append({"topic": topic, "difficulty": difficulty, "category": category})
        if self.question is None:
            from interview_session.backend import BackendError

            raise BackendError("No questions available.", 404)
        return self.question

    async def fetch_inspiration(self, *, topics, level, interview_type, question_count):
        questions = [
            InspirationQuestion(id="q1", question_text="Explain governor limits.", topic="Apex", difficulty="hard")
        ]
        return SupplyResult(
            questions=questions,
            meta=SupplyMeta(requested_count=question_count, fetched_count=1, distribution={"Apex": 1}),
        )

    async def create_realtime_token(self, payload):
        return self.token

    async def exchange_sdp(self, client_secret, offer_sdp):
        self.sdp_offers.append(offer_sdp)
        return "v=0\r\n"

    async def stream_completion(self, messages, model) -> AsyncIterator[bytes]:
        self.completions.append(list(messages))
        chunks = self.replies.pop(0) if self.replies else []
        for chunk in chunks:
            await asyncio.sleep(0)
            yield chunk


@pytest.fixture
def fake_backend():
    return FakeBackend

from __future__ import annotations  # Shared mutable state for one interview attempt

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .backend import SessionBackend
from .models import InspirationQuestion, InterviewSettings, SessionRecord, SessionStatus, Turn
from .tasks import spawn_detached
from .transcript import TranscriptStore


@dataclass
class SessionContext:  # Owned by the state machine, observed by adapters and tools
    backend: SessionBackend
    settings: InterviewSettings = field(default_factory=InterviewSettings)
    record: Optional[SessionRecord] = None
    status: SessionStatus = "idle"
    questions_asked: int = 0
    error: Optional[str] = None
    inspiration: List[InspirationQuestion] = field(default_factory=list)
    transcript: TranscriptStore = field(init=False)

    def __post_init__(self) -> None:
        self.transcript = TranscriptStore(self._persist_turn)

    @property
    def session_id(self) -> Optional[str]:
        return self.record.id if self.record else None

    @property
    def target_question_count(self) -> int:
        if self.record is not None:
            return self.record.target_question_count
        return self.settings.question_count

    def bind_record(self, record: Optional[SessionRecord]) -> None:
        self.record = record
        self.transcript.session_id = self.session_id

    def reset(self) -> None:
        self.record = None
        self.status = "idle"
        self.questions_asked = 0
        self.error = None
        self.inspiration = []
        self.transcript.clear()
        self.transcript.session_id = None

    async def _persist_turn(self, turn: Turn, metadata: Dict[str, Any]) -> None:
        session_id = self.session_id
        if not session_id:
            return
        await self.backend.persist_message(
            session_id,
            role=turn.role,
            content=turn.content,
            source=turn.source,
            metadata=metadata,
        )

    def persist_feedback(
        self,
        *,
        feedback: str,
        question_text: Optional[str] = None,
        score: Optional[float] = None,
        rubric: Optional[Dict[str, Any]] = None,
    ) -> None:
        session_id = self.session_id
        if not session_id:
            return
        spawn_detached(
            self.backend.persist_feedback(
                session_id,
                question_text=question_text,
                score=score,
                rubric=rubric or {},
                feedback=feedback,
            ),
            what="persist_feedback",
            session_id=session_id,
        )


__all__ = ["SessionContext"]

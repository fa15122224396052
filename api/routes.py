"""FastAPI routes backing the live interview session client."""
from __future__ import annotations

import json
import logging
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx
from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from fastapi.responses import StreamingResponse

from api.deps import app_config, http_client, require_user
from api.schemas import (
    ChatStreamReq,
    FeedbackReq,
    MessageReq,
    QuestionOut,
    QuestionReq,
    QuestionsReq,
    RealtimeSessionReq,
    SessionCreateReq,
    SessionUpdateReq,
)
from config import AppConfig, resolve_route
from config.settings import settings
from interview_session.models import SupplyResult, normalize_question_count
from interview_session.prompts import build_realtime_instructions
from llm_gateway import LlmGatewayError, stream_chat
from question_supply import fetch_inspiration
from storage.messages import insert_feedback, insert_message
from storage.questions import random_questions
from storage.sessions import SessionRecord, get_session, insert_session, update_session_status
from stt import SpeechToTextError, Transcript, transcribe


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/live-agent")
realtime_router = APIRouter(prefix="/api/realtime")
chat_router = APIRouter(prefix="/api/chat")
stt_router = APIRouter(prefix="/api/stt")


def _require_owned_session(session_id: Optional[str], user_id: str) -> SessionRecord:
    if not session_id or not session_id.strip():
        raise HTTPException(status_code=400, detail="session_id is required.")
    record = get_session(session_id.strip(), user_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Session not found.")
    return record


@router.post("/session")
def create_session(req: SessionCreateReq, user_id: str = Depends(require_user)) -> Dict[str, Any]:
    try:
        record = insert_session(
            user_id=user_id,
            role=(req.role or "").strip() or settings.DEFAULT_ROLE,
            interview_type=(req.interview_type or "").strip() or settings.DEFAULT_INTERVIEW_TYPE,
            level=(req.level or "").strip() or None,
            model=req.model,
            metadata=req.metadata,
        )
    except Exception as exc:  # noqa: BLE001
        logger.exception("Failed to create live agent session")
        raise HTTPException(status_code=500, detail="Could not create live session.") from exc
    return {"session": record.model_dump()}


@router.patch("/session")
def update_session(req: SessionUpdateReq, user_id: str = Depends(require_user)) -> Dict[str, Any]:
    if not req.session_id or not req.session_id.strip():
        raise HTTPException(status_code=400, detail="session_id is required.")
    record = update_session_status(
        req.session_id.strip(),
        user_id,
        status=(req.status or "").strip() or "ended",
        ended_at=req.ended_at,
    )
    if record is None:
        raise HTTPException(status_code=404, detail="Session not found.")
    return {"session": record.model_dump()}


@router.post("/message")
def create_message(req: MessageReq, user_id: str = Depends(require_user)) -> Dict[str, Any]:
    if not req.role or not req.content or not req.content.strip():
        raise HTTPException(status_code=400, detail="session_id, role, and content are required.")
    record = _require_owned_session(req.session_id, user_id)
    message_id = insert_message(
        session_id=record.id,
        user_id=user_id,
        role=req.role,
        content=req.content.strip(),
        source=req.source,
        metadata=req.metadata,
    )
    return {"message": {"id": message_id}}


@router.post("/feedback")
def create_feedback(req: FeedbackReq, user_id: str = Depends(require_user)) -> Dict[str, Any]:
    if not req.feedback or not req.feedback.strip():
        raise HTTPException(status_code=400, detail="session_id and feedback are required.")
    record = _require_owned_session(req.session_id, user_id)
    feedback_id = insert_feedback(
        session_id=record.id,
        user_id=user_id,
        question_text=req.question_text,
        score=req.score,
        rubric=req.rubric,
        feedback=req.feedback.strip(),
    )
    return {"feedback": {"id": feedback_id}}


@router.post("/questions", response_model=SupplyResult)
def inspiration_questions(req: QuestionsReq, user_id: str = Depends(require_user)) -> SupplyResult:
    return fetch_inspiration(
        random_questions,
        topics=req.topics,
        level=req.level,
        interview_type=req.interview_type,
        question_count=req.question_count,
    )


@router.post("/question")
def next_question(req: QuestionReq, user_id: str = Depends(require_user)) -> Dict[str, Any]:
    topic = (req.topic or "").strip()
    difficulty = (req.difficulty or "").strip()
    category = (req.category or "").strip()
    try:
        rows = random_questions(
            count=5,
            topics=[topic] if topic else None,
            difficulties=[difficulty] if difficulty else None,
        )
    except Exception as exc:  # noqa: BLE001
        logger.exception("Failed to fetch random question")
        raise HTTPException(status_code=500, detail="Could not fetch question.") from exc
    selected = None
    if category:
        selected = next((row for row in rows if row.get("category") == category), None)
    if selected is None and rows:
        selected = rows[0]
    if selected is None:
        raise HTTPException(status_code=404, detail="No questions available.")
    return {"question": QuestionOut.model_validate(selected).model_dump()}


@realtime_router.post("/session")
async def create_realtime_session(
    req: RealtimeSessionReq,
    user_id: str = Depends(require_user),
    client: httpx.AsyncClient = Depends(http_client),
) -> Dict[str, Any]:
    """Mint a short-lived client secret for the realtime audio channel."""

    if not settings.OPENAI_API_KEY:
        raise HTTPException(status_code=500, detail="Missing environment variables: OPENAI_API_KEY")
    metadata: Dict[str, Any] = {
        "user_id": user_id,
        "role": (req.role or "").strip() or settings.DEFAULT_ROLE,
        "interview_type": (req.interview_type or "").strip() or settings.DEFAULT_INTERVIEW_TYPE,
    }
    if req.level and req.level.strip():
        metadata["level"] = req.level.strip()
    if req.topics:
        metadata["topics"] = req.topics
    if req.question_count is not None and req.question_count >= 1:
        metadata["question_count"] = normalize_question_count(req.question_count)
    payload = {
        "expires_after": {"anchor": "created_at", "seconds": settings.REALTIME_TOKEN_TTL_SECONDS},
        "session": {
            "type": "realtime",
            "model": settings.REALTIME_MODEL,
            "instructions": build_realtime_instructions(
                role=metadata["role"],
                interview_type=metadata["interview_type"],
                level=metadata.get("level"),
                topics=metadata.get("topics"),
                question_count=metadata.get("question_count"),
            ),
        },
    }
    try:
        response = await client.post(
            f"{settings.REALTIME_BASE_URL.rstrip('/')}/client_secrets",
            json=payload,
            headers={"Authorization": f"Bearer {settings.OPENAI_API_KEY}", "Content-Type": "application/json"},
        )
    except httpx.HTTPError as exc:
        logger.exception("Realtime client secret request failed")
        raise HTTPException(status_code=502, detail="Failed to create realtime client secret.") from exc
    try:
        data = response.json()
    except ValueError:
        data = None
    if response.status_code >= 400 or not isinstance(data, dict):
        message = "Failed to create realtime client secret."
        if isinstance(data, dict) and isinstance(data.get("error"), dict):
            message = data["error"].get("message") or message
        raise HTTPException(status_code=response.status_code if response.status_code >= 400 else 502, detail=message)
    return {**data, "metadata": metadata}


def _frame(payload: Dict[str, Any]) -> bytes:
    return f"data: {json.dumps(payload)}\n\n".encode("utf-8")


@chat_router.post("/stream")
async def chat_stream(
    req: ChatStreamReq,
    user_id: str = Depends(require_user),
    cfg: AppConfig = Depends(app_config),
) -> StreamingResponse:
    """Proxy a streaming completion as ``text``/``error``/``done`` event frames."""

    if not req.messages:
        raise HTTPException(status_code=400, detail="messages are required.")
    try:
        route = resolve_route(cfg, settings.CHAT_ROUTE, req.model or settings.CHAT_MODEL)
    except KeyError as exc:
        logger.exception("Chat route missing from configuration")
        raise HTTPException(status_code=500, detail="Chat model is not configured.") from exc
    messages: List[Dict[str, str]] = [message.model_dump() for message in req.messages]

    async def _events() -> AsyncIterator[bytes]:
        try:
            async for text in stream_chat(messages, cfg=route):
                yield _frame({"text": text})
        except LlmGatewayError as exc:
            logger.exception("LLM stream failed")
            yield _frame({"error": f"LLM request failed: {exc}"})
            return
        yield _frame({"done": True})

    return StreamingResponse(_events(), media_type="text/event-stream")


@stt_router.post("/deepgram", response_model=Transcript)
async def deepgram_transcribe(
    audio: UploadFile = File(...),
    user_id: str = Depends(require_user),
) -> Transcript:
    if audio.size is not None and audio.size > settings.STT_MAX_BYTES:
        raise HTTPException(status_code=400, detail="Audio file too large. Maximum size is 10MB.")
    data = await audio.read()
    logger.info("STT request user=%s bytes=%d", user_id, len(data))
    try:
        return await transcribe(data, content_type=audio.content_type)
    except SpeechToTextError as exc:
        if exc.status_code >= 500:
            logger.exception("Speech-to-text failed")
        raise HTTPException(status_code=exc.status_code, detail=str(exc)) from exc

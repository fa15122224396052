from __future__ import annotations  # HTTP client for the live agent backend endpoints

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional, Protocol, Sequence

import httpx

from config.settings import settings

from .models import SupplyResult

logger = logging.getLogger(__name__)


class BackendError(RuntimeError):  # Non-success response from a backend endpoint
    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class SessionBackend(Protocol):  # Collaborators consumed by the session orchestrator
    @property
    def authenticated(self) -> bool: ...

    async def create_session(self, payload: Dict[str, Any]) -> Optional[str]: ...

    async def update_session(self, session_id: str, status: str, ended_at: Optional[str] = None) -> None: ...

    async def persist_message(
        self,
        session_id: str,
        *,
        role: str,
        content: str,
        source: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None: ...

    async def persist_feedback(
        self,
        session_id: str,
        *,
        question_text: Optional[str],
        score: Optional[float],
        rubric: Dict[str, Any],
        feedback: str,
    ) -> None: ...

    async def fetch_question(
        self,
        *,
        topic: Optional[str] = None,
        difficulty: Optional[str] = None,
        category: Optional[str] = None,
    ) -> Dict[str, Any]: ...

    async def fetch_inspiration(
        self,
        *,
        topics: Sequence[str],
        level: str,
        interview_type: str,
        question_count: int,
    ) -> SupplyResult: ...

    async def create_realtime_token(self, payload: Dict[str, Any]) -> Dict[str, Any]: ...

    async def exchange_sdp(self, client_secret: str, offer_sdp: str) -> str: ...

    def stream_completion(self, messages: List[Dict[str, str]], model: str) -> AsyncIterator[bytes]: ...


def _error_text(response: httpx.Response, fallback: str) -> str:
    try:
        data = response.json()
    except ValueError:
        return fallback
    if isinstance(data, dict):
        error = data.get("error") or data.get("detail")
        if isinstance(error, dict):
            error = error.get("message")
        if isinstance(error, str) and error:
            return error
    return fallback


class HttpSessionBackend:  # httpx implementation of SessionBackend
    def __init__(
        self,
        access_token: str,
        *,
        base_url: Optional[str] = None,
        realtime_url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self._token = access_token
        self._realtime_url = (realtime_url or settings.REALTIME_BASE_URL).rstrip("/")
        self._client = client or httpx.AsyncClient(
            base_url=base_url or settings.API_BASE_URL,
            timeout=timeout or settings.HTTP_TIMEOUT_S,
        )

    @property
    def authenticated(self) -> bool:
        return bool(self._token and self._token.strip())

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self._token}", "Content-Type": "application/json"}

    async def _post(self, path: str, payload: Dict[str, Any], fallback: str) -> Dict[str, Any]:
        response = await self._client.post(path, json=payload, headers=self._headers())
        if response.status_code >= 400:
            raise BackendError(_error_text(response, fallback), response.status_code)
        try:
            data = response.json()
        except ValueError as exc:
            raise BackendError(fallback, response.status_code) from exc
        return data if isinstance(data, dict) else {}

    async def aclose(self) -> None:
        await self._client.aclose()

    async def create_session(self, payload: Dict[str, Any]) -> Optional[str]:
        data = await self._post("/api/live-agent/session", payload, "Failed to create session.")
        session = data.get("session") or {}
        return session.get("id")

    async def update_session(self, session_id: str, status: str, ended_at: Optional[str] = None) -> None:
        payload: Dict[str, Any] = {"session_id": session_id, "status": status}
        if ended_at:
            payload["ended_at"] = ended_at
        response = await self._client.patch("/api/live-agent/session", json=payload, headers=self._headers())
        if response.status_code >= 400:
            raise BackendError(_error_text(response, "Could not update live session."), response.status_code)

    async def persist_message(
        self,
        session_id: str,
        *,
        role: str,
        content: str,
        source: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        await self._post(
            "/api/live-agent/message",
            {
                "session_id": session_id,
                "role": role,
                "content": content,
                "source": source,
                "metadata": metadata or {},
            },
            "Could not save message.",
        )

    async def persist_feedback(
        self,
        session_id: str,
        *,
        question_text: Optional[str],
        score: Optional[float],
        rubric: Dict[str, Any],
        feedback: str,
    ) -> None:
        await self._post(
            "/api/live-agent/feedback",
            {
                "session_id": session_id,
                "question_text": question_text,
                "score": score,
                "rubric": rubric,
                "feedback": feedback,
            },
            "Could not save feedback.",
        )

    async def fetch_question(
        self,
        *,
        topic: Optional[str] = None,
        difficulty: Optional[str] = None,
        category: Optional[str] = None,
    ) -> Dict[str, Any]:
        data = await self._post(
            "/api/live-agent/question",
            {"topic": topic, "difficulty": difficulty, "category": category},
            "Unable to fetch question.",
        )
        return data.get("question") or {}

    async def fetch_inspiration(
        self,
        *,
        topics: Sequence[str],
        level: str,
        interview_type: str,
        question_count: int,
    ) -> SupplyResult:
        data = await self._post(
            "/api/live-agent/questions",
            {
                "topics": list(topics),
                "level": level,
                "interview_type": interview_type,
                "question_count": question_count,
            },
            "Unable to fetch inspiration questions.",
        )
        return SupplyResult.model_validate(data)

    async def create_realtime_token(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await self._post("/api/realtime/session", payload, "Failed to create a realtime session.")

    async def exchange_sdp(self, client_secret: str, offer_sdp: str) -> str:
        response = await self._client.post(
            f"{self._realtime_url}/calls",
            content=offer_sdp.encode("utf-8"),
            headers={"Authorization": f"Bearer {client_secret}", "Content-Type": "application/sdp"},
        )
        answer = response.text
        if response.status_code >= 400:
            raise BackendError(answer or "Failed to establish realtime connection.", response.status_code)
        return answer

    async def stream_completion(self, messages: List[Dict[str, str]], model: str) -> AsyncIterator[bytes]:
        async with self._stream("/api/chat/stream", {"messages": messages, "model": model}) as response:
            async for chunk in response.aiter_bytes():
                yield chunk

    @asynccontextmanager
    async def _stream(self, path: str, payload: Dict[str, Any]) -> AsyncIterator[httpx.Response]:
        async with self._client.stream("POST", path, json=payload, headers=self._headers()) as response:
            if response.status_code >= 400:
                await response.aread()
                raise BackendError(
                    _error_text(response, "Failed to get response from AI"),
                    response.status_code,
                )
            yield response


__all__ = ["BackendError", "HttpSessionBackend", "SessionBackend"]

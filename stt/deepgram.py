from __future__ import annotations  # Deepgram speech-to-text client

import logging
from typing import Any, Optional

import httpx
from pydantic import BaseModel

from config.settings import settings

logger = logging.getLogger(__name__)

DEEPGRAM_PARAMS = {
    "model": "nova-3",
    "language": "en",
    "smart_format": "true",
    "punctuate": "true",
}


class SpeechToTextError(RuntimeError):  # Upstream transcription failure
    def __init__(self, message: str, status_code: int = 502) -> None:
        super().__init__(message)
        self.status_code = status_code


class AudioTooLargeError(SpeechToTextError):  # Rejected before upload
    def __init__(self, size: int, limit: int) -> None:
        super().__init__(f"Audio file too large. Maximum size is {limit // (1024 * 1024)}MB.", status_code=400)
        self.size = size
        self.limit = limit


class Transcript(BaseModel):
    transcript: str = ""
    confidence: float = 0.0


def _first_alternative(data: Any) -> dict:
    try:
        alternative = data["results"]["channels"][0]["alternatives"][0]
    except (KeyError, IndexError, TypeError):
        return {}
    return alternative if isinstance(alternative, dict) else {}


async def transcribe(
    audio: bytes,
    *,
    content_type: Optional[str] = None,
    client: Optional[httpx.AsyncClient] = None,
    max_bytes: Optional[int] = None,
) -> Transcript:
    """Transcribe one recorded clip. Oversized audio is rejected before any request."""

    limit = max_bytes if max_bytes is not None else settings.STT_MAX_BYTES
    if len(audio) > limit:
        raise AudioTooLargeError(len(audio), limit)
    if not settings.DEEPGRAM_API_KEY:
        raise SpeechToTextError("Missing environment variables: DEEPGRAM_API_KEY", status_code=500)

    headers = {
        "Authorization": f"Token {settings.DEEPGRAM_API_KEY}",
        "Content-Type": content_type or "audio/webm",
    }
    logger.info("Deepgram STT request size=%d bytes", len(audio))
    http_client = client or httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_S)
    try:
        response = await http_client.post(settings.DEEPGRAM_URL, params=DEEPGRAM_PARAMS, content=audio, headers=headers)
    except httpx.HTTPError as exc:
        logger.error("Deepgram transport failure: %s", exc)
        raise SpeechToTextError("Speech-to-text request failed") from exc
    finally:
        if client is None:
            await http_client.aclose()
    if response.status_code >= 400:
        logger.error("Deepgram API error: %s - %s", response.status_code, response.text[:200])
        raise SpeechToTextError(f"Deepgram API error: {response.status_code}", status_code=response.status_code)
    alternative = _first_alternative(response.json())
    result = Transcript(
        transcript=alternative.get("transcript") or "",
        confidence=alternative.get("confidence") or 0.0,
    )
    logger.info("Deepgram STT complete confidence=%s", result.confidence)
    return result


__all__ = ["AudioTooLargeError", "DEEPGRAM_PARAMS", "SpeechToTextError", "Transcript", "transcribe"]

"""Tests for the Deepgram speech-to-text client."""
from __future__ import annotations

import asyncio

import httpx
import pytest

from config.settings import settings
from stt import AudioTooLargeError, SpeechToTextError, transcribe
from stt.deepgram import DEEPGRAM_PARAMS


def _run(handler, audio: bytes = b"\x00" * 32, **kwargs):
    async def scenario():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await transcribe(audio, content_type="audio/webm", client=client, **kwargs)

    return asyncio.run(scenario())


def test_transcribe_returns_first_alternative(monkeypatch):
    monkeypatch.setattr(settings, "DEEPGRAM_API_KEY", "dg-key")
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers["authorization"]
        seen["params"] = dict(request.url.params)
        return httpx.Response(
            200,
            json={"results": {"channels": [{"alternatives": [{"transcript": "Hello world", "confidence": 0.93}]}]}},
        )

    result = _run(handler)
    assert result.transcript == "Hello world"
    assert result.confidence == pytest.approx(0.93)
    assert seen["auth"] == "Token dg-key"
    assert seen["params"] == DEEPGRAM_PARAMS


def test_oversized_audio_rejected_before_upload(monkeypatch):
    monkeypatch.setattr(settings, "DEEPGRAM_API_KEY", "dg-key")
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json={})

    with pytest.raises(AudioTooLargeError) as err:
        _run(handler, audio=b"\x00" * 2048, max_bytes=1024)
    assert err.value.status_code == 400
    assert calls == []


def test_missing_key_and_upstream_errors(monkeypatch):
    monkeypatch.setattr(settings, "DEEPGRAM_API_KEY", None)
    with pytest.raises(SpeechToTextError) as err:
        _run(lambda request: httpx.Response(200, json={}))
    assert err.value.status_code == 500

    monkeypatch.setattr(settings, "DEEPGRAM_API_KEY", "dg-key")
    with pytest.raises(SpeechToTextError) as err:
        _run(lambda request: httpx.Response(402, text="payment required"))
    assert err.value.status_code == 402


def test_empty_result_is_blank_transcript(monkeypatch):
    monkeypatch.setattr(settings, "DEEPGRAM_API_KEY", "dg-key")
    result = _run(lambda request: httpx.Response(200, json={"results": {"channels": []}}))
    assert result.transcript == ""
    assert result.confidence == 0.0

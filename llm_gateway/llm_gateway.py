from __future__ import annotations  # Streaming chat completion gateway

import logging
import os
from typing import Any, AsyncIterator, Dict, Optional, Sequence

import httpx

from config import LlmRoute
from interview_session.framing import EventFramer


logger = logging.getLogger(__name__)  # Module logger setup


class LlmGatewayError(RuntimeError):  # Base gateway error
    pass


async def stream_chat(
    messages: Sequence[Dict[str, str]],
    *,
    cfg: LlmRoute,
    client: Optional[httpx.AsyncClient] = None,
    options: Optional[Dict[str, Any]] = None,
) -> AsyncIterator[str]:
    """Yield text deltas from an OpenAI-compatible streaming completion route."""

    input_messages = _normalize_messages(messages)
    payload: Dict[str, Any] = {"model": cfg.model, "messages": input_messages, "stream": True}
    if cfg.temperature is not None:
        payload["temperature"] = cfg.temperature
    if options:
        payload.update(options)
    headers = {"Content-Type": "application/json", "Accept": "text/event-stream"}
    if cfg.api_key_env:
        api_key = os.getenv(cfg.api_key_env)
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
    headers.update(cfg.extra_headers)
    preview = _preview(input_messages)
    if len(preview) > 120:
        preview = preview[:117] + "..."
    logger.info("LLM stream start route=%s model=%s preview=%s", cfg.name, cfg.model, preview)

    http_client = client or httpx.AsyncClient(timeout=cfg.timeout_s)
    framer = EventFramer()
    chars = 0
    try:
        async with http_client.stream("POST", f"{cfg.base_url}{cfg.endpoint}", json=payload, headers=headers) as response:
            if response.status_code >= 400:
                logger.error("LLM error status: %s", response.status_code)
                raise LlmGatewayError(f"LLM returned status {response.status_code}")
            async for chunk in response.aiter_bytes():
                for event in framer.feed(_mark_done(chunk)):
                    text = _extract_delta(event)
                    if text:
                        chars += len(text)
                        yield text
                if framer.done:
                    break
            else:
                for event in framer.flush():
                    text = _extract_delta(event)
                    if text:
                        chars += len(text)
                        yield text
    except httpx.HTTPError as exc:
        logger.error("LLM transport failure: %s", exc)
        raise LlmGatewayError("LLM transport failed") from exc
    finally:
        if client is None:
            await http_client.aclose()
    logger.info("LLM stream done route=%s model=%s chars=%d", cfg.name, cfg.model, chars)


def _mark_done(chunk: bytes) -> bytes:  # OpenAI-style terminator becomes a done payload
    return chunk.replace(b"data: [DONE]", b'data: {"done": true}')


def _normalize_messages(messages: Sequence[Dict[str, str]]) -> list[Dict[str, str]]:  # Ensure message payload shape
    normalized: list[Dict[str, str]] = []
    for item in messages:
        if not isinstance(item, dict):
            raise TypeError("Each chat message must be a dict with role/content")
        role = str(item.get("role", "")).strip()
        content = str(item.get("content", ""))
        if not role:
            raise ValueError("Chat message missing role")
        normalized.append({"role": role, "content": content})
    return normalized


def _preview(messages: Sequence[Dict[str, str]]) -> str:  # Build preview string for logging
    for message in reversed(messages):
        text = message.get("content", "").strip()
        if text:
            return text.splitlines()[0]
    return ""


def _extract_delta(data: Any) -> str:  # Extract streamed text from one completion chunk
    if not isinstance(data, dict):
        return ""
    choices = data.get("choices")
    if isinstance(choices, list) and choices and isinstance(choices[0], dict):
        delta = choices[0].get("delta")
        content = delta.get("content") if isinstance(delta, dict) else None
        if isinstance(content, str):
            return content
        return ""
    if isinstance(data.get("text"), str):
        return data["text"]
    return ""

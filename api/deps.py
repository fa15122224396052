"""Shared FastAPI dependencies: bearer auth, HTTP client and route config."""
from __future__ import annotations

from pathlib import Path
from typing import AsyncIterator, Optional

import httpx
from fastapi import Header, HTTPException

from config import AppConfig, load_config
from config.settings import settings


def require_user(authorization: Optional[str] = Header(default=None)) -> str:
    """Resolve the caller's user id from ``Authorization: Bearer <token>``."""

    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=401, detail="Unauthorized")
    token = authorization[7:].strip()
    if not token:
        raise HTTPException(status_code=401, detail="Unauthorized")
    user_id = settings.ACCESS_TOKENS.get(token)
    if not user_id:
        raise HTTPException(status_code=401, detail="Unauthorized: Invalid session")
    return user_id


async def http_client() -> AsyncIterator[httpx.AsyncClient]:
    async with httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_S) as client:
        yield client


def app_config() -> AppConfig:
    return load_config(Path(settings.LLM_CONFIG_PATH))

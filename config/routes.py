from __future__ import annotations  # Configuration schema for LLM routing

from pathlib import Path
from typing import Dict

from pydantic import BaseModel, Field


class LlmRoute(BaseModel):  # Streaming completion endpoint configuration
    name: str
    base_url: str
    endpoint: str
    model: str
    timeout_s: float = Field(ge=0.1)
    api_key_env: str | None = None
    extra_headers: Dict[str, str] = Field(default_factory=dict)
    temperature: float | None = Field(default=None, ge=0.0, le=2.0)


class AppConfig(BaseModel):  # Application configuration root
    llm_routes: Dict[str, LlmRoute]
    model_aliases: Dict[str, str] = Field(default_factory=dict)


def load_config(path: Path) -> AppConfig:  # Load configuration from disk
    data = path.read_text(encoding="utf-8")
    return AppConfig.model_validate_json(data)


def resolve_route(cfg: AppConfig, route_id: str, model: str | None = None) -> LlmRoute:  # Pick route and apply model alias
    if route_id not in cfg.llm_routes:
        raise KeyError(f"Route '{route_id}' missing from configuration")
    route = cfg.llm_routes[route_id]
    if model:
        resolved = cfg.model_aliases.get(model)
        if resolved:
            route = route.model_copy(update={"model": resolved})
    return route

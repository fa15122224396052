from __future__ import annotations  # Re-export llm_gateway public API

from .llm_gateway import LlmGatewayError, stream_chat

__all__ = ["LlmGatewayError", "stream_chat"]

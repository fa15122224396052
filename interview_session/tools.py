"""Model-initiated function calls and their results.

Arguments may stream in as fragments keyed by a call id; once a call is
complete it is dispatched, the structured result is written back into the
conversation and a new response cycle is requested so the model keeps going.
"""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from observability import log_event

from .backend import BackendError
from .context import SessionContext
from .models import ToolCall, Turn

logger = logging.getLogger(__name__)

SendFn = Callable[[Dict[str, Any]], None]
ToolHandler = Callable[[Dict[str, Any]], Awaitable[Dict[str, Any]]]

TOOL_DEFINITIONS: List[Dict[str, Any]] = [
    {
        "type": "function",
        "name": "fetch_next_question",
        "description": "Fetch the next interview question for the current role.",
        "parameters": {
            "type": "object",
            "properties": {
                "topic": {"type": "string", "description": "Optional topic or skill area."},
                "difficulty": {"type": "string", "description": "easy, medium, or hard."},
                "category": {"type": "string", "description": "Optional category filter."},
            },
            "required": [],
        },
    },
    {
        "type": "function",
        "name": "store_answer",
        "description": "Store the user's answer and any scoring metadata.",
        "parameters": {
            "type": "object",
            "properties": {
                "question_id": {"type": "string"},
                "answer_text": {"type": "string"},
                "score": {"type": "number"},
                "tags": {"type": "array", "items": {"type": "string"}},
            },
            "required": ["answer_text"],
        },
    },
    {
        "type": "function",
        "name": "store_feedback",
        "description": "Store brief feedback and rubric scoring for the user's answer.",
        "parameters": {
            "type": "object",
            "properties": {
                "question_text": {"type": "string"},
                "score": {"type": "number"},
                "rubric": {"type": "object"},
                "feedback": {"type": "string"},
            },
            "required": ["feedback"],
        },
    },
]


def parse_tool_args(raw: Any) -> Dict[str, Any]:
    """Accept arguments as a JSON string or an already decoded object."""

    if not raw:
        return {}
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, (str, bytes)):
        try:
            parsed = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError):
            logger.warning("Unparseable tool arguments; using empty object")
            return {}
        return parsed if isinstance(parsed, dict) else {}
    return {}


def _str_arg(args: Dict[str, Any], key: str) -> Optional[str]:
    value = args.get(key)
    return value if isinstance(value, str) else None


def _number_arg(args: Dict[str, Any], key: str) -> Optional[float]:
    value = args.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value


class ToolDispatcher:
    def __init__(self, context: SessionContext, send: SendFn) -> None:
        self._context = context
        self._send = send
        self._buffers: Dict[str, ToolCall] = {}
        self._inflight: Set["asyncio.Task[Any]"] = set()
        self._handlers: Dict[str, ToolHandler] = {
            "fetch_next_question": self._fetch_next_question,
            "store_answer": self._store_answer,
            "store_feedback": self._store_feedback,
        }

    @property
    def pending_calls(self) -> Dict[str, ToolCall]:
        return dict(self._buffers)

    def on_arguments_delta(self, call_id: Optional[str], name: Optional[str], delta: str) -> None:
        if not call_id:
            return
        entry = self._buffers.get(call_id)
        if entry is None:
            entry = ToolCall(call_id=call_id, name=name)
            self._buffers[call_id] = entry
        if name:
            entry.name = name
        entry.args += delta or ""

    def on_arguments_done(
        self,
        call_id: Optional[str],
        name: Optional[str],
        arguments: Any = None,
    ) -> Optional["asyncio.Task[Any]"]:
        if not call_id:
            return None
        buffered = self._buffers.pop(call_id, None)
        resolved_name = name or (buffered.name if buffered else None)
        raw = arguments if arguments is not None else (buffered.args if buffered else "")
        if not resolved_name:
            logger.warning("Dropping tool call %s without a name", call_id)
            return None
        return self.submit(call_id, resolved_name, parse_tool_args(raw))

    def submit(self, call_id: str, name: str, args: Dict[str, Any]) -> "asyncio.Task[Any]":
        task = asyncio.get_running_loop().create_task(self.run_tool(call_id, name, args))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return task

    async def wait_idle(self) -> None:
        while self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    def cancel_all(self) -> None:  # In-flight calls are dropped when the session ends
        self._buffers.clear()
        for task in list(self._inflight):
            task.cancel()

    async def run_tool(self, call_id: str, name: str, args: Dict[str, Any]) -> Dict[str, Any]:
        handler = self._handlers.get(name)
        if handler is None:
            logger.warning("Unknown tool requested: %s", name)
            output: Dict[str, Any] = {"error": f"Unknown tool: {name}"}
        else:
            try:
                output = await handler(args)
            except asyncio.CancelledError:
                raise
            except Exception:  # noqa: BLE001
                logger.exception("Tool execution failed: %s", name)
                output = {"error": "Tool execution failed."}
        log_event(
            "tool_dispatched",
            self._context.session_id,
            tool=name,
            call_id=call_id,
            outcome="error" if "error" in output else "ok",
        )
        self.send_output(call_id, output)
        return output

    def send_output(self, call_id: str, output: Dict[str, Any]) -> None:
        self._send(
            {
                "type": "conversation.item.create",
                "item": {
                    "type": "function_call_output",
                    "call_id": call_id,
                    "output": json.dumps(output),
                },
            }
        )
        self._send({"type": "response.create", "response": {"output_modalities": ["audio"]}})

    async def _fetch_next_question(self, args: Dict[str, Any]) -> Dict[str, Any]:
        try:
            question = await self._context.backend.fetch_question(
                topic=_str_arg(args, "topic"),
                difficulty=_str_arg(args, "difficulty"),
                category=_str_arg(args, "category"),
            )
        except BackendError as exc:
            return {"error": str(exc) or "Unable to fetch question."}
        return {"question": question or None}

    async def _store_answer(self, args: Dict[str, Any]) -> Dict[str, Any]:
        answer_text = (_str_arg(args, "answer_text") or "").strip()
        if answer_text:
            tags = args.get("tags")
            self._context.transcript.mirror_only(
                Turn(role="user", content=answer_text, source="text"),
                {
                    "tool": "store_answer",
                    "question_id": args.get("question_id"),
                    "score": _number_arg(args, "score"),
                    "tags": tags if isinstance(tags, list) else None,
                },
            )
        return {"ok": True}

    async def _store_feedback(self, args: Dict[str, Any]) -> Dict[str, Any]:
        feedback = (_str_arg(args, "feedback") or "").strip()
        if feedback:
            rubric = args.get("rubric")
            self._context.persist_feedback(
                feedback=feedback,
                question_text=_str_arg(args, "question_text"),
                score=_number_arg(args, "score"),
                rubric=rubric if isinstance(rubric, dict) else {},
            )
        return {"ok": True}


__all__ = ["TOOL_DEFINITIONS", "ToolDispatcher", "parse_tool_args"]

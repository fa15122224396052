"""Tests for model-initiated tool calls."""
from __future__ import annotations

import asyncio
import json
from typing import Any, Dict, List

from interview_session.context import SessionContext
from interview_session.models import SessionRecord
from interview_session.tasks import drain_detached
from interview_session.tools import TOOL_DEFINITIONS, ToolDispatcher, parse_tool_args

QUESTION = {"id": "q-lwc-1", "question_text": "How does @wire differ from imperative Apex?", "topic": "LWC"}


def _setup(fake_backend, **kwargs: Any):
    backend = fake_backend(**kwargs)
    context = SessionContext(backend=backend)
    context.bind_record(SessionRecord(id="sess-1", role="Salesforce Developer", interview_type="mixed", level="Senior"))
    sent: List[Dict[str, Any]] = []
    return backend, ToolDispatcher(context, sent.append), sent


def _output(message: Dict[str, Any]) -> Dict[str, Any]:
    assert message["type"] == "conversation.item.create"
    assert message["item"]["type"] == "function_call_output"
    return json.loads(message["item"]["output"])


def test_tool_schema_names():
    assert [tool["name"] for tool in TOOL_DEFINITIONS] == ["fetch_next_question", "store_answer", "store_feedback"]


def test_parse_tool_args_accepts_both_shapes():
    assert parse_tool_args('{"topic": "Apex"}') == {"topic": "Apex"}
    assert parse_tool_args({"topic": "Apex"}) == {"topic": "Apex"}
    assert parse_tool_args("") == {}
    assert parse_tool_args(None) == {}
    assert parse_tool_args("{not json") == {}
    assert parse_tool_args("[1, 2]") == {}


def test_streamed_arguments_dispatch_fetch_next_question(fake_backend):
    async def scenario():
        backend, dispatcher, sent = _setup(fake_backend, question=QUESTION)
        dispatcher.on_arguments_delta("call_1", "fetch_next_question", '{"topic": "L')
        dispatcher.on_arguments_delta("call_1", None, 'WC", "difficulty": "hard"}')
        task = dispatcher.on_arguments_done("call_1", None)
        await task
        return backend, dispatcher, sent

    backend, dispatcher, sent = asyncio.run(scenario())
    assert backend.question_requests == [{"topic": "LWC", "difficulty": "hard", "category": None}]
    assert len(sent) == 2
    assert sent[0]["item"]["call_id"] == "call_1"
    assert _output(sent[0])["question"]["question_text"] == QUESTION["question_text"]
    assert sent[1] == {"type": "response.create", "response": {"output_modalities": ["audio"]}}
    assert dispatcher.pending_calls == {}


def test_done_event_arguments_win_over_buffer(fake_backend):
    async def scenario():
        backend, dispatcher, sent = _setup(fake_backend, question=QUESTION)
        dispatcher.on_arguments_delta("call_2", "fetch_next_question", '{"topic": "Apex"')
        await dispatcher.on_arguments_done("call_2", "fetch_next_question", {"topic": "Flows"})
        return backend

    backend = asyncio.run(scenario())
    assert backend.question_requests[0]["topic"] == "Flows"


def test_unknown_tool_still_answers(fake_backend):
    async def scenario():
        _, dispatcher, sent = _setup(fake_backend)
        await dispatcher.submit("call_3", "delete_everything", {})
        return sent

    sent = asyncio.run(scenario())
    assert _output(sent[0]) == {"error": "Unknown tool: delete_everything"}
    assert sent[1]["type"] == "response.create"


def test_backend_miss_is_reported_as_error(fake_backend):
    async def scenario():
        _, dispatcher, sent = _setup(fake_backend, question=None)
        return await dispatcher.run_tool("call_4", "fetch_next_question", {})

    assert asyncio.run(scenario()) == {"error": "No questions available."}


def test_handler_crash_becomes_generic_error(fake_backend):
    async def scenario():
        backend, dispatcher, sent = _setup(fake_backend)

        async def explode(**_: Any) -> Dict[str, Any]:
            raise ValueError("boom")

        backend.fetch_question = explode
        await dispatcher.run_tool("call_5", "fetch_next_question", {"topic": "Apex"})
        return sent

    sent = asyncio.run(scenario())
    assert _output(sent[0]) == {"error": "Tool execution failed."}
    assert sent[1]["type"] == "response.create"


def test_store_answer_and_feedback_persist(fake_backend):
    async def scenario():
        backend, dispatcher, sent = _setup(fake_backend)
        await dispatcher.run_tool(
            "call_6",
            "store_answer",
            {"answer_text": "Use a Queueable", "question_id": "q1", "score": 4, "tags": ["async"]},
        )
        await dispatcher.run_tool(
            "call_7",
            "store_feedback",
            {"feedback": "Solid answer", "question_text": "Async Apex?", "score": 4.5, "rubric": {"accuracy": 5}},
        )
        await drain_detached()
        return backend, dispatcher, sent

    backend, dispatcher, sent = asyncio.run(scenario())
    assert [_output(m) for m in sent if m["type"] == "conversation.item.create"] == [{"ok": True}, {"ok": True}]
    assert backend.messages == [
        {
            "session_id": "sess-1",
            "role": "user",
            "content": "Use a Queueable",
            "source": "text",
            "metadata": {"tool": "store_answer", "question_id": "q1", "score": 4, "tags": ["async"]},
        }
    ]
    assert backend.feedback == [
        {
            "session_id": "sess-1",
            "question_text": "Async Apex?",
            "score": 4.5,
            "rubric": {"accuracy": 5},
            "feedback": "Solid answer",
        }
    ]


def test_cancel_all_drops_in_flight_calls(fake_backend):
    async def scenario():
        backend, dispatcher, sent = _setup(fake_backend)
        gate = asyncio.Event()

        async def slow(**_: Any) -> Dict[str, Any]:
            await gate.wait()
            return QUESTION

        backend.fetch_question = slow
        dispatcher.submit("call_8", "fetch_next_question", {})
        await asyncio.sleep(0)
        dispatcher.cancel_all()
        await dispatcher.wait_idle()
        return sent

    assert asyncio.run(scenario()) == []

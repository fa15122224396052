import asyncio
import json

from interview_session import InterviewSettings, SessionContext, SessionStateMachine, TextChannel, drain_detached


def _reply(*texts):
    chunks = [f"data: {json.dumps({'text': t})}\r\n\r\n".encode("utf-8") for t in texts]
    return chunks + [b'data: {"done": true}\r\n\r\n']


def test_three_question_interview_auto_ends(fake_backend):
    backend = fake_backend(
        replies=[
            _reply("Welcome! ", "Welcome! Question 1: What is a trigger?"),
            _reply("Good. ", "Good. Question 2: How do you bulkify it?"),
            _reply("Nice. Question 3: Explain governor limits."),
            _reply("Great job. Summary: solid fundamentals."),
        ]
    )

    async def scenario():
        machine = SessionStateMachine(SessionContext(backend=backend))
        channel = TextChannel()
        await machine.start(InterviewSettings(topics=["Apex"], level="Senior", question_count=3), channel)
        progress = [machine.questions_asked]
        for answer in ["Code on DML", "Use collections", "Per-transaction caps"]:
            await channel.send_answer(answer)
            progress.append((machine.questions_asked, machine.status))
        await drain_detached()
        return machine, progress

    machine, progress = asyncio.run(scenario())
    assert progress == [1, (2, "active"), (3, "active"), (3, "ended")]
    assert machine.status == "ended"

    turns = machine.context.transcript.turns
    assert [t.role for t in turns] == ["assistant", "user", "assistant", "user", "assistant", "user", "assistant"]
    assert turns[-1].content == "Great job. Summary: solid fundamentals."
    assert all(not t.streaming for t in turns)

    assert backend.created[0]["metadata"]["topics"] == ["Apex"]
    assert [u["status"] for u in backend.updates] == ["ended"]
    assert len(backend.messages) == 7
    assert len(backend.completions) == 4
    assert "Senior" in backend.completions[0][0]["content"]

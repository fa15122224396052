from __future__ import annotations  # Interviewer prompt builders for both channels

from textwrap import dedent
from typing import List, Optional, Sequence

from .models import InspirationQuestion


def inspiration_block(questions: Sequence[InspirationQuestion], limit: int = 10) -> str:
    """Reference questions the model may draw on but never ask verbatim."""

    selected = list(questions)[:limit]
    if not selected:
        return ""
    lines = [
        "Reference questions for inspiration (do NOT ask these verbatim; paraphrase, "
        "combine or build original questions on the same concepts):",
    ]
    for index, question in enumerate(selected, start=1):
        lines.append(f"{index}. [{question.topic} / {question.difficulty}] {question.question_text}")
    return "\n".join(lines)


def build_text_prompt(
    *,
    role: str,
    interview_type: str,
    level: str,
    question_count: int,
    questions_asked: int,
    is_first_message: bool,
    topics: Optional[Sequence[str]] = None,
    inspiration: Sequence[InspirationQuestion] = (),
    inspiration_limit: int = 10,
) -> str:
    topics_line = f"Focus on these topics: {', '.join(topics)}." if topics else ""
    if is_first_message:
        progress = f"You will ask {question_count} questions total."
    else:
        progress = f"This is question {questions_asked + 1} of {question_count}."
    if questions_asked + 1 >= question_count:
        closing = (
            "This is the last question. After the candidate answers, provide final feedback "
            "and a brief summary of their performance, then conclude the interview."
        )
    else:
        closing = (
            "After the candidate answers, provide brief constructive feedback (2-3 bullet points) "
            "with a score out of 5, then ask the next question."
        )
    opener = "Start by welcoming the candidate and asking your first interview question." if is_first_message else ""
    prompt = dedent(
        f"""\
        You are a professional Salesforce interviewer conducting a mock interview for a {role} position at the {level} level.

        Interview type: {interview_type}
        {topics_line}
        {progress}

        Instructions:
        - Be professional, encouraging, and constructive
        - Ask one question at a time and wait for the candidate's response
        - Keep questions concise (1-3 sentences)
        - {closing}
        - Tailor questions to the {level} experience level
        - For feedback, be specific about what was good and what could be improved
        - Score answers from 0-5 based on accuracy, completeness, and clarity
        """
    )
    block = inspiration_block(inspiration, inspiration_limit)
    parts: List[str] = [prompt]
    if block:
        parts.append(block + "\n")
    if opener:
        parts.append(opener)
    return "\n".join(parts).rstrip()


def wrap_candidate_answer(context_prompt: str, answer: str) -> str:
    return f"[Context: {context_prompt}]\n\nCandidate's answer: {answer}"


def wrap_up_message(questions_asked: int) -> str:
    plural = "" if questions_asked == 1 else "s"
    return (
        "Thank you for completing this mock interview session! "
        f"You answered {questions_asked} question{plural}. "
        "Review the transcript above to see your responses. Good luck with your Salesforce interview!"
    )


def build_realtime_instructions(
    *,
    role: str,
    interview_type: str,
    level: Optional[str] = None,
    topics: Optional[Sequence[str]] = None,
    question_count: Optional[int] = None,
    inspiration: Sequence[InspirationQuestion] = (),
    inspiration_limit: int = 10,
) -> str:
    level_label = f" ({level})" if level else ""
    if topics:
        topics_line = f"Focus on these topics: {', '.join(topics)}. Prioritize them when selecting questions."
    else:
        topics_line = "If the user shares focus topics, prioritize them when selecting questions."
    if question_count and question_count > 0:
        count_line = (
            f"Plan for {question_count} total questions. After the last question, share a brief wrap-up "
            "and stop asking new questions."
        )
    else:
        count_line = "If the user provides a target number of questions, follow it and wrap up at the end."
    lines = [
        f"You are a concise mock interviewer for a {role}{level_label} role.",
        f"Interview type: {interview_type}. Ask one question at a time and wait for the user's answer.",
        "Keep your questions to 1-2 sentences. After each answer, give 1-2 short feedback bullets and a 0-5 score.",
        "Use fetch_next_question to pick a new question. Use store_answer and store_feedback after the user responds.",
        topics_line,
        count_line,
        "Avoid long monologues. Prioritize clarity, accuracy, and actionable feedback.",
    ]
    block = inspiration_block(inspiration, inspiration_limit)
    if block:
        lines.append(block)
    return "\n".join(lines)


__all__ = [
    "build_realtime_instructions",
    "build_text_prompt",
    "inspiration_block",
    "wrap_candidate_answer",
    "wrap_up_message",
]

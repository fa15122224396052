from __future__ import annotations  # Re-export question_supply public API

from .supply import QuestionBank, distribute, fetch_inspiration, level_to_difficulty, question_types_for

__all__ = ["QuestionBank", "distribute", "fetch_inspiration", "level_to_difficulty", "question_types_for"]

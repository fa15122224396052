"""SQLite schema migrations."""
from __future__ import annotations

import os
import sqlite3
from typing import Iterable

SCHEMA: Iterable[str] = [
    """
CREATE TABLE IF NOT EXISTS questions (
  id TEXT PRIMARY KEY,
  question_text TEXT NOT NULL,
  answer_text TEXT,
  topic TEXT,
  category TEXT,
  difficulty TEXT,
  question_type TEXT,
  is_mcq INTEGER NOT NULL DEFAULT 0,
  created_at TEXT NOT NULL
);
""",
    """
CREATE TABLE IF NOT EXISTS live_agent_sessions (
  id TEXT PRIMARY KEY,
  user_id TEXT NOT NULL,
  role TEXT NOT NULL,
  interview_type TEXT NOT NULL,
  level TEXT,
  model TEXT,
  status TEXT NOT NULL DEFAULT 'active',
  metadata TEXT NOT NULL,
  started_at TEXT NOT NULL,
  ended_at TEXT
);
""",
    """
CREATE TABLE IF NOT EXISTS live_agent_messages (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  session_id TEXT NOT NULL,
  user_id TEXT NOT NULL,
  role TEXT NOT NULL,
  content TEXT NOT NULL,
  source TEXT NOT NULL,
  metadata TEXT NOT NULL,
  created_at TEXT NOT NULL,
  FOREIGN KEY(session_id) REFERENCES live_agent_sessions(id)
);
""",
    """
CREATE TABLE IF NOT EXISTS live_agent_feedback (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  session_id TEXT NOT NULL,
  user_id TEXT NOT NULL,
  question_text TEXT,
  score REAL,
  rubric TEXT NOT NULL,
  feedback TEXT NOT NULL,
  created_at TEXT NOT NULL,
  FOREIGN KEY(session_id) REFERENCES live_agent_sessions(id)
);
""",
]


def migrate(db_path: str = "data/live_agent.db") -> None:
    """Apply schema migrations to the SQLite database."""

    directory = os.path.dirname(db_path) or "."
    os.makedirs(directory, exist_ok=True)
    conn = sqlite3.connect(db_path)
    try:
        cur = conn.cursor()
        for stmt in SCHEMA:
            cur.execute(stmt)
        conn.commit()
    finally:
        conn.close()


if __name__ == "__main__":
    migrate()

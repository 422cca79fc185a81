from __future__ import annotations

import sqlite3
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator


@dataclass(frozen=True)
class TableSpec:
    name: str
    columns: tuple[str, ...]
    json_columns: frozenset[str] = frozenset()
    generated_id: bool = True
    tracks_updates: bool = True


TABLE_SPECS: dict[str, TableSpec] = {
    "account_profiles": TableSpec(
        name="account_profiles",
        columns=(
            "id",
            "email",
            "first_name",
            "last_name",
            "phone",
            "date_of_birth",
            "gender",
            "address",
            "emergency_contact",
            "subscription_tier",
            "health_score",
            "created_at",
            "updated_at",
        ),
        # Account rows are keyed by the externally issued user id.
        generated_id=False,
    ),
    "health_profiles": TableSpec(
        name="health_profiles",
        columns=(
            "id",
            "user_id",
            "allergies",
            "medications",
            "conditions",
            "health_goals",
            "last_assessment",
            "recent_symptoms",
            "ai_recommendations",
            "created_at",
            "updated_at",
        ),
        json_columns=frozenset({"allergies", "medications", "conditions"}),
    ),
    "assessments": TableSpec(
        name="assessments",
        columns=(
            "id",
            "user_id",
            "symptoms",
            "pain_level",
            "duration",
            "medications_taken",
            "additional_symptoms",
            "urgency_level",
            "confidence_score",
            "recommendations",
            "timeline",
            "created_at",
        ),
        tracks_updates=False,
    ),
    "chat_messages": TableSpec(
        name="chat_messages",
        columns=("id", "user_id", "type", "content", "confidence", "created_at"),
        tracks_updates=False,
    ),
}


class SQLiteHealthDB:
    def __init__(self, db_path: str) -> None:
        self._path = Path(db_path).expanduser().resolve()
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._init_schema()

    @property
    def path(self) -> str:
        return str(self._path)

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._path), timeout=30.0, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        conn = self._connect()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_schema(self) -> None:
        with self._lock, self.connection() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS account_profiles (
                  id TEXT PRIMARY KEY,
                  email TEXT,
                  first_name TEXT,
                  last_name TEXT,
                  phone TEXT,
                  date_of_birth TEXT,
                  gender TEXT,
                  address TEXT,
                  emergency_contact TEXT,
                  subscription_tier TEXT
                    CHECK (subscription_tier IS NULL OR subscription_tier IN ('free', 'premium', 'family')),
                  health_score REAL NOT NULL DEFAULT 0,
                  created_at TEXT NOT NULL,
                  updated_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS health_profiles (
                  id TEXT PRIMARY KEY,
                  user_id TEXT UNIQUE NOT NULL,
                  allergies TEXT NOT NULL DEFAULT '[]',
                  medications TEXT NOT NULL DEFAULT '[]',
                  conditions TEXT NOT NULL DEFAULT '[]',
                  health_goals TEXT,
                  last_assessment TEXT,
                  recent_symptoms TEXT,
                  ai_recommendations TEXT,
                  created_at TEXT NOT NULL,
                  updated_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS assessments (
                  id TEXT PRIMARY KEY,
                  user_id TEXT NOT NULL,
                  symptoms TEXT NOT NULL,
                  pain_level TEXT NOT NULL,
                  duration TEXT NOT NULL,
                  medications_taken TEXT NOT NULL,
                  additional_symptoms TEXT,
                  urgency_level TEXT NOT NULL
                    CHECK (urgency_level IN ('mild', 'moderate', 'severe')),
                  confidence_score INTEGER NOT NULL
                    CHECK (confidence_score BETWEEN 0 AND 100),
                  recommendations TEXT NOT NULL,
                  timeline TEXT,
                  created_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS chat_messages (
                  id TEXT PRIMARY KEY,
                  user_id TEXT NOT NULL,
                  type TEXT NOT NULL CHECK (type IN ('user', 'ai')),
                  content TEXT NOT NULL,
                  confidence INTEGER,
                  created_at TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_assessments_user_created
                  ON assessments(user_id, created_at DESC);
                CREATE INDEX IF NOT EXISTS idx_chat_messages_user_created
                  ON chat_messages(user_id, created_at);
                """
            )

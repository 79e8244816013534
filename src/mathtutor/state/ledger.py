"""Append-only attempt history and the statistics derived from it."""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional, Protocol

from mathtutor.courses.loader import Course
from mathtutor.courses.registry import CourseRegistry
from mathtutor.engine.quiz_parser import QuizQuestion
from mathtutor.state import analytics
from mathtutor.state.attempts import QuizAttempt
from mathtutor.state.events import AttemptEvents, AttemptRecorded

logger = logging.getLogger(__name__)


class AttemptRepository(Protocol):
    """Storage for attempts. Reads return attempts in insertion order."""

    def append(self, attempt: QuizAttempt) -> None: ...

    def query_by_user(self, user_id: str) -> list[QuizAttempt]: ...

    def query_by_user_and_lesson(self, user_id: str, lesson_id: str) -> list[QuizAttempt]: ...

    def query_recent(self, user_id: str, limit: int) -> list[QuizAttempt]: ...


class InMemoryAttemptRepository:
    def __init__(self) -> None:
        self._attempts: list[QuizAttempt] = []
        self._ids: set[str] = set()

    def append(self, attempt: QuizAttempt) -> None:
        if attempt.attempt_id in self._ids:
            raise ValueError(f"Attempt {attempt.attempt_id} already recorded")
        self._ids.add(attempt.attempt_id)
        self._attempts.append(attempt)

    def query_by_user(self, user_id: str) -> list[QuizAttempt]:
        return [a for a in self._attempts if a.user_id == user_id]

    def query_by_user_and_lesson(self, user_id: str, lesson_id: str) -> list[QuizAttempt]:
        return [
            a for a in self._attempts
            if a.user_id == user_id and a.lesson_id == lesson_id
        ]

    def query_recent(self, user_id: str, limit: int) -> list[QuizAttempt]:
        return analytics.most_recent(self.query_by_user(user_id), limit)


def _stored_time(value: datetime) -> str:
    """ISO text that sorts chronologically; aware times are stored in UTC.

    Naive and aware timestamps must not be mixed for one user.
    """
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.isoformat(timespec="microseconds")


class SQLiteAttemptRepository:
    def __init__(self, db_path: Optional[Path] = None):
        self.db_path = db_path or (Path.home() / ".mathtutor" / "attempts.db")
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _init_db(self) -> None:
        with self._conn() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS quiz_attempts (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    id TEXT NOT NULL UNIQUE,
                    user_id TEXT NOT NULL,
                    lesson_id TEXT NOT NULL,
                    attempt_number INTEGER NOT NULL,
                    score INTEGER NOT NULL,
                    max_score INTEGER NOT NULL,
                    percentage REAL NOT NULL,
                    passed INTEGER NOT NULL,
                    time_taken INTEGER NOT NULL,
                    difficulty TEXT NOT NULL,
                    questions TEXT NOT NULL,
                    answers TEXT NOT NULL,
                    started_at TEXT NOT NULL,
                    completed_at TEXT NOT NULL
                )
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_attempts_user_lesson "
                "ON quiz_attempts (user_id, lesson_id)"
            )

    def _conn(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path)

    _COLUMNS = (
        "id, user_id, lesson_id, attempt_number, score, passed, time_taken, "
        "difficulty, questions, answers, started_at, completed_at"
    )

    @staticmethod
    def _from_row(row) -> QuizAttempt:
        return QuizAttempt(
            attempt_id=row[0],
            user_id=row[1],
            lesson_id=row[2],
            attempt_number=row[3],
            score=row[4],
            passed=bool(row[5]),
            time_spent=row[6],
            difficulty=row[7],
            questions=tuple(QuizQuestion.from_dict(q) for q in json.loads(row[8])),
            answers=tuple(json.loads(row[9])),
            started_at=datetime.fromisoformat(row[10]),
            completed_at=datetime.fromisoformat(row[11]),
        )

    def append(self, attempt: QuizAttempt) -> None:
        with self._conn() as conn:
            conn.execute(
                """INSERT INTO quiz_attempts
                   (id, user_id, lesson_id, attempt_number, score, max_score, percentage,
                    passed, time_taken, difficulty, questions, answers, started_at, completed_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    attempt.attempt_id, attempt.user_id, attempt.lesson_id,
                    attempt.attempt_number, attempt.score, attempt.max_score,
                    attempt.percentage, int(attempt.passed), attempt.time_spent,
                    attempt.difficulty,
                    json.dumps([q.to_dict() for q in attempt.questions]),
                    json.dumps(list(attempt.answers)),
                    _stored_time(attempt.started_at),
                    _stored_time(attempt.completed_at),
                ),
            )

    def query_by_user(self, user_id: str) -> list[QuizAttempt]:
        with self._conn() as conn:
            rows = conn.execute(
                f"SELECT {self._COLUMNS} FROM quiz_attempts WHERE user_id = ? ORDER BY seq",
                (user_id,),
            ).fetchall()
        return [self._from_row(r) for r in rows]

    def query_by_user_and_lesson(self, user_id: str, lesson_id: str) -> list[QuizAttempt]:
        with self._conn() as conn:
            rows = conn.execute(
                f"SELECT {self._COLUMNS} FROM quiz_attempts "
                "WHERE user_id = ? AND lesson_id = ? ORDER BY seq",
                (user_id, lesson_id),
            ).fetchall()
        return [self._from_row(r) for r in rows]

    def query_recent(self, user_id: str, limit: int) -> list[QuizAttempt]:
        with self._conn() as conn:
            rows = conn.execute(
                f"SELECT {self._COLUMNS} FROM quiz_attempts WHERE user_id = ? "
                "ORDER BY completed_at DESC, seq DESC LIMIT ?",
                (user_id, max(limit, 0)),
            ).fetchall()
        return [self._from_row(r) for r in rows]


class ProgressLedger:
    """The learner-facing history: append once, aggregate on demand."""

    def __init__(
        self,
        repository: AttemptRepository,
        registry: Optional[CourseRegistry] = None,
        events: Optional[AttemptEvents] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.repository = repository
        self.registry = registry if registry is not None else CourseRegistry()
        self.events = events if events is not None else AttemptEvents()
        self.clock = clock

    def append(self, attempt: QuizAttempt) -> bool:
        """Record a finalized attempt; False if the write failed.

        The attempt notification is only published after a successful write.
        """
        try:
            self.repository.append(attempt)
        except Exception:
            logger.exception(
                "Failed to record attempt %s for user %s", attempt.attempt_id, attempt.user_id
            )
            return False

        logger.info(
            "Recorded attempt %s: %d/%d (%.0f%%) on %s",
            attempt.attempt_id, attempt.score, attempt.max_score,
            attempt.percentage, attempt.lesson_id,
        )
        self.events.publish(AttemptRecorded(
            user_id=attempt.user_id,
            lesson_id=attempt.lesson_id,
            score=attempt.score,
            passed=attempt.passed,
        ))
        return True

    def attempts(self, user_id: str) -> list[QuizAttempt]:
        return self.repository.query_by_user(user_id)

    def attempts_for_lesson(self, user_id: str, lesson_id: str) -> list[QuizAttempt]:
        return self.repository.query_by_user_and_lesson(user_id, lesson_id)

    def next_attempt_number(self, user_id: str, lesson_id: str) -> int:
        return len(self.attempts_for_lesson(user_id, lesson_id)) + 1

    # --- statistics ---

    def overall_stats(self, user_id: str) -> analytics.OverallStats:
        return analytics.overall_stats(self.attempts(user_id))

    def by_lesson(self, user_id: str) -> list[analytics.LessonStats]:
        return analytics.by_lesson(self.attempts(user_id), self.registry)

    def by_course(self, user_id: str) -> list[analytics.CourseStats]:
        return analytics.by_course(self.attempts(user_id), self.registry)

    def recent(self, user_id: str, limit: int = 10) -> list[analytics.RecentAttempt]:
        return analytics.enrich_recent(
            self.repository.query_recent(user_id, limit), self.registry
        )

    def trend(self, user_id: str, days: int = 30) -> list[analytics.TrendPoint]:
        return analytics.trend(self.attempts(user_id), now=self.clock(), days=days)

    def lesson_progress(self, user_id: str, lesson_id: str) -> Optional[analytics.LessonProgress]:
        lesson = self.registry.get_lesson(lesson_id)
        return analytics.lesson_progress(
            self.attempts_for_lesson(user_id, lesson_id),
            lesson_id,
            lesson.course_id if lesson else "",
        )

    def course_progress(self, user_id: str, course: Course) -> analytics.CourseProgress:
        return analytics.course_progress(self.attempts(user_id), course)

    def progress_summary(self, user_id: str) -> analytics.ProgressSummary:
        return analytics.progress_summary(self.attempts(user_id))

    def completed_lessons(self, user_id: str) -> set[str]:
        return analytics.completed_lesson_ids(self.attempts(user_id))

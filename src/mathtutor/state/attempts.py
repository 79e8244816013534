"""Quiz attempt records."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from mathtutor.engine.quiz_parser import QuizQuestion


@dataclass(frozen=True)
class QuizAttempt:
    attempt_id: str
    user_id: str
    lesson_id: str
    attempt_number: int
    questions: tuple[QuizQuestion, ...]
    answers: tuple[Optional[int], ...]
    score: int
    passed: bool
    started_at: datetime
    completed_at: datetime
    time_spent: int  # seconds
    difficulty: str = "medium"

    def __post_init__(self):
        if len(self.answers) != len(self.questions):
            raise ValueError(
                f"Attempt {self.attempt_id} has {len(self.answers)} answers "
                f"for {len(self.questions)} questions"
            )
        if self.attempt_number < 1:
            raise ValueError(f"Attempt number must be >= 1, got {self.attempt_number}")

    @property
    def max_score(self) -> int:
        return len(self.questions)

    @property
    def percentage(self) -> float:
        if self.max_score == 0:
            return 0.0
        return self.score / self.max_score * 100

    def to_dict(self) -> dict:
        return {
            "attemptId": self.attempt_id,
            "userId": self.user_id,
            "lessonId": self.lesson_id,
            "attemptNumber": self.attempt_number,
            "questions": [q.to_dict() for q in self.questions],
            "answers": list(self.answers),
            "score": self.score,
            "maxScore": self.max_score,
            "percentage": self.percentage,
            "passed": self.passed,
            "startedAt": self.started_at.isoformat(),
            "completedAt": self.completed_at.isoformat(),
            "timeSpent": self.time_spent,
            "difficulty": self.difficulty,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "QuizAttempt":
        return cls(
            attempt_id=data["attemptId"],
            user_id=data["userId"],
            lesson_id=data["lessonId"],
            attempt_number=data["attemptNumber"],
            questions=tuple(QuizQuestion.from_dict(q) for q in data["questions"]),
            answers=tuple(data["answers"]),
            score=data["score"],
            passed=data["passed"],
            started_at=datetime.fromisoformat(data["startedAt"]),
            completed_at=datetime.fromisoformat(data["completedAt"]),
            time_spent=data["timeSpent"],
            difficulty=data.get("difficulty", "medium"),
        )


def score_answers(questions: list[QuizQuestion] | tuple[QuizQuestion, ...],
                  answers: list[Optional[int]] | tuple[Optional[int], ...]) -> int:
    """Count answers that match the question's correct option."""
    return sum(
        1 for question, answer in zip(questions, answers)
        if answer is not None and answer == question.correct_answer
    )

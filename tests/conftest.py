"""Shared fixtures for MathTutor tests."""

from __future__ import annotations

from datetime import datetime, timedelta

import pytest
import yaml

from mathtutor.courses.registry import CourseRegistry
from mathtutor.engine.quiz_parser import QuizQuestion
from mathtutor.state.attempts import QuizAttempt
from mathtutor.state.events import AttemptEvents
from mathtutor.state.ledger import InMemoryAttemptRepository, ProgressLedger

NOW = datetime(2026, 3, 14, 12, 0, 0)


def make_block(n: int, correct: str = "A", explanation: str = "Because it is.") -> str:
    return (
        f"QUESTION {n}: What is {n} + {n}?\n"
        f"A) {2 * n}\n"
        f"B) {2 * n + 1}\n"
        f"C) {2 * n - 1}\n"
        f"D) {n}\n"
        f"CORRECT: {correct}\n"
        f"EXPLANATION: {explanation}\n"
    )


def make_response(count: int) -> str:
    return "Here is your quiz.\n\n" + "\n".join(make_block(i + 1) for i in range(count))


class ScriptedGenerator:
    """Returns canned responses in order, repeating the last one."""

    def __init__(self, *responses: str):
        self.responses = list(responses) or [""]
        self.prompts: list[str] = []

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        idx = min(len(self.prompts) - 1, len(self.responses) - 1)
        return self.responses[idx]


class FailingGenerator:
    def __init__(self, exc: Exception | None = None):
        self.exc = exc or RuntimeError("provider down")
        self.calls = 0

    async def generate(self, prompt: str) -> str:
        self.calls += 1
        raise self.exc


class Clock:
    """Manually advanced clock."""

    def __init__(self, start: datetime = NOW):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def tick(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


async def no_sleep(seconds: float) -> None:
    return None


def make_question(i: int = 0, correct: int = 0) -> QuizQuestion:
    return QuizQuestion(
        id=f"q{i + 1}",
        question=f"Question {i + 1}?",
        options=("a", "b", "c", "d"),
        correct_answer=correct,
        explanation="Explained.",
        difficulty="medium",
    )


def make_attempt(
    attempt_id: str,
    lesson_id: str = "integers-intro",
    score: int = 3,
    user_id: str = "user-1",
    completed_at: datetime = NOW,
    attempt_number: int = 1,
    time_spent: int = 60,
    pass_score: int = 3,
    question_count: int = 5,
) -> QuizAttempt:
    questions = tuple(make_question(i) for i in range(question_count))
    answers = tuple(0 if i < score else 1 for i in range(question_count))
    return QuizAttempt(
        attempt_id=attempt_id,
        user_id=user_id,
        lesson_id=lesson_id,
        attempt_number=attempt_number,
        questions=questions,
        answers=answers,
        score=score,
        passed=score >= pass_score,
        started_at=completed_at - timedelta(seconds=time_spent),
        completed_at=completed_at,
        time_spent=time_spent,
    )


@pytest.fixture
def sample_courses_dir(tmp_path):
    """Create a courses directory with two small courses."""
    courses_dir = tmp_path / "courses"

    courses = {
        "pre_algebra": {
            "course": {
                "id": "pre-algebra",
                "title": "Pre-Algebra Essentials",
                "description": "Integers and operations",
                "level": "middle",
                "lessons": [
                    {
                        "id": "integers-intro",
                        "title": "Introduction to Integers",
                        "description": "Positive and negative numbers",
                        "difficulty": "beginner",
                        "topics": ["Number line", "Absolute value"],
                    },
                    {
                        "id": "integer-operations",
                        "title": "Integer Operations",
                        "description": "Adding and subtracting integers",
                        "difficulty": "intermediate",
                        "topics": ["Sign rules"],
                        "pass_required_score": 4,
                    },
                    {
                        "id": "factors-multiples",
                        "title": "Factors and Multiples",
                        "difficulty": "advanced",
                        "topics": ["GCF", "LCM"],
                    },
                ],
            }
        },
        "foundations": {
            "course": {
                "id": "foundations",
                "title": "Math Foundations",
                "description": "Counting and adding",
                "level": "elementary",
                "lessons": [
                    {
                        "id": "counting-basics",
                        "title": "Counting to 100",
                        "difficulty": "beginner",
                        "topics": ["Counting", "Skip counting"],
                    },
                    {
                        "id": "fractions-intro",
                        "title": "Fractions",
                        "difficulty": "intermediate",
                        "topics": "Fraction basics, Halves",
                    },
                ],
            }
        },
    }
    for dirname, data in courses.items():
        course_dir = courses_dir / dirname
        course_dir.mkdir(parents=True)
        with open(course_dir / "course.yaml", "w") as f:
            yaml.dump(data, f)

    return courses_dir


@pytest.fixture
def registry(sample_courses_dir):
    return CourseRegistry(courses_dir=sample_courses_dir)


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def events():
    return AttemptEvents()


@pytest.fixture
def ledger(registry, events, clock):
    return ProgressLedger(
        repository=InMemoryAttemptRepository(),
        registry=registry,
        events=events,
        clock=clock,
    )

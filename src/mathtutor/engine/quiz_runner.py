"""Quiz attempt state machine: load → answer → (explain) → advance → score."""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Awaitable, Callable, Optional

from mathtutor.courses.loader import Lesson
from mathtutor.engine.adaptive import Difficulty, LearningPath, UserPerformance, resolve_difficulty
from mathtutor.engine.explainer import ExplanationGenerator
from mathtutor.engine.quiz_parser import OPTION_COUNT, QuizQuestion
from mathtutor.engine.synthesizer import QuestionSetSynthesizer
from mathtutor.state.attempts import QuizAttempt, score_answers
from mathtutor.state.ledger import ProgressLedger

logger = logging.getLogger(__name__)


class QuizState(str, Enum):
    LOADING = "loading"  # Question set is being synthesized
    IN_PROGRESS = "in_progress"  # Waiting for an answer to the current question
    SHOWING_EXPLANATION = "showing_explanation"  # Wrong answer; waiting for "next"
    COMPLETED = "completed"  # Scored and handed to the ledger


class InvalidTransition(Exception):
    """The requested action is not allowed in the current quiz state."""


@dataclass
class AnswerResult:
    correct: bool
    correct_answer: int
    explanation: Optional[str] = None
    finished: bool = False


@dataclass
class QuizSession:
    lesson: Lesson
    questions: list[QuizQuestion]
    attempt_id: str
    attempt_number: int
    difficulty: Difficulty
    started_at: datetime
    current_index: int = 0
    answers: list[Optional[int]] = field(default_factory=list)
    state: QuizState = QuizState.IN_PROGRESS
    explanation: Optional[str] = None
    attempt: Optional[QuizAttempt] = None
    recorded: bool = False

    def __post_init__(self):
        if not self.answers:
            self.answers = [None] * len(self.questions)

    @property
    def current_question(self) -> Optional[QuizQuestion]:
        if 0 <= self.current_index < len(self.questions):
            return self.questions[self.current_index]
        return None

    @property
    def is_last_question(self) -> bool:
        return self.current_index >= len(self.questions) - 1

    @property
    def progress_fraction(self) -> float:
        total = len(self.questions)
        if total == 0:
            return 1.0
        return sum(1 for a in self.answers if a is not None) / total

    @property
    def score(self) -> int:
        return score_answers(self.questions, self.answers)

    @property
    def passed(self) -> Optional[bool]:
        return self.attempt.passed if self.attempt else None


class QuizRunner:
    """Drives one learner through one quiz attempt at a time.

    The runner never enters a failure state: question synthesis and
    explanations fall back to static content when the generator is missing
    or broken, and a failed ledger write only clears ``recorded``.
    """

    def __init__(
        self,
        user_id: str,
        lesson: Lesson,
        synthesizer: QuestionSetSynthesizer,
        explainer: ExplanationGenerator,
        ledger: ProgressLedger,
        performance: Optional[UserPerformance] = None,
        path: LearningPath = LearningPath.VISUAL,
        auto_advance_delay: float = 1.0,
        clock: Callable[[], datetime] = datetime.now,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.user_id = user_id
        self.lesson = lesson
        self.synthesizer = synthesizer
        self.explainer = explainer
        self.ledger = ledger
        self.performance = performance or UserPerformance()
        self.path = path
        self.auto_advance_delay = auto_advance_delay
        self.clock = clock
        self.sleep = sleep
        self.session: Optional[QuizSession] = None

    @property
    def state(self) -> QuizState:
        if self.session is None:
            return QuizState.LOADING
        return self.session.state

    @property
    def review_required(self) -> bool:
        """True after a failed attempt: the learner goes back to the examples."""
        return self.state == QuizState.COMPLETED and self.session.passed is False

    async def start(self) -> QuizSession:
        """Resolve difficulty, synthesize questions and open a new attempt."""
        self.session = None
        difficulty = resolve_difficulty(self.performance, self.lesson.difficulty)
        questions = await self.synthesizer.synthesize(self.lesson, difficulty, self.path)

        self.session = QuizSession(
            lesson=self.lesson,
            questions=questions,
            attempt_id=f"attempt-{uuid.uuid4().hex}",
            attempt_number=self.ledger.next_attempt_number(self.user_id, self.lesson.id),
            difficulty=difficulty,
            started_at=self.clock(),
        )
        logger.debug(
            "Started %s (#%d) for %s on %s at %s difficulty",
            self.session.attempt_id, self.session.attempt_number,
            self.user_id, self.lesson.id, difficulty.value,
        )
        return self.session

    async def select_answer(self, choice: int) -> AnswerResult:
        """Record *choice* for the current question.

        A correct answer auto-advances after ``auto_advance_delay`` seconds.
        A wrong answer fetches an explanation and waits for ``advance()``.
        """
        session = self._require(QuizState.IN_PROGRESS)
        if not 0 <= choice < OPTION_COUNT:
            raise InvalidTransition(f"Option {choice} out of range")
        if session.answers[session.current_index] is not None:
            raise InvalidTransition("Current question already answered")

        question = session.current_question
        session.answers[session.current_index] = choice

        if choice == question.correct_answer:
            await self.sleep(self.auto_advance_delay)
            self._next()
            return AnswerResult(
                correct=True,
                correct_answer=question.correct_answer,
                finished=session.state == QuizState.COMPLETED,
            )

        session.state = QuizState.SHOWING_EXPLANATION
        session.explanation = await self.explainer.explain(question, choice, self.lesson)
        return AnswerResult(
            correct=False,
            correct_answer=question.correct_answer,
            explanation=session.explanation,
        )

    def advance(self) -> Optional[QuizQuestion]:
        """Leave the explanation; returns the next question, or None when finished."""
        session = self._require(QuizState.SHOWING_EXPLANATION)
        session.explanation = None
        session.state = QuizState.IN_PROGRESS
        self._next()
        return session.current_question if session.state == QuizState.IN_PROGRESS else None

    async def retake(self, performance: Optional[UserPerformance] = None) -> QuizSession:
        """Discard the finished attempt and start over with a fresh question set."""
        self._require(QuizState.COMPLETED)
        if performance is not None:
            self.performance = performance
        return await self.start()

    def _next(self) -> None:
        session = self.session
        if session.is_last_question:
            self._finalize()
        else:
            session.current_index += 1

    def _finalize(self) -> None:
        session = self.session
        completed_at = self.clock()
        score = session.score
        session.attempt = QuizAttempt(
            attempt_id=session.attempt_id,
            user_id=self.user_id,
            lesson_id=self.lesson.id,
            attempt_number=session.attempt_number,
            questions=tuple(session.questions),
            answers=tuple(session.answers),
            score=score,
            passed=score >= self.lesson.pass_required_score,
            started_at=session.started_at,
            completed_at=completed_at,
            time_spent=max(int((completed_at - session.started_at).total_seconds()), 0),
            difficulty=session.difficulty.value,
        )
        session.state = QuizState.COMPLETED
        session.recorded = self.ledger.append(session.attempt)
        if not session.recorded:
            logger.warning("Attempt %s finished but was not recorded", session.attempt_id)

    def _require(self, state: QuizState) -> QuizSession:
        if self.session is None or self.session.state != state:
            raise InvalidTransition(
                f"Expected quiz state {state.value}, current state is {self.state.value}"
            )
        return self.session

"""Server handler: dispatches JSON-lines requests to the quiz engine and ledger."""

from __future__ import annotations

from typing import Callable, Optional

from mathtutor.config.settings import Settings
from mathtutor.courses.registry import CourseRegistry
from mathtutor.engine.adaptive import LearningPath, UserPerformance
from mathtutor.engine.explainer import ExplanationGenerator
from mathtutor.engine.generator import build_generator
from mathtutor.engine.quiz_runner import QuizRunner, QuizSession
from mathtutor.engine.synthesizer import QuestionSetSynthesizer
from mathtutor.state.events import AttemptEvents, AttemptRecorded
from mathtutor.state.ledger import AttemptRepository, ProgressLedger, SQLiteAttemptRepository

from .protocol import Notification

_UNSET = object()


def _question_to_dict(question) -> dict:
    """Serialize the learner-visible part of a question."""
    if question is None:
        return {}
    return {
        "id": question.id,
        "question": question.question,
        "options": list(question.options),
        "difficulty": question.difficulty,
    }


def _session_to_dict(session: QuizSession) -> dict:
    d = {
        "state": session.state.value,
        "attemptId": session.attempt_id,
        "attemptNumber": session.attempt_number,
        "difficulty": session.difficulty.value,
        "lessonId": session.lesson.id,
        "lessonTitle": session.lesson.title,
        "currentIndex": session.current_index,
        "totalQuestions": len(session.questions),
        "question": _question_to_dict(session.current_question),
        "answers": list(session.answers),
        "explanation": session.explanation,
    }
    if session.attempt is not None:
        d.update({
            "score": session.attempt.score,
            "maxScore": session.attempt.max_score,
            "passed": session.attempt.passed,
            "passRequiredScore": session.lesson.pass_required_score,
            "recorded": session.recorded,
        })
    return d


class ServerHandler:
    """Routes incoming requests to engine methods and returns result dicts."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        write_notification: Optional[Callable[[Notification], None]] = None,
        generator=_UNSET,  # TextGenerator, or None to force the fallback bank
        repository: Optional[AttemptRepository] = None,
        registry: Optional[CourseRegistry] = None,
    ):
        self.settings = settings or Settings.load()
        self._write_notification = write_notification or (lambda n: None)

        self.registry = registry if registry is not None else CourseRegistry(
            courses_dir=self.settings.courses_dir,
            default_pass_score=self.settings.quiz.default_pass_score,
        )
        self.events = AttemptEvents()
        self.events.subscribe(self._forward_event)
        self.ledger = ProgressLedger(
            repository=(
                repository if repository is not None
                else SQLiteAttemptRepository(db_path=self.settings.db_path)
            ),
            registry=self.registry,
            events=self.events,
        )
        if generator is _UNSET:
            generator = build_generator(self.settings)
        self.synthesizer = QuestionSetSynthesizer(generator)
        self.explainer = ExplanationGenerator(generator)

        self._runner: Optional[QuizRunner] = None

    def _forward_event(self, event: AttemptRecorded) -> None:
        self._write_notification(Notification("attemptRecorded", event.to_dict()))

    async def dispatch(self, msg: dict) -> dict:
        """Route a request message to the appropriate handler method."""
        method = msg.get("method", "")
        params = msg.get("params") or {}

        handler_map = {
            "listCourses": self._list_courses,
            "startQuiz": self._start_quiz,
            "getQuizState": self._get_quiz_state,
            "selectAnswer": self._select_answer,
            "advance": self._advance,
            "retake": self._retake,
            "overallStats": self._overall_stats,
            "lessonStats": self._lesson_stats,
            "courseStats": self._course_stats,
            "recentAttempts": self._recent_attempts,
            "trend": self._trend,
            "courseProgress": self._course_progress,
            "lessonProgress": self._lesson_progress,
            "progressSummary": self._progress_summary,
        }

        handler = handler_map.get(method)
        if handler is None:
            raise ValueError(f"Unknown method: {method}")

        return await handler(params)

    def _runner_or_raise(self) -> QuizRunner:
        if self._runner is None or self._runner.session is None:
            raise ValueError("No quiz started")
        return self._runner

    async def _list_courses(self, params: dict) -> dict:
        user_id = params.get("userId")
        completed = self.ledger.completed_lessons(user_id) if user_id else None

        courses = []
        for c in self.registry.list_courses():
            lessons = []
            for lesson in c.lessons:
                entry = {
                    "id": lesson.id,
                    "title": lesson.title,
                    "difficulty": lesson.difficulty.value,
                    "topics": list(lesson.topics),
                    "duration": lesson.duration,
                    "passRequiredScore": lesson.pass_required_score,
                }
                if completed is not None:
                    entry["completed"] = lesson.id in completed
                lessons.append(entry)

            course = {
                "id": c.id,
                "title": c.title,
                "description": c.description,
                "level": c.level,
                "lessonCount": len(c.lessons),
                "lessons": lessons,
            }
            if completed is not None and c.lessons:
                done = sum(1 for lesson in lessons if lesson["completed"])
                course["progress"] = round(done / len(lessons) * 100)
            courses.append(course)
        return {"courses": courses}

    async def _start_quiz(self, params: dict) -> dict:
        user_id = params["userId"]
        lesson_id = params["lessonId"]
        lesson = self.registry.get_lesson(lesson_id)
        if lesson is None:
            raise ValueError(f"Unknown lesson: {lesson_id}")

        try:
            path = LearningPath(params.get("path", LearningPath.VISUAL.value))
        except ValueError:
            raise ValueError(f"Unknown learning path: {params.get('path')}")

        self._runner = QuizRunner(
            user_id=user_id,
            lesson=lesson,
            synthesizer=self.synthesizer,
            explainer=self.explainer,
            ledger=self.ledger,
            performance=UserPerformance.from_dict(params.get("performance") or {}),
            path=path,
            auto_advance_delay=self.settings.quiz.auto_advance_delay,
        )
        session = await self._runner.start()
        return _session_to_dict(session)

    async def _get_quiz_state(self, params: dict) -> dict:
        runner = self._runner_or_raise()
        d = _session_to_dict(runner.session)
        d["reviewRequired"] = runner.review_required
        return d

    async def _select_answer(self, params: dict) -> dict:
        runner = self._runner_or_raise()
        result = await runner.select_answer(int(params["answer"]))
        return {
            "correct": result.correct,
            "correctAnswer": result.correct_answer,
            "explanation": result.explanation,
            "finished": result.finished,
            "reviewRequired": runner.review_required,
            "session": _session_to_dict(runner.session),
        }

    async def _advance(self, params: dict) -> dict:
        runner = self._runner_or_raise()
        question = runner.advance()
        return {
            "finished": question is None,
            "reviewRequired": runner.review_required,
            "session": _session_to_dict(runner.session),
        }

    async def _retake(self, params: dict) -> dict:
        runner = self._runner_or_raise()
        performance = params.get("performance")
        session = await runner.retake(
            UserPerformance.from_dict(performance) if performance else None
        )
        return _session_to_dict(session)

    async def _overall_stats(self, params: dict) -> dict:
        return self.ledger.overall_stats(params["userId"]).to_dict()

    async def _lesson_stats(self, params: dict) -> dict:
        return {"lessons": [s.to_dict() for s in self.ledger.by_lesson(params["userId"])]}

    async def _course_stats(self, params: dict) -> dict:
        return {"courses": [s.to_dict() for s in self.ledger.by_course(params["userId"])]}

    async def _recent_attempts(self, params: dict) -> dict:
        recent = self.ledger.recent(params["userId"], int(params.get("limit", 10)))
        return {"attempts": [r.to_dict() for r in recent]}

    async def _trend(self, params: dict) -> dict:
        points = self.ledger.trend(params["userId"], int(params.get("days", 30)))
        return {"trend": [p.to_dict() for p in points]}

    async def _course_progress(self, params: dict) -> dict:
        course_id = params["courseId"]
        course = self.registry.get_course(course_id)
        if course is None:
            raise ValueError(f"Unknown course: {course_id}")
        return self.ledger.course_progress(params["userId"], course).to_dict()

    async def _lesson_progress(self, params: dict) -> dict:
        progress = self.ledger.lesson_progress(params["userId"], params["lessonId"])
        if progress is None:
            return {"started": False}
        return {"started": True, **progress.to_dict()}

    async def _progress_summary(self, params: dict) -> dict:
        return self.ledger.progress_summary(params["userId"]).to_dict()

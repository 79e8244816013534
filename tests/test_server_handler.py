"""Tests for the ServerHandler dispatch layer."""

from __future__ import annotations

import pytest

from mathtutor.config.settings import Settings
from mathtutor.courses.registry import CourseRegistry
from mathtutor.server.handler import ServerHandler
from mathtutor.server.protocol import Notification
from mathtutor.state.ledger import InMemoryAttemptRepository


@pytest.fixture
def handler(sample_courses_dir, tmp_path):
    """Create a ServerHandler backed by the sample courses and an in-memory ledger."""
    settings = Settings(data_dir=tmp_path / "data", quiz={"auto_advance_delay": 0})

    notifications: list[Notification] = []

    h = ServerHandler(
        settings=settings,
        write_notification=lambda n: notifications.append(n),
        generator=None,
        repository=InMemoryAttemptRepository(),
        registry=CourseRegistry(courses_dir=sample_courses_dir),
    )
    h._notifications = notifications
    return h


async def start(handler, lesson_id="integers-intro", **params):
    return await handler.dispatch({
        "method": "startQuiz",
        "params": {"userId": "user-1", "lessonId": lesson_id, **params},
    })


async def finish_quiz(handler, answer=0):
    """Answer every question with the same option, stepping past explanations."""
    result = None
    for _ in range(5):
        result = await handler.dispatch({"method": "selectAnswer", "params": {"answer": answer}})
        if not result["correct"]:
            result = await handler.dispatch({"method": "advance", "params": {}})
    return result


class TestListCourses:
    @pytest.mark.asyncio
    async def test_returns_courses(self, handler):
        result = await handler.dispatch({"method": "listCourses", "params": {}})
        courses = {c["id"]: c for c in result["courses"]}
        assert set(courses) == {"pre-algebra", "foundations"}
        assert courses["pre-algebra"]["lessonCount"] == 3
        assert courses["pre-algebra"]["lessons"][1]["passRequiredScore"] == 4

    @pytest.mark.asyncio
    async def test_completion_flags_for_user(self, handler):
        await start(handler)
        for question in list(handler._runner.session.questions):
            await handler.dispatch({
                "method": "selectAnswer", "params": {"answer": question.correct_answer},
            })

        result = await handler.dispatch({"method": "listCourses", "params": {"userId": "user-1"}})
        courses = {c["id"]: c for c in result["courses"]}
        flags = {lesson["id"]: lesson["completed"] for lesson in courses["pre-algebra"]["lessons"]}
        assert flags == {
            "integers-intro": True, "integer-operations": False, "factors-multiples": False,
        }
        assert courses["pre-algebra"]["progress"] == 33
        assert courses["foundations"]["progress"] == 0

    @pytest.mark.asyncio
    async def test_no_flags_without_user(self, handler):
        result = await handler.dispatch({"method": "listCourses", "params": {}})
        lesson = result["courses"][0]["lessons"][0]
        assert "completed" not in lesson
        assert "progress" not in result["courses"][0]

    @pytest.mark.asyncio
    async def test_unknown_method(self, handler):
        with pytest.raises(ValueError, match="Unknown method"):
            await handler.dispatch({"method": "nonExistent", "params": {}})


class TestStartQuiz:
    @pytest.mark.asyncio
    async def test_start_uses_fallback_bank(self, handler):
        result = await start(handler)
        assert result["state"] == "in_progress"
        assert result["totalQuestions"] == 5
        assert result["currentIndex"] == 0
        assert result["attemptNumber"] == 1
        assert result["difficulty"] == "easy"
        assert result["question"]["question"] == "If x + 5 = 12, what is x?"
        assert "correctAnswer" not in result["question"]
        assert "score" not in result

    @pytest.mark.asyncio
    async def test_performance_raises_difficulty(self, handler):
        result = await start(
            handler, performance={"avgQuizScore": 92, "confidenceLevel": 4.5}
        )
        assert result["difficulty"] == "medium"

    @pytest.mark.asyncio
    async def test_unknown_lesson(self, handler):
        with pytest.raises(ValueError, match="Unknown lesson"):
            await start(handler, lesson_id="nope")

    @pytest.mark.asyncio
    async def test_unknown_path(self, handler):
        with pytest.raises(ValueError, match="Unknown learning path"):
            await start(handler, path="kinesthetic")

    @pytest.mark.asyncio
    async def test_state_before_start(self, handler):
        with pytest.raises(ValueError, match="No quiz started"):
            await handler.dispatch({"method": "getQuizState", "params": {}})


class TestQuizFlow:
    @pytest.mark.asyncio
    async def test_wrong_answer_returns_explanation(self, handler):
        await start(handler)
        correct = handler._runner.session.questions[0].correct_answer
        result = await handler.dispatch({
            "method": "selectAnswer", "params": {"answer": (correct + 1) % 4},
        })
        assert result["correct"] is False
        assert result["correctAnswer"] == correct
        assert "don't worry" in result["explanation"]
        assert result["session"]["state"] == "showing_explanation"

    @pytest.mark.asyncio
    async def test_full_quiz_records_attempt_and_notifies(self, handler):
        await start(handler)
        result = await finish_quiz(handler)
        assert result["finished"] is True

        state = await handler.dispatch({"method": "getQuizState", "params": {}})
        assert state["state"] == "completed"
        assert state["recorded"] is True
        assert state["reviewRequired"] == (not state["passed"])

        [notification] = handler._notifications
        assert notification.method == "attemptRecorded"
        assert notification.params["userId"] == "user-1"
        assert notification.params["lessonId"] == "integers-intro"
        assert notification.params["score"] == state["score"]

    @pytest.mark.asyncio
    async def test_retake_increments_attempt_number(self, handler):
        await start(handler)
        await finish_quiz(handler)
        result = await handler.dispatch({"method": "retake", "params": {}})
        assert result["attemptNumber"] == 2
        assert result["state"] == "in_progress"

    @pytest.mark.asyncio
    async def test_retake_mid_quiz_rejected(self, handler):
        from mathtutor.engine.quiz_runner import InvalidTransition

        await start(handler)
        with pytest.raises(InvalidTransition):
            await handler.dispatch({"method": "retake", "params": {}})


class TestStatistics:
    @pytest.mark.asyncio
    async def test_empty_history(self, handler):
        params = {"userId": "user-1"}
        overall = await handler.dispatch({"method": "overallStats", "params": params})
        assert overall["totalQuizzes"] == 0
        recent = await handler.dispatch({"method": "recentAttempts", "params": params})
        assert recent == {"attempts": []}
        trend = await handler.dispatch({"method": "trend", "params": params})
        assert trend == {"trend": []}

    @pytest.mark.asyncio
    async def test_stats_after_quiz(self, handler):
        await start(handler)
        await finish_quiz(handler)
        params = {"userId": "user-1"}

        overall = await handler.dispatch({"method": "overallStats", "params": params})
        assert overall["totalQuizzes"] == 1

        lessons = await handler.dispatch({"method": "lessonStats", "params": params})
        assert lessons["lessons"][0]["lessonTitle"] == "Introduction to Integers"

        courses = await handler.dispatch({"method": "courseStats", "params": params})
        assert courses["courses"][0]["courseId"] == "pre-algebra"

        recent = await handler.dispatch({
            "method": "recentAttempts", "params": {"userId": "user-1", "limit": 1},
        })
        assert len(recent["attempts"]) == 1
        assert recent["attempts"][0]["attemptId"] == handler._runner.session.attempt_id

        trend = await handler.dispatch({"method": "trend", "params": params})
        assert trend["trend"][0]["attempts"] == 1


class TestProgress:
    @pytest.mark.asyncio
    async def test_no_progress(self, handler):
        result = await handler.dispatch({
            "method": "lessonProgress",
            "params": {"userId": "user-1", "lessonId": "integers-intro"},
        })
        assert result["started"] is False

    @pytest.mark.asyncio
    async def test_course_progress(self, handler):
        result = await handler.dispatch({
            "method": "courseProgress",
            "params": {"userId": "user-1", "courseId": "pre-algebra"},
        })
        assert result["currentLesson"] == "integers-intro"
        assert result["percentage"] == 0

    @pytest.mark.asyncio
    async def test_lesson_progress_after_quiz(self, handler):
        await start(handler)
        await finish_quiz(handler)
        result = await handler.dispatch({
            "method": "lessonProgress",
            "params": {"userId": "user-1", "lessonId": "integers-intro"},
        })
        assert result["started"] is True
        assert result["courseId"] == "pre-algebra"
        assert len(result["attemptIds"]) == 1

    @pytest.mark.asyncio
    async def test_progress_summary(self, handler):
        params = {"userId": "user-1"}
        empty = await handler.dispatch({"method": "progressSummary", "params": params})
        assert empty["totalLessons"] == 0

        await start(handler)
        await finish_quiz(handler)
        result = await handler.dispatch({"method": "progressSummary", "params": params})
        assert result["totalLessons"] == 1
        assert result["completedLessons"] == (1 if handler._runner.session.passed else 0)

    @pytest.mark.asyncio
    async def test_unknown_course(self, handler):
        with pytest.raises(ValueError, match="Unknown course"):
            await handler.dispatch({
                "method": "courseProgress",
                "params": {"userId": "user-1", "courseId": "nonexistent"},
            })


class TestServeLoop:
    @pytest.mark.asyncio
    async def test_one_reply_per_request_line(self, handler):
        import asyncio
        import json

        from mathtutor.server.__main__ import serve

        lines: list[str] = []
        reader = asyncio.StreamReader()
        reader.feed_data(
            b'{"id": 1, "method": "startQuiz", '
            b'"params": {"userId": "user-1", "lessonId": "integers-intro"}}\n'
        )
        reader.feed_data(b"\n{broken\n")
        reader.feed_data(b'{"id": 9, "method": "advance"}\n')
        reader.feed_data(b'{"id": 10, "method": "nope"}\n')
        reader.feed_eof()

        await serve(handler, reader, lines.append)

        replies = [json.loads(line) for line in lines]
        assert [r["id"] for r in replies] == [1, 0, 9, 10]
        assert replies[0]["result"]["state"] == "in_progress"
        assert replies[1]["errorType"] == "ProtocolError"
        assert replies[2]["errorType"] == "InvalidTransition"
        assert replies[3]["errorType"] == "ValueError"

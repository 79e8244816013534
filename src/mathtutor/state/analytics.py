"""Aggregations over a learner's attempt history.

Every function here is pure: it takes the attempts (in insertion order) and
recomputes its result from scratch, so repeated calls over the same history
return equal values.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date, datetime, timedelta
from typing import Optional, Sequence

from mathtutor.courses.loader import Course
from mathtutor.courses.registry import CourseRegistry
from mathtutor.state.attempts import QuizAttempt

UNKNOWN_LESSON = "Unknown Lesson"
UNKNOWN_COURSE = "Unknown Course"


def _avg(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    return round(sum(values) / len(values), 2)


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


class _Serializable:
    def to_dict(self) -> dict:
        out = {}
        for key, value in asdict(self).items():
            if isinstance(value, (datetime, date)):
                value = value.isoformat()
            out[_camel(key)] = value
        return out


@dataclass(frozen=True)
class OverallStats(_Serializable):
    total_quizzes: int = 0
    average_percentage: float = 0.0
    passed_quizzes: int = 0
    failed_quizzes: int = 0
    total_time_spent: int = 0


@dataclass(frozen=True)
class LessonStats(_Serializable):
    lesson_id: str
    lesson_title: str
    attempts: int
    average_percentage: float
    best_percentage: float
    worst_percentage: float
    passed_attempts: int
    last_attempt: datetime


@dataclass(frozen=True)
class CourseStats(_Serializable):
    course_id: str
    course_title: str
    total_attempts: int
    average_percentage: float
    best_percentage: float
    worst_percentage: float
    passed_attempts: int
    lessons_attempted: int


@dataclass(frozen=True)
class RecentAttempt(_Serializable):
    attempt_id: str
    lesson_id: str
    lesson_title: str
    course_title: str
    attempt_number: int
    score: int
    max_score: int
    percentage: float
    passed: bool
    time_spent: int
    completed_at: datetime


@dataclass(frozen=True)
class TrendPoint(_Serializable):
    date: date
    attempts: int
    average_percentage: float
    passed_attempts: int


@dataclass(frozen=True)
class LessonProgress(_Serializable):
    lesson_id: str
    course_id: str
    completed: bool
    attempt_ids: tuple[str, ...]
    best_score: int
    time_spent: int
    completed_at: Optional[datetime] = None


@dataclass(frozen=True)
class CourseProgress(_Serializable):
    course_id: str
    completed_lessons: tuple[str, ...] = field(default_factory=tuple)
    current_lesson: Optional[str] = None
    time_spent: int = 0
    last_accessed: Optional[datetime] = None
    percentage: int = 0


def overall_stats(attempts: Sequence[QuizAttempt]) -> OverallStats:
    if not attempts:
        return OverallStats()
    passed = sum(1 for a in attempts if a.passed)
    return OverallStats(
        total_quizzes=len(attempts),
        average_percentage=_avg([a.percentage for a in attempts]),
        passed_quizzes=passed,
        failed_quizzes=len(attempts) - passed,
        total_time_spent=sum(a.time_spent for a in attempts),
    )


def _lesson_title(registry: Optional[CourseRegistry], lesson_id: str) -> str:
    lesson = registry.get_lesson(lesson_id) if registry else None
    return lesson.title if lesson else UNKNOWN_LESSON


def _course_title(registry: Optional[CourseRegistry], lesson_id: str) -> str:
    course = registry.course_for_lesson(lesson_id) if registry else None
    return course.title if course else UNKNOWN_COURSE


def _group(attempts: Sequence[QuizAttempt], key) -> dict[str, list[QuizAttempt]]:
    groups: dict[str, list[QuizAttempt]] = {}
    for attempt in attempts:
        groups.setdefault(key(attempt), []).append(attempt)
    return groups


def by_lesson(attempts: Sequence[QuizAttempt], registry: Optional[CourseRegistry] = None) -> list[LessonStats]:
    """Per-lesson aggregates, most recently attempted lesson first."""
    stats = []
    for lesson_id, group in _group(attempts, lambda a: a.lesson_id).items():
        percentages = [a.percentage for a in group]
        stats.append(LessonStats(
            lesson_id=lesson_id,
            lesson_title=_lesson_title(registry, lesson_id),
            attempts=len(group),
            average_percentage=_avg(percentages),
            best_percentage=round(max(percentages), 2),
            worst_percentage=round(min(percentages), 2),
            passed_attempts=sum(1 for a in group if a.passed),
            last_attempt=max(a.completed_at for a in group),
        ))
    return sorted(stats, key=lambda s: s.last_attempt, reverse=True)


def by_course(attempts: Sequence[QuizAttempt], registry: CourseRegistry) -> list[CourseStats]:
    """Per-course aggregates; attempts on lessons outside the catalog are skipped."""
    joined: dict[str, list[QuizAttempt]] = {}
    titles: dict[str, str] = {}
    for attempt in attempts:
        course = registry.course_for_lesson(attempt.lesson_id)
        if course is None:
            continue
        joined.setdefault(course.id, []).append(attempt)
        titles[course.id] = course.title

    stats = []
    for course_id, group in joined.items():
        percentages = [a.percentage for a in group]
        stats.append(CourseStats(
            course_id=course_id,
            course_title=titles[course_id],
            total_attempts=len(group),
            average_percentage=_avg(percentages),
            best_percentage=round(max(percentages), 2),
            worst_percentage=round(min(percentages), 2),
            passed_attempts=sum(1 for a in group if a.passed),
            lessons_attempted=len({a.lesson_id for a in group}),
        ))
    return stats


def most_recent(attempts: Sequence[QuizAttempt], limit: int) -> list[QuizAttempt]:
    """Newest first; equal completion times put the later-appended attempt first."""
    ordered = sorted(
        enumerate(attempts),
        key=lambda pair: (pair[1].completed_at, pair[0]),
        reverse=True,
    )
    return [attempt for _, attempt in ordered[:max(limit, 0)]]


def enrich_recent(attempts: Sequence[QuizAttempt], registry: Optional[CourseRegistry] = None) -> list[RecentAttempt]:
    return [
        RecentAttempt(
            attempt_id=a.attempt_id,
            lesson_id=a.lesson_id,
            lesson_title=_lesson_title(registry, a.lesson_id),
            course_title=_course_title(registry, a.lesson_id),
            attempt_number=a.attempt_number,
            score=a.score,
            max_score=a.max_score,
            percentage=round(a.percentage, 2),
            passed=a.passed,
            time_spent=a.time_spent,
            completed_at=a.completed_at,
        )
        for a in attempts
    ]


def trend(attempts: Sequence[QuizAttempt], now: datetime, days: int = 30) -> list[TrendPoint]:
    """Daily aggregates for the last *days* days, oldest day first."""
    since = now - timedelta(days=days)
    window = [a for a in attempts if a.completed_at >= since]
    points = []
    for day, group in _group(window, lambda a: a.completed_at.date().isoformat()).items():
        points.append(TrendPoint(
            date=date.fromisoformat(day),
            attempts=len(group),
            average_percentage=_avg([a.percentage for a in group]),
            passed_attempts=sum(1 for a in group if a.passed),
        ))
    return sorted(points, key=lambda p: p.date)


def lesson_progress(attempts: Sequence[QuizAttempt], lesson_id: str, course_id: str = "") -> Optional[LessonProgress]:
    """Derive a lesson's progress from its attempts; None if never attempted.

    A lesson stays completed once any attempt has passed.
    """
    group = [a for a in attempts if a.lesson_id == lesson_id]
    if not group:
        return None
    first_pass = next((a for a in group if a.passed), None)
    return LessonProgress(
        lesson_id=lesson_id,
        course_id=course_id,
        completed=first_pass is not None,
        attempt_ids=tuple(a.attempt_id for a in group),
        best_score=max(a.score for a in group),
        time_spent=sum(a.time_spent for a in group),
        completed_at=first_pass.completed_at if first_pass else None,
    )


def course_progress(attempts: Sequence[QuizAttempt], course: Course) -> CourseProgress:
    lesson_ids = course.lesson_ids
    members = set(lesson_ids)
    in_course = [a for a in attempts if a.lesson_id in members]

    completed = []
    current = None
    for lesson_id in lesson_ids:
        progress = lesson_progress(in_course, lesson_id, course.id)
        if progress is not None and progress.completed:
            completed.append(lesson_id)
        elif current is None:
            current = lesson_id

    return CourseProgress(
        course_id=course.id,
        completed_lessons=tuple(completed),
        current_lesson=current,
        time_spent=sum(a.time_spent for a in in_course),
        last_accessed=max((a.completed_at for a in in_course), default=None),
        percentage=round(len(completed) / len(lesson_ids) * 100) if lesson_ids else 0,
    )


@dataclass(frozen=True)
class ProgressSummary(_Serializable):
    total_lessons: int = 0
    completed_lessons: int = 0
    completion_rate: int = 0
    total_time_spent: int = 0  # minutes
    average_score: int = 0


def completed_lesson_ids(attempts: Sequence[QuizAttempt]) -> set[str]:
    return {a.lesson_id for a in attempts if a.passed}


def progress_summary(attempts: Sequence[QuizAttempt]) -> ProgressSummary:
    """Lesson-level summary across every lesson the learner has started.

    ``average_score`` averages the best score of each completed lesson.
    """
    lessons = [
        lesson_progress(group, lesson_id)
        for lesson_id, group in _group(attempts, lambda a: a.lesson_id).items()
    ]
    if not lessons:
        return ProgressSummary()
    completed = [p for p in lessons if p.completed]
    return ProgressSummary(
        total_lessons=len(lessons),
        completed_lessons=len(completed),
        completion_rate=round(len(completed) / len(lessons) * 100),
        total_time_spent=round(sum(p.time_spent for p in lessons) / 60),
        average_score=round(_avg([p.best_score for p in completed])),
    )

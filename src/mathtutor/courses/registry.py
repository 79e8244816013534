"""Course discovery and registry."""

from __future__ import annotations

import logging
from pathlib import Path

import yaml

from mathtutor.courses.loader import DEFAULT_PASS_SCORE, Course, Lesson, load_course

logger = logging.getLogger(__name__)


class CourseRegistry:
    """Discovers and loads courses from the courses directory.

    Courses are read once on first access; lookups after that are served
    from the cached index.
    """

    def __init__(self, courses_dir: Path | None = None, default_pass_score: int = DEFAULT_PASS_SCORE):
        self.courses_dir = courses_dir or (
            Path(__file__).parent
        )
        self.default_pass_score = default_pass_score
        self._courses: list[Course] | None = None
        self._lessons: dict[str, Lesson] = {}

    def _load(self) -> list[Course]:
        if self._courses is None:
            courses = []
            for path in sorted(self.courses_dir.iterdir()):
                if path.is_dir() and (path / "course.yaml").exists():
                    try:
                        courses.append(load_course(path, self.default_pass_score))
                    except (OSError, KeyError, TypeError, AttributeError, yaml.YAMLError):
                        logger.warning("Skipping unreadable course at %s", path, exc_info=True)
            self._courses = courses
            self._lessons = {
                lesson.id: lesson for course in courses for lesson in course.lessons
            }
        return self._courses

    def list_courses(self) -> list[Course]:
        """Discover all courses with a course.yaml."""
        return list(self._load())

    def get_course(self, course_id: str) -> Course | None:
        for course in self._load():
            if course.id == course_id:
                return course
        return None

    def get_lesson(self, lesson_id: str) -> Lesson | None:
        self._load()
        return self._lessons.get(lesson_id)

    def course_for_lesson(self, lesson_id: str) -> Course | None:
        lesson = self.get_lesson(lesson_id)
        if lesson is None:
            return None
        return self.get_course(lesson.course_id)

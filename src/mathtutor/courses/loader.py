"""YAML course parser for MathTutor."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import yaml

from mathtutor.engine.adaptive import Depth

DEFAULT_PASS_SCORE = 3


@dataclass(frozen=True)
class Lesson:
    id: str
    title: str
    course_id: str = ""
    description: str = ""
    topics: tuple[str, ...] = ()
    duration: int = 15  # minutes
    difficulty: Depth = Depth.BEGINNER
    pass_required_score: int = DEFAULT_PASS_SCORE

    @property
    def primary_topic(self) -> str:
        return self.topics[0] if self.topics else "math"


@dataclass
class Course:
    id: str
    title: str
    description: str = ""
    level: str = ""
    lessons: list[Lesson] = field(default_factory=list)

    @property
    def lesson_ids(self) -> list[str]:
        return [lesson.id for lesson in self.lessons]


def _parse_lesson(raw: dict, course_id: str, default_pass_score: int) -> Lesson:
    topics = raw.get("topics") or []
    if isinstance(topics, str):
        topics = [t.strip() for t in topics.split(",") if t.strip()]
    return Lesson(
        id=raw["id"],
        title=raw.get("title", raw["id"]),
        course_id=course_id,
        description=raw.get("description", ""),
        topics=tuple(topics),
        duration=raw.get("duration", 15),
        difficulty=Depth.from_value(raw.get("difficulty", "beginner")),
        pass_required_score=raw.get("pass_required_score", default_pass_score),
    )


def load_course(course_dir: Path, default_pass_score: int = DEFAULT_PASS_SCORE) -> Course:
    """Load course.yaml from a course directory."""
    course_file = course_dir / "course.yaml"
    with open(course_file) as f:
        data = yaml.safe_load(f)

    c = data["course"]
    return Course(
        id=c["id"],
        title=c["title"],
        description=c.get("description", ""),
        level=c.get("level", ""),
        lessons=[
            _parse_lesson(raw, c["id"], default_pass_score)
            for raw in c.get("lessons", [])
        ],
    )

"""Adaptive difficulty resolution.

A lesson declares a baseline depth. The learner's recent performance nudges
the quiz difficulty at most one tier away from that baseline.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Depth(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"

    @classmethod
    def from_value(cls, value: str) -> "Depth":
        try:
            return cls(value)
        except ValueError:
            return cls.INTERMEDIATE


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class LearningPath(str, Enum):
    VISUAL = "visual"
    AUDITORY = "auditory"


_TIERS: list[Difficulty] = [Difficulty.EASY, Difficulty.MEDIUM, Difficulty.HARD]

_BASELINE: dict[Depth, Difficulty] = {
    Depth.BEGINNER: Difficulty.EASY,
    Depth.INTERMEDIATE: Difficulty.MEDIUM,
    Depth.ADVANCED: Difficulty.HARD,
}

STRUGGLING_SCORE = 60.0
STRUGGLING_CONFIDENCE = 3.0
EXCELLING_SCORE = 85.0
EXCELLING_CONFIDENCE = 4.0


@dataclass(frozen=True)
class UserPerformance:
    """Performance summary maintained by the host after each attempt."""
    avg_quiz_score: float = 0.0  # 0-100
    avg_time_on_task: float = 0.0  # seconds
    confidence_level: float = 3.0  # 1.0-5.0

    @classmethod
    def from_dict(cls, data: dict) -> "UserPerformance":
        return cls(
            avg_quiz_score=float(data.get("avgQuizScore", 0.0)),
            avg_time_on_task=float(data.get("avgTimeOnTask", 0.0)),
            confidence_level=float(data.get("confidenceLevel", 3.0)),
        )


def resolve_difficulty(performance: UserPerformance, baseline: Depth | str) -> Difficulty:
    """Map a lesson baseline to a quiz difficulty, adjusted by performance.

    Struggling learners (low score *or* low confidence) drop one tier;
    strong learners (high score *and* high confidence) climb one tier.
    The adjustment is a single step and clamps at the ends.
    """
    if not isinstance(baseline, Depth):
        baseline = Depth.from_value(baseline)
    tier = _TIERS.index(_BASELINE[baseline])

    if (performance.avg_quiz_score < STRUGGLING_SCORE
            or performance.confidence_level < STRUGGLING_CONFIDENCE):
        tier = max(tier - 1, 0)
    elif (performance.avg_quiz_score > EXCELLING_SCORE
            and performance.confidence_level > EXCELLING_CONFIDENCE):
        tier = min(tier + 1, len(_TIERS) - 1)

    return _TIERS[tier]

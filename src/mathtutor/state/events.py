"""Attempt notifications for dashboards and other listeners."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AttemptRecorded:
    user_id: str
    lesson_id: str
    score: int
    passed: bool

    def to_dict(self) -> dict:
        return {
            "userId": self.user_id,
            "lessonId": self.lesson_id,
            "score": self.score,
            "passed": self.passed,
        }


Listener = Callable[[AttemptRecorded], None]


class AttemptEvents:
    """Fire-and-forget observer registry.

    Listeners run in registration order. A listener that raises is logged
    and skipped; the remaining listeners still run.
    """

    def __init__(self) -> None:
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register *listener*; returns a callable that removes it again."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def publish(self, event: AttemptRecorded) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Error in attempt listener %r", listener)

    def __len__(self) -> int:
        return len(self._listeners)

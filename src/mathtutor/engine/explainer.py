"""Remediation explanations for incorrect answers."""

from __future__ import annotations

import logging
from typing import Optional

from mathtutor.courses.loader import Lesson
from mathtutor.engine.generator import TextGenerator
from mathtutor.engine.quiz_parser import QuizQuestion

logger = logging.getLogger(__name__)


def build_explanation_prompt(question: QuizQuestion, chosen: int, lesson: Lesson) -> str:
    return f"""You are a dyslexia-friendly math tutor. A student answered a question incorrectly and needs a clear, encouraging explanation.

LESSON TOPIC: {lesson.title}
QUESTION: {question.question}
CORRECT ANSWER: {question.correct_option}
STUDENT'S ANSWER: {question.options[chosen]}

Please provide:
1. A gentle acknowledgment that it's okay to make mistakes
2. Clear explanation of why their answer was incorrect
3. Step-by-step explanation of the correct solution
4. An encouraging note to help build confidence

Keep language simple, use short sentences, and be very encouraging."""


def fallback_explanation(question: QuizQuestion, chosen: int) -> str:
    return (
        f"That's not quite right, but don't worry! "
        f"The correct answer is \"{question.correct_option}\".\n\n"
        f"Your answer was \"{question.options[chosen]}\".\n\n"
        f"Here's why the correct answer is right: {question.explanation}\n\n"
        f"Remember, making mistakes is part of learning. "
        f"You're doing great by practicing these problems!"
    )


class ExplanationGenerator:
    def __init__(self, generator: Optional[TextGenerator] = None):
        self.generator = generator

    async def explain(self, question: QuizQuestion, chosen: int, lesson: Lesson) -> str:
        """Explain why *chosen* was wrong; always returns text."""
        if self.generator is None:
            return fallback_explanation(question, chosen)

        try:
            text = await self.generator.generate(
                build_explanation_prompt(question, chosen, lesson)
            )
        except Exception:
            logger.warning("Explanation generation failed for %s", question.id, exc_info=True)
            return fallback_explanation(question, chosen)

        if not text or not text.strip():
            return fallback_explanation(question, chosen)
        return text.strip()

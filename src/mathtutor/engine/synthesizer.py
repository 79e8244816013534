"""Quiz question synthesis: prompt → generator → parse → validate → pad."""

from __future__ import annotations

import logging
from typing import Optional

from mathtutor.courses.loader import Lesson
from mathtutor.engine.adaptive import Difficulty, LearningPath
from mathtutor.engine.fallback_bank import fallback_question, fallback_quiz
from mathtutor.engine.generator import TextGenerator
from mathtutor.engine.quiz_parser import (
    BlockError,
    QuizQuestion,
    accepted_blocks,
    parse_response,
)

logger = logging.getLogger(__name__)

QUESTIONS_PER_QUIZ = 5

PATH_INSTRUCTIONS = {
    LearningPath.VISUAL: "Focus on visual representations, diagrams, and spatial reasoning where possible.",
    LearningPath.AUDITORY: "Focus on step-by-step verbal explanations and logical reasoning.",
}


def build_quiz_prompt(lesson: Lesson, difficulty: Difficulty, path: LearningPath) -> str:
    topics = ", ".join(lesson.topics) or lesson.title
    return f"""You are creating a math quiz for students with dyslexia. Generate exactly {QUESTIONS_PER_QUIZ} multiple choice questions.

LESSON: {lesson.title}
DESCRIPTION: {lesson.description}
TOPICS: {topics}
DIFFICULTY: {difficulty.value}
LEARNING PATH: {path.value}

INSTRUCTIONS:
- Create exactly {QUESTIONS_PER_QUIZ} multiple choice questions
- Each question should have 4 answer options (A, B, C, D)
- Questions should test understanding of: {topics}
- Difficulty level: {difficulty.value}
- {PATH_INSTRUCTIONS[path]}
- Use clear, simple language suitable for dyslexic learners
- Avoid trick questions or unnecessarily complex wording
- Include a mix of computational and conceptual questions

FORMAT YOUR RESPONSE EXACTLY LIKE THIS:
QUESTION 1: [Question text]
A) [Option A]
B) [Option B]
C) [Option C]
D) [Option D]
CORRECT: [A/B/C/D]
EXPLANATION: [Why this is correct]

QUESTION 2: [Question text]
A) [Option A]
B) [Option B]
C) [Option C]
D) [Option D]
CORRECT: [A/B/C/D]
EXPLANATION: [Why this is correct]

[Continue for all {QUESTIONS_PER_QUIZ} questions...]"""


class QuestionSetSynthesizer:
    """Builds a five-question quiz for a lesson, never failing.

    Generated questions are used when the provider returns well-formed
    blocks; anything missing is filled from the fallback bank.
    """

    def __init__(self, generator: Optional[TextGenerator] = None):
        self.generator = generator

    async def synthesize(
        self,
        lesson: Lesson,
        difficulty: Difficulty,
        path: LearningPath = LearningPath.VISUAL,
    ) -> list[QuizQuestion]:
        if self.generator is None:
            return fallback_quiz(lesson.primary_topic, difficulty.value, QUESTIONS_PER_QUIZ)

        prompt = build_quiz_prompt(lesson, difficulty, path)
        try:
            response = await self.generator.generate(prompt)
        except Exception:
            logger.warning(
                "Quiz generation failed for lesson %s; using fallback bank",
                lesson.id, exc_info=True,
            )
            return fallback_quiz(lesson.primary_topic, difficulty.value, QUESTIONS_PER_QUIZ)

        return self.assemble(response, lesson, difficulty)

    def assemble(self, response: str, lesson: Lesson, difficulty: Difficulty) -> list[QuizQuestion]:
        """Turn raw generator output into exactly five questions."""
        results = parse_response(response)
        for r in results:
            if isinstance(r, BlockError):
                logger.debug("Discarding question block %d: %s", r.index + 1, r.reason)

        questions = [
            QuizQuestion(
                id=f"q{i + 1}",
                question=block.question,
                options=block.options,
                correct_answer=block.correct_answer,
                explanation=block.explanation,
                difficulty=difficulty.value,
            )
            for i, block in enumerate(accepted_blocks(results)[:QUESTIONS_PER_QUIZ])
        ]

        if len(questions) < QUESTIONS_PER_QUIZ:
            logger.warning(
                "Generated %d valid questions instead of %d for lesson %s; padding with fallback questions",
                len(questions), QUESTIONS_PER_QUIZ, lesson.id,
            )
            for position in range(len(questions), QUESTIONS_PER_QUIZ):
                questions.append(
                    fallback_question(position, lesson.primary_topic, difficulty.value)
                )

        return questions

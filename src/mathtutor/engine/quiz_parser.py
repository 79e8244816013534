"""Parser for the delimited quiz format returned by the text generator.

Each block is parsed into either a ``ParsedBlock`` or a ``BlockError``, so a
malformed block is an ordinary value the caller can filter, never an
exception.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Union

OPTION_LETTERS = "ABCD"
OPTION_COUNT = len(OPTION_LETTERS)

QUESTION_MARKER = re.compile(r"QUESTION\s+\d+\s*:", re.IGNORECASE)
OPTION_LINE = re.compile(r"^([A-D])\)\s*(.*)$")
CORRECT_LINE = re.compile(r"^CORRECT:\s*(.*)$", re.IGNORECASE)
EXPLANATION_LINE = re.compile(r"^EXPLANATION:\s*(.*)$", re.IGNORECASE)
# "B", "b", "(B)", "B) 7", "B." with markdown emphasis already stripped
LEADING_LETTER = re.compile(r"^[(\[]?([A-D])(?![A-Za-z0-9])", re.IGNORECASE)
STANDALONE_LETTER = re.compile(r"(?<![A-Za-z0-9])([A-D])(?![A-Za-z0-9])")


@dataclass(frozen=True)
class QuizQuestion:
    id: str
    question: str
    options: tuple[str, ...]
    correct_answer: int
    explanation: str
    difficulty: str = "medium"

    @property
    def correct_option(self) -> str:
        return self.options[self.correct_answer]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "question": self.question,
            "options": list(self.options),
            "correctAnswer": self.correct_answer,
            "explanation": self.explanation,
            "difficulty": self.difficulty,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "QuizQuestion":
        return cls(
            id=data["id"],
            question=data["question"],
            options=tuple(data["options"]),
            correct_answer=data["correctAnswer"],
            explanation=data.get("explanation", ""),
            difficulty=data.get("difficulty", "medium"),
        )


@dataclass(frozen=True)
class ParsedBlock:
    index: int
    question: str
    options: tuple[str, ...]
    correct_answer: int
    explanation: str


@dataclass(frozen=True)
class BlockError:
    index: int
    reason: str


BlockResult = Union[ParsedBlock, BlockError]


def split_blocks(response: str) -> list[str]:
    """Split raw generator output on question markers.

    Text before the first marker (preamble) is discarded.
    """
    return QUESTION_MARKER.split(response)[1:]


def correct_letter_of(value: str) -> str:
    """Extract the answer letter from a CORRECT: value, or "" if ambiguous.

    Accepts a letter at the start ("C", "(C)", "C) 7", "**C**") or exactly one
    standalone capital letter elsewhere ("Answer: C"). Two different letters
    ("A or C") are ambiguous.
    """
    value = value.strip().strip("*_` ")
    m = LEADING_LETTER.match(value)
    if m:
        letter = m.group(1).upper()
        others = set(STANDALONE_LETTER.findall(value[m.end():])) - {letter}
        return "" if others else letter
    found = set(STANDALONE_LETTER.findall(value))
    if len(found) == 1:
        return found.pop()
    return ""


def parse_block(block: str, index: int) -> BlockResult:
    """Parse a single question block."""
    lines = [line.strip() for line in block.strip().splitlines() if line.strip()]
    if not lines:
        return BlockError(index, "empty block")

    question = lines[0]
    if OPTION_LINE.match(question) or CORRECT_LINE.match(question):
        return BlockError(index, "missing question text")

    options: list[str] = []
    correct_letter = ""
    correct_raw = ""
    explanation = ""

    for line in lines[1:]:
        m = OPTION_LINE.match(line)
        if m:
            options.append(m.group(2).strip())
            continue
        m = CORRECT_LINE.match(line)
        if m:
            correct_raw = m.group(1).strip()
            correct_letter = correct_letter_of(correct_raw)
            continue
        m = EXPLANATION_LINE.match(line)
        if m:
            explanation = m.group(1).strip()

    if len(options) != OPTION_COUNT:
        return BlockError(index, f"expected {OPTION_COUNT} options, found {len(options)}")
    if any(not option for option in options):
        return BlockError(index, "blank option text")
    if not correct_letter:
        return BlockError(index, f"invalid correct answer letter {correct_raw!r}")
    if not explanation:
        return BlockError(index, "missing explanation")

    return ParsedBlock(
        index=index,
        question=question,
        options=tuple(options),
        correct_answer=OPTION_LETTERS.index(correct_letter),
        explanation=explanation,
    )


def parse_response(response: str) -> list[BlockResult]:
    """Parse every block in a generator response, in order."""
    if not response:
        return []
    return [parse_block(block, i) for i, block in enumerate(split_blocks(response))]


def accepted_blocks(results: list[BlockResult]) -> list[ParsedBlock]:
    return [r for r in results if isinstance(r, ParsedBlock)]

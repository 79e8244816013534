"""Static fallback questions used when generation is unavailable or malformed."""

from __future__ import annotations

from mathtutor.engine.quiz_parser import QuizQuestion

# (question, options, correct index, explanation)
_Entry = tuple[str, tuple[str, str, str, str], int, str]

ADDITION_BANK: list[_Entry] = [
    ("What is 15 + 23?", ("38", "37", "39", "36"), 0,
     "15 + 23 = 38. Add the ones place: 5 + 3 = 8. Add the tens place: 1 + 2 = 3. So the answer is 38."),
    ("Count by 5s: 5, 10, 15, ... What comes next?", ("16", "25", "20", "30"), 2,
     "Counting by 5s adds 5 each time. 15 + 5 = 20."),
    ("What is 8 + 7?", ("14", "15", "16", "13"), 1,
     "Make a ten: 8 + 2 = 10, and 7 - 2 = 5 is left. 10 + 5 = 15."),
    ("You have 12 apples and get 6 more. How many apples now?", ("16", "17", "19", "18"), 3,
     "Getting more means add. 12 + 6 = 18."),
    ("What is 40 + 30?", ("70", "60", "80", "43"), 0,
     "Add the tens: 4 tens + 3 tens = 7 tens. 7 tens is 70."),
]

FRACTION_BANK: list[_Entry] = [
    ("What is 1/2 + 1/4?", ("3/4", "2/6", "1/3", "2/4"), 0,
     "To add fractions, find a common denominator. 1/2 = 2/4, so 2/4 + 1/4 = 3/4."),
    ("Which fraction is the same as 1/2?", ("2/3", "3/6", "1/4", "2/5"), 1,
     "3/6 simplifies to 1/2. Divide the top and the bottom by 3."),
    ("What is 3/5 - 1/5?", ("2/0", "4/5", "2/5", "3/10"), 2,
     "The denominators match, so subtract the tops: 3 - 1 = 2. The answer is 2/5."),
    ("Which fraction is bigger?", ("1/8", "1/6", "1/4", "1/3"), 3,
     "With the same top number, the smaller bottom number means bigger pieces. 1/3 is biggest."),
    ("What is 1/3 of 12?", ("4", "3", "6", "9"), 0,
     "Split 12 into 3 equal groups. Each group has 4."),
]

ALGEBRA_BANK: list[_Entry] = [
    ("If x + 5 = 12, what is x?", ("7", "6", "8", "5"), 0,
     "To solve x + 5 = 12, subtract 5 from both sides: x = 12 - 5 = 7."),
    ("If 3x = 15, what is x?", ("3", "5", "12", "45"), 1,
     "Divide both sides by 3: x = 15 / 3 = 5."),
    ("What is the value of 2y when y = 4?", ("6", "2", "8", "24"), 2,
     "2y means 2 times y. 2 times 4 = 8."),
    ("If x - 4 = 10, what is x?", ("6", "10", "4", "14"), 3,
     "Add 4 to both sides: x = 10 + 4 = 14."),
    ("What is 2 + 3 x 4?", ("14", "20", "24", "9"), 0,
     "Multiply first: 3 x 4 = 12. Then add: 2 + 12 = 14."),
]

# Keyword groups in priority order; the first match wins.
_TOPIC_BANKS: list[tuple[tuple[str, ...], list[_Entry]]] = [
    (("addition", "counting"), ADDITION_BANK),
    (("fraction",), FRACTION_BANK),
]

BANK_SIZE = 5


def select_bank(topic: str) -> list[_Entry]:
    """Choose a bank by keyword match on *topic*; algebra is the default."""
    topic = topic.lower()
    for keywords, bank in _TOPIC_BANKS:
        if any(keyword in topic for keyword in keywords):
            return bank
    return ALGEBRA_BANK


def fallback_question(position: int, topic: str, difficulty: str) -> QuizQuestion:
    """Return the bank question for a 0-based position in the quiz."""
    bank = select_bank(topic)
    question, options, correct, explanation = bank[position % len(bank)]
    return QuizQuestion(
        id=f"fallback-q{position + 1}",
        question=question,
        options=options,
        correct_answer=correct,
        explanation=explanation,
        difficulty=difficulty,
    )


def fallback_quiz(topic: str, difficulty: str, count: int = BANK_SIZE) -> list[QuizQuestion]:
    return [fallback_question(i, topic, difficulty) for i in range(count)]

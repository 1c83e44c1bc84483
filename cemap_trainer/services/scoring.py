"""
Quiz-session grading.

Quiz sessions live on the client; this module holds the grading rules
they follow so the server can grade a posted-back session with the same
logic.
"""
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional

from cemap_trainer.core.exceptions import QuizValidationError
from cemap_trainer.models.schemas import OPTION_LETTERS

# 80% rounded up, i.e. ceil(total * 4 / 5) in integer arithmetic.
PASS_NUMERATOR = 4
PASS_DENOMINATOR = 5

# Enforced only by the client (a local counter); the server never checks it.
PRACTICE_RETRY_LIMIT = 5


def pass_mark(total: int) -> int:
    """Minimum score needed to pass a quiz of `total` questions."""
    return -(-total * PASS_NUMERATOR // PASS_DENOMINATOR)


def is_pass(score: int, total: int) -> bool:
    return score >= pass_mark(total)


@dataclass
class TopicTally:
    correct: int = 0
    total: int = 0


@dataclass
class QuizResult:
    score: int
    total: int
    topic_breakdown: Dict[str, TopicTally]

    @property
    def pass_mark(self) -> int:
        return pass_mark(self.total)

    @property
    def passed(self) -> bool:
        return self.score >= self.pass_mark

    @property
    def percentage(self) -> int:
        return round(self.score * 100 / self.total) if self.total else 0


def grade(questions: Iterable, answers: Mapping[str, str]) -> QuizResult:
    """Score answers against the questions as served.

    `questions` only need `id`, `topic` and `answer` attributes, so both
    catalog questions and client echoes of them can be graded. Unanswered
    questions count towards the total but not towards any topic tally.
    """
    questions = list(questions)
    score = 0
    breakdown: Dict[str, TopicTally] = {}

    for q in questions:
        selected = answers.get(q.id)
        if selected is None:
            continue
        tally = breakdown.setdefault(q.topic, TopicTally())
        tally.total += 1
        if selected.upper() == q.answer:
            tally.correct += 1
            score += 1

    return QuizResult(score=score, total=len(questions), topic_breakdown=breakdown)


@dataclass
class QuizSession:
    """One client-side attempt: questions in order plus chosen letters."""
    mode: str
    questions: List = field(default_factory=list)
    answers: Dict[str, str] = field(default_factory=dict)
    current_index: int = 0

    def answer(self, question_id: str, letter: str) -> None:
        letter = letter.upper()
        if letter not in OPTION_LETTERS:
            raise QuizValidationError(f"Answer must be one of {', '.join(OPTION_LETTERS)}")
        if not any(q.id == question_id for q in self.questions):
            raise QuizValidationError(f"Question {question_id} is not part of this quiz")
        self.answers[question_id] = letter

    def current(self) -> Optional[object]:
        if self.current_index < len(self.questions):
            return self.questions[self.current_index]
        return None

    def advance(self) -> None:
        self.current_index = min(self.current_index + 1, len(self.questions))

    @property
    def finished(self) -> bool:
        return self.current_index >= len(self.questions)

    def result(self) -> QuizResult:
        return grade(self.questions, self.answers)

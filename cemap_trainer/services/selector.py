"""
Quiz question selection.

Builds the question list for one quiz attempt according to the mode's
composition rules, then shuffles each question's options so the correct
letter moves between attempts.
"""
import enum
import logging
import random
from typing import List, Optional, Sequence, TypeVar

from cemap_trainer.core.exceptions import QuizValidationError, UnknownModeError
from cemap_trainer.models.schemas import OPTION_LETTERS, Question
from .question_bank import QuestionBank
from .topics import TopicExam

logger = logging.getLogger(__name__)

T = TypeVar("T")

EXAM_QUESTION_COUNT = 50
SCENARIO_GROUPS_PER_EXAM = 10
PRACTICE_DEFAULT_COUNT = 5
PRACTICE_MAX_COUNT = 10
PRACTICE_SCENARIO_GROUPS = 2
PRACTICE_QUESTIONS_PER_GROUP = 2


class QuizMode(str, enum.Enum):
    PRACTICE = "practice"
    EXAM = "exam"
    SCENARIO = "scenario"
    TOPIC = "topic"

    @classmethod
    def parse(cls, value: "str | QuizMode") -> "QuizMode":
        try:
            return cls(value)
        except ValueError:
            raise UnknownModeError(str(value))


class QuestionSelector:
    """Mode-based sampler over a QuestionBank.

    The random source is injected so tests can seed it; every draw,
    including option shuffles, goes through it.
    """

    def __init__(self, bank: QuestionBank, rng: Optional[random.Random] = None):
        self.bank = bank
        self.rng = rng or random.Random()

    def select(
        self,
        mode: "str | QuizMode",
        count: Optional[int] = None,
        topic_exam: Optional[TopicExam] = None,
    ) -> List[Question]:
        """Return answer-shuffled questions for one attempt.

        Pools smaller than the target size yield as many questions as
        exist rather than an error.
        """
        mode = QuizMode.parse(mode)

        if mode is QuizMode.EXAM:
            picked = self._select_exam()
        elif mode is QuizMode.SCENARIO:
            picked = self._select_scenario()
        elif mode is QuizMode.PRACTICE:
            picked = self._select_practice(count)
        else:
            if topic_exam is None:
                raise QuizValidationError("Topic mode requires a topic")
            picked = self._select_topic(topic_exam)

        logger.debug("Selected %d questions for mode=%s", len(picked), mode.value)
        return [self.shuffle_options(q) for q in picked]

    # ------------------------------------------------------------
    # Mode rules
    # ------------------------------------------------------------
    def _select_exam(self) -> List[Question]:
        return self._sample(self.bank.standalone(), EXAM_QUESTION_COUNT)

    def _select_scenario(self) -> List[Question]:
        # Groups are atomic: pick whole groups, keep catalog order inside each.
        groups = self._sample(self.bank.complete_scenario_groups(), SCENARIO_GROUPS_PER_EXAM)
        return [q for group in groups for q in group]

    def _select_practice(self, count: Optional[int]) -> List[Question]:
        count = PRACTICE_DEFAULT_COUNT if count is None else count
        count = max(1, min(count, PRACTICE_MAX_COUNT))

        groups = self._sample(self.bank.complete_scenario_groups(), PRACTICE_SCENARIO_GROUPS)
        from_scenarios = [q for group in groups for q in group[:PRACTICE_QUESTIONS_PER_GROUP]][:count]
        standalone = self._sample(self.bank.standalone(), count - len(from_scenarios))

        combined = from_scenarios + standalone
        self.rng.shuffle(combined)
        return combined

    def _select_topic(self, topic_exam: TopicExam) -> List[Question]:
        return self._sample(self.bank.by_topics(topic_exam.topics), topic_exam.question_count)

    # ------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------
    def _sample(self, population: Sequence[T], k: int) -> List[T]:
        """Sample without replacement, capped at the population size."""
        k = max(0, min(k, len(population)))
        return self.rng.sample(list(population), k)

    def shuffle_options(self, question: Question) -> Question:
        """Uniformly permute the four options and relabel the answer."""
        order = list(range(len(OPTION_LETTERS)))
        self.rng.shuffle(order)

        options = question.options
        correct_index = OPTION_LETTERS.index(question.answer)
        return question.model_copy(update={
            "option_a": options[order[0]],
            "option_b": options[order[1]],
            "option_c": options[order[2]],
            "option_d": options[order[3]],
            "answer": OPTION_LETTERS[order.index(correct_index)],
        })

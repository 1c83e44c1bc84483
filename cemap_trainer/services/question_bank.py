"""
Static question catalog.

The bank is loaded once at startup from a JSON file (the packaged CeMAP
catalog by default) and is read-only afterwards, so a single instance is
shared by every request without locking.
"""
import json
import logging
from collections import OrderedDict
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

from pydantic import ValidationError

from cemap_trainer.core.exceptions import CatalogError
from cemap_trainer.models.schemas import Question

logger = logging.getLogger(__name__)

DEFAULT_BANK_PATH = Path(__file__).resolve().parent.parent / "data" / "questions.json"
SCENARIO_GROUP_SIZE = 5

ScenarioGroup = Tuple[Question, ...]


class QuestionBank:
    """In-memory catalog with topic and scenario-group indexes."""

    def __init__(self, questions: Iterable[Question]):
        self._questions: Dict[str, Question] = OrderedDict()
        for q in questions:
            if q.id in self._questions:
                raise CatalogError(f"Duplicate question id: {q.id}")
            self._questions[q.id] = q

        groups: Dict[str, List[Question]] = OrderedDict()
        for q in self._questions.values():
            if q.scenario_id:
                groups.setdefault(q.scenario_id, []).append(q)

        self._groups: Dict[str, ScenarioGroup] = OrderedDict()
        for scenario_id, members in groups.items():
            if len(members) != SCENARIO_GROUP_SIZE:
                logger.warning(
                    "Scenario group %s has %d questions, expected %d; it will not be served as a group",
                    scenario_id, len(members), SCENARIO_GROUP_SIZE,
                )
            self._groups[scenario_id] = tuple(members)

        self._standalone: Tuple[Question, ...] = tuple(
            q for q in self._questions.values() if not q.scenario_id
        )

    # ------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------
    @classmethod
    def from_json(cls, path: Union[str, Path]) -> "QuestionBank":
        """Load a catalog file holding a JSON list of question objects."""
        path = Path(path)
        if not path.exists():
            raise CatalogError(f"Question bank not found: {path}")

        raw = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(raw, list):
            raise CatalogError("Question bank must be a JSON list")

        try:
            questions = [Question.model_validate(item) for item in raw]
        except ValidationError as e:
            raise CatalogError(f"Malformed question in {path.name}: {e}") from e

        bank = cls(questions)
        logger.info(
            "Loaded %d questions (%d standalone, %d scenario groups) from %s",
            len(bank), len(bank.standalone()), len(bank.complete_scenario_groups()), path.name,
        )
        return bank

    @classmethod
    def load_default(cls, path: Optional[Union[str, Path]] = None) -> "QuestionBank":
        return cls.from_json(path or DEFAULT_BANK_PATH)

    # ------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------
    def __len__(self) -> int:
        return len(self._questions)

    def all(self) -> List[Question]:
        return list(self._questions.values())

    def get(self, question_id: str) -> Optional[Question]:
        return self._questions.get(question_id)

    def standalone(self) -> Sequence[Question]:
        """Questions that do not belong to a scenario."""
        return self._standalone

    def scenario_groups(self) -> List[ScenarioGroup]:
        return list(self._groups.values())

    def complete_scenario_groups(self) -> List[ScenarioGroup]:
        """Groups of exactly SCENARIO_GROUP_SIZE questions, in catalog order."""
        return [g for g in self._groups.values() if len(g) == SCENARIO_GROUP_SIZE]

    def by_topics(self, topics: Iterable[str]) -> List[Question]:
        wanted = set(topics)
        return [q for q in self._questions.values() if q.topic in wanted]

    def topics(self) -> List[str]:
        return sorted({q.topic for q in self._questions.values()})

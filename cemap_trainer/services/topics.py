"""
Topic exam configuration.

Each recognised slug maps to a frozen TopicExam describing which catalog
topics it draws from and how many questions it serves.
"""
from dataclasses import dataclass
from typing import Dict, List, Tuple

from cemap_trainer.core.exceptions import TopicNotFoundError

TOPIC_EXAM_QUESTION_COUNT = 16


@dataclass(frozen=True)
class TopicExam:
    slug: str
    title: str
    topics: Tuple[str, ...]
    question_count: int = TOPIC_EXAM_QUESTION_COUNT


def _exam(slug: str, title: str, *topics: str) -> TopicExam:
    return TopicExam(slug=slug, title=title, topics=topics or (title,))


TOPIC_EXAMS: Dict[str, TopicExam] = {
    exam.slug: exam
    for exam in (
        _exam("financial-services-industry", "Financial Services Industry"),
        _exam("economic-policy", "Economic Policy"),
        _exam("uk-taxation", "UK Taxation"),
        _exam("welfare-state-benefits", "Welfare State Benefits"),
        _exam("mortgage-law", "Mortgage Law"),
        _exam("mortgage-products", "Mortgage Products"),
        _exam("protection-products", "Protection Products"),
        _exam("financial-advice-process", "Financial Advice Process"),
    )
}


def resolve_topic_exam(slug: str) -> TopicExam:
    """Look up a topic exam by slug; unknown slugs raise TopicNotFoundError."""
    exam = TOPIC_EXAMS.get(slug.strip().lower())
    if exam is None:
        raise TopicNotFoundError(slug)
    return exam


def list_topic_exams() -> List[TopicExam]:
    return sorted(TOPIC_EXAMS.values(), key=lambda e: e.title)

from fastapi import APIRouter, Depends, Query, Request
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from cemap_trainer.api.deps import get_entitlements, get_question_bank, get_selector
from cemap_trainer.core.auth import bearer, get_current_user
from cemap_trainer.core.database import get_db
from cemap_trainer.core.exceptions import AccessDeniedError
from cemap_trainer.models.orm import Product
from cemap_trainer.models.schemas import (
    GradeRequest, GradeResponse, Question, TopicExamOut, TopicExamQuestions, TopicTallyOut,
)
from cemap_trainer.services.entitlements import EntitlementStore
from cemap_trainer.services.question_bank import QuestionBank
from cemap_trainer.services.scoring import grade
from cemap_trainer.services.selector import QuestionSelector, QuizMode
from cemap_trainer.services.topics import TopicExam, list_topic_exams, resolve_topic_exam

logger = logging.getLogger(__name__)

router = APIRouter()

GATED_MODES = {QuizMode.EXAM: Product.EXAM, QuizMode.SCENARIO: Product.SCENARIO}

def _topic_exam_out(exam: TopicExam) -> TopicExamOut:
    return TopicExamOut(slug=exam.slug, title=exam.title, topics=list(exam.topics), question_count=exam.question_count)

@router.get("/questions", response_model=List[Question])
def get_questions(
    request: Request,
    # Plain str so an unknown mode raises UnknownModeError (400), not a 422
    mode: str = Query("practice"),
    count: Optional[int] = Query(None),
    topic: Optional[str] = Query(None, description="Topic exam slug, required for topic mode"),
    creds: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    db: Session = Depends(get_db),
    selector: QuestionSelector = Depends(get_selector),
    entitlements: EntitlementStore = Depends(get_entitlements),
):
    quiz_mode = QuizMode.parse(mode)

    product = GATED_MODES.get(quiz_mode)
    if product is not None:
        user = get_current_user(request, creds, db)
        if not entitlements.check_access(user.id, product):
            raise AccessDeniedError(f"{product.value.capitalize()} access requires a purchase")

    topic_exam = resolve_topic_exam(topic) if quiz_mode is QuizMode.TOPIC and topic else None
    return selector.select(quiz_mode, count=count, topic_exam=topic_exam)

@router.get("/topics", response_model=List[str])
def get_topics(bank: QuestionBank = Depends(get_question_bank)):
    return bank.topics()

@router.get("/topic-exams", response_model=List[TopicExamOut])
def get_topic_exams():
    return [_topic_exam_out(exam) for exam in list_topic_exams()]

@router.get("/topic-exams/{slug}", response_model=TopicExamQuestions)
def get_topic_exam(slug: str, selector: QuestionSelector = Depends(get_selector)):
    exam = resolve_topic_exam(slug)
    questions = selector.select(QuizMode.TOPIC, topic_exam=exam)
    return TopicExamQuestions(config=_topic_exam_out(exam), questions=questions)

@router.post("/quiz/grade", response_model=GradeResponse)
def grade_quiz(payload: GradeRequest):
    result = grade(payload.questions, payload.answers)
    logger.debug("Graded %s quiz: %d/%d", payload.mode, result.score, result.total)
    return GradeResponse(
        score=result.score,
        total=result.total,
        pass_mark=result.pass_mark,
        passed=result.passed,
        percentage=result.percentage,
        topic_breakdown={t: TopicTallyOut(correct=v.correct, total=v.total) for t, v in result.topic_breakdown.items()},
    )

"""
Pydantic schemas shared by the services and the HTTP layer.

Python attributes are snake_case; JSON uses camelCase to match what the
web client already sends and reads.
"""
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .orm import LeaderboardMode, Product

OPTION_LETTERS: Tuple[str, ...] = ("A", "B", "C", "D")


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# ========== Questions ==========

class Question(CamelModel):
    """A single four-option question. Immutable once loaded."""
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    id: str
    topic: str
    question: str
    option_a: str
    option_b: str
    option_c: str
    option_d: str
    answer: str = Field(..., pattern="^[A-D]$")
    scenario: Optional[str] = None
    scenario_id: Optional[str] = None

    @property
    def options(self) -> Tuple[str, str, str, str]:
        return (self.option_a, self.option_b, self.option_c, self.option_d)

    @property
    def correct_option(self) -> str:
        return self.options[OPTION_LETTERS.index(self.answer)]


class TopicExamOut(CamelModel):
    slug: str
    title: str
    topics: List[str]
    question_count: int


class TopicExamQuestions(CamelModel):
    config: TopicExamOut
    questions: List[Question]


# ========== Grading ==========

class GradedQuestion(CamelModel):
    id: str
    topic: str
    answer: str = Field(..., pattern="^[A-D]$")


class GradeRequest(CamelModel):
    mode: str = "practice"
    questions: List[GradedQuestion] = Field(..., min_length=1)
    answers: Dict[str, str] = Field(default_factory=dict)


class TopicTallyOut(CamelModel):
    correct: int
    total: int


class GradeResponse(CamelModel):
    score: int
    total: int
    pass_mark: int
    passed: bool
    percentage: int
    topic_breakdown: Dict[str, TopicTallyOut]


# ========== Accounts ==========

class RegisterRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    name: str = Field(..., min_length=2, max_length=100)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 2:
            raise ValueError("Name must be at least 2 characters")
        return v


class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class UserOut(CamelModel):
    id: str
    email: str
    name: str
    is_admin: bool
    created_at: datetime


class AuthResponse(CamelModel):
    access_token: str
    token_type: str = "bearer"
    user: UserOut


# ========== Entitlements & payments ==========

class AccessTokenOut(CamelModel):
    token: str
    product: Product
    expires_at: Optional[datetime] = None
    created_at: datetime


class CreatePaymentIntentRequest(CamelModel):
    product: Product


class CreatePaymentIntentResponse(CamelModel):
    client_secret: str
    amount: int
    currency: str


class VerifyPaymentRequest(CamelModel):
    payment_intent_id: str = Field(..., min_length=1)


class VerifyPaymentResponse(CamelModel):
    verified: bool = True
    access_token: str
    product: Product
    expires_at: Optional[datetime] = None


class AccessCheckResponse(CamelModel):
    has_access: bool


class ProfileResponse(CamelModel):
    user: UserOut
    tokens: List[AccessTokenOut]
    has_exam_access: bool
    has_scenario_access: bool


class GrantPremiumRequest(CamelModel):
    user_id: str
    days_valid: int = Field(default=30, ge=1, le=3650)


class AdminStats(CamelModel):
    users: int
    tokens_by_product: Dict[str, int]
    high_scores: int


# ========== Leaderboard ==========

class HighScoreCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=50)
    score: int = Field(..., ge=0)
    total: int = Field(..., ge=1)
    mode: LeaderboardMode

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name is required")
        return v

    @model_validator(mode="after")
    def score_within_total(self):
        if self.score > self.total:
            raise ValueError("Score cannot exceed total")
        return self


class HighScoreOut(CamelModel):
    id: int
    name: str
    score: int
    total: int
    mode: str
    timestamp: datetime

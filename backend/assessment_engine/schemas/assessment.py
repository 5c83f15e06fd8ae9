from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator

from assessment_engine.engine.settings import AssessmentSettings
from assessment_engine.schemas.common import BaseSchema, PaginationMeta


QuestionType = Literal['mcq', 'true_false', 'essay', 'short_answer']
AssessmentType = Literal['exam', 'quiz', 'cat']


class QuestionOptionIn(BaseModel):
    text: str = Field(min_length=1)
    is_correct: bool = False


class QuestionCreate(BaseModel):
    question_type: QuestionType
    text: str = Field(min_length=1)
    points: float = Field(default=1, gt=0)
    time_limit_seconds: int | None = Field(default=None, ge=1)
    explanation: str | None = None
    is_required: bool = True
    options: list[QuestionOptionIn] | None = None
    max_words: int | None = None
    expected_keywords: list[str] | None = None
    case_sensitive: bool = False


class QuestionUpdate(BaseModel):
    question_type: QuestionType | None = None
    text: str | None = Field(default=None, min_length=1)
    points: float | None = Field(default=None, gt=0)
    time_limit_seconds: int | None = Field(default=None, ge=1)
    explanation: str | None = None
    is_required: bool | None = None
    options: list[QuestionOptionIn] | None = None
    max_words: int | None = None
    expected_keywords: list[str] | None = None
    case_sensitive: bool | None = None


class AssessmentSettingsUpdate(BaseModel):
    model_config = ConfigDict(extra='forbid')

    shuffle_questions: bool | None = None
    shuffle_options: bool | None = None
    show_results_immediately: bool | None = None
    show_correct_answers: bool | None = None
    allow_backtrack: bool | None = None
    question_per_page: int | None = Field(default=None, ge=1)


class AssessmentCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str | None = None
    instructions: str | None = None
    assessment_type: AssessmentType = 'exam'
    course_id: UUID | None = None
    duration_minutes: int = Field(default=60, ge=1)
    max_attempts: int = Field(default=1, ge=1)
    passing_score: float = Field(default=60, ge=0, le=100)
    settings: AssessmentSettings = Field(default_factory=AssessmentSettings)
    available_from: datetime | None = None
    available_until: datetime | None = None
    questions: list[QuestionCreate] = Field(default_factory=list)

    @model_validator(mode='after')
    def check_window(self) -> 'AssessmentCreate':
        if self.available_from and self.available_until and self.available_until < self.available_from:
            raise ValueError('available_until must not be before available_from')
        return self


class AssessmentUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    instructions: str | None = None
    assessment_type: AssessmentType | None = None
    course_id: UUID | None = None
    duration_minutes: int | None = Field(default=None, ge=1)
    max_attempts: int | None = Field(default=None, ge=1)
    passing_score: float | None = Field(default=None, ge=0, le=100)
    settings: AssessmentSettingsUpdate | None = None
    available_from: datetime | None = None
    available_until: datetime | None = None


class QuestionOut(BaseSchema):
    id: UUID
    order_index: int
    question_type: str
    text: str
    points: float
    time_limit_seconds: int | None
    explanation: str | None
    is_required: bool
    options: list[QuestionOptionIn] | None
    correct_answers: list[int]
    max_words: int | None
    expected_keywords: list[str] | None
    case_sensitive: bool


class AssessmentOut(BaseSchema):
    id: UUID
    title: str
    description: str | None
    instructions: str | None
    assessment_type: str
    course_id: UUID | None
    duration_minutes: int
    max_attempts: int
    passing_score: float
    settings: AssessmentSettings
    available_from: datetime | None
    available_until: datetime | None
    is_published: bool
    published_at: datetime | None
    is_active: bool
    total_points: float
    questions: list[QuestionOut]
    created_at: datetime
    updated_at: datetime

    @computed_field
    @property
    def question_count(self) -> int:
        return len(self.questions)


class PublicOptionOut(BaseModel):
    index: int
    text: str


class PublicQuestionOut(BaseModel):
    id: UUID
    question_type: str
    text: str
    points: float
    time_limit_seconds: int | None = None
    max_words: int | None = None
    is_required: bool = True
    options: list[PublicOptionOut] | None = None


class PublicAssessmentOut(BaseModel):
    """Student-facing view: authored order, correctness and keywords stripped."""

    id: UUID
    title: str
    description: str | None
    instructions: str | None
    assessment_type: str
    duration_minutes: int
    max_attempts: int
    passing_score: float
    available_from: datetime | None
    available_until: datetime | None
    total_points: float
    question_count: int


class AssessmentSummaryOut(BaseSchema):
    id: UUID
    title: str
    assessment_type: str
    course_id: UUID | None
    duration_minutes: int
    max_attempts: int
    passing_score: float
    available_from: datetime | None
    available_until: datetime | None
    is_published: bool
    is_active: bool
    total_points: float


class AssessmentListResponse(BaseModel):
    items: list[AssessmentSummaryOut]
    meta: PaginationMeta


class RegradeOut(BaseModel):
    assessment_id: UUID
    regraded_count: int

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from assessment_engine.schemas.assessment import PublicQuestionOut
from assessment_engine.schemas.common import BaseSchema, PaginationMeta


class AttemptOut(BaseSchema):
    id: UUID
    assessment_id: UUID
    student_id: UUID
    attempt_number: int
    status: str
    started_at: datetime
    expires_at: datetime
    submitted_at: datetime | None
    auto_submitted: bool
    last_saved_at: datetime | None
    furthest_page: int
    grading_status: str
    version: int


class AttemptAnswerOut(BaseSchema):
    question_id: UUID
    value: Any
    time_spent: int | None = None
    saved_at: datetime


class AttemptStartOut(BaseModel):
    attempt: AttemptOut
    resumed: bool
    questions: list[PublicQuestionOut]
    answers: list[AttemptAnswerOut]
    question_per_page: int
    page_count: int
    allow_backtrack: bool
    remaining_seconds: int


class AnswerIn(BaseModel):
    value: Any = None
    expected_version: int | None = Field(default=None, ge=1)
    time_spent: int | None = Field(default=None, ge=0)


class AnswerAck(BaseModel):
    attempt_id: UUID
    question_id: UUID
    version: int
    saved_at: datetime | None
    changed: bool


class PageVisitOut(BaseModel):
    attempt_id: UUID
    furthest_page: int
    version: int


class ManualScoreIn(BaseModel):
    question_id: UUID
    points: float = Field(ge=0)
    feedback: str | None = None


class QuestionResultOut(BaseModel):
    question_id: UUID
    question_type: str
    points_possible: float
    points_awarded: float
    status: str
    correct_answers: list[int] | None = None
    explanation: str | None = None
    feedback: str | None = None


class AttemptResultOut(BaseModel):
    attempt: AttemptOut
    results_visible: bool
    score: float | None = None
    max_score: float | None = None
    percent: float | None = None
    passed: bool | None = None
    letter_grade: str | None = None
    auto_graded_points: float | None = None
    manual_graded_points: float | None = None
    is_final: bool
    pending_question_ids: list[UUID] = Field(default_factory=list)
    questions: list[QuestionResultOut] | None = None


class AttemptListResponse(BaseModel):
    items: list[AttemptOut]
    meta: PaginationMeta

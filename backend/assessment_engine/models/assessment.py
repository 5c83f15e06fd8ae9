import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from assessment_engine.db.base_class import Base, JSONType
from assessment_engine.engine.settings import SETTINGS_FIELDS, AssessmentSettings
from assessment_engine.models.constants import ASSESSMENT_TYPE_VALUES, QUESTION_TYPE_VALUES, sql_values
from assessment_engine.models.mixins import AuditUserMixin, TimestampMixin, UUIDPrimaryKeyMixin


class Assessment(UUIDPrimaryKeyMixin, TimestampMixin, AuditUserMixin, Base):
    __tablename__ = 'assessments'
    __table_args__ = (
        CheckConstraint(f"assessment_type in ({sql_values(ASSESSMENT_TYPE_VALUES)})", name='assessment_type_values'),
        CheckConstraint('duration_minutes >= 1', name='assessment_duration_positive'),
        CheckConstraint('max_attempts >= 1', name='assessment_max_attempts_positive'),
        CheckConstraint('passing_score >= 0 and passing_score <= 100', name='assessment_passing_score_range'),
        CheckConstraint('question_per_page >= 1', name='assessment_question_per_page_positive'),
    )

    title: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    instructions: Mapped[str | None] = mapped_column(Text, nullable=True)
    assessment_type: Mapped[str] = mapped_column(String(20), nullable=False, default='exam')
    course_id: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True, index=True)

    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=60)
    max_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    passing_score: Mapped[float] = mapped_column(Float, nullable=False, default=60)

    shuffle_questions: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    shuffle_options: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    show_results_immediately: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    show_correct_answers: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    allow_backtrack: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    question_per_page: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    available_from: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    available_until: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    is_published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    questions: Mapped[list['AssessmentQuestion']] = relationship(
        back_populates='assessment',
        cascade='all, delete-orphan',
        order_by='AssessmentQuestion.order_index',
    )

    @property
    def total_points(self) -> float:
        return float(sum(question.points for question in self.questions))

    @property
    def settings(self) -> AssessmentSettings:
        return AssessmentSettings(**{name: getattr(self, name) for name in SETTINGS_FIELDS})


class AssessmentQuestion(UUIDPrimaryKeyMixin, TimestampMixin, AuditUserMixin, Base):
    __tablename__ = 'assessment_questions'
    __table_args__ = (
        CheckConstraint(
            f"question_type in ({sql_values(QUESTION_TYPE_VALUES)})",
            name='assessment_question_type_values',
        ),
        CheckConstraint('points > 0', name='assessment_question_points_positive'),
    )

    assessment_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey('assessments.id', ondelete='CASCADE'), nullable=False
    )
    order_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    question_type: Mapped[str] = mapped_column(String(30), nullable=False)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    points: Mapped[float] = mapped_column(Float, nullable=False, default=1)
    time_limit_seconds: Mapped[int | None] = mapped_column(Integer, nullable=True)
    explanation: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # mcq / true_false: [{'text': ..., 'is_correct': ...}, ...] in authored order.
    options: Mapped[list[dict[str, Any]] | None] = mapped_column(JSONType, nullable=True)
    max_words: Mapped[int | None] = mapped_column(Integer, nullable=True)
    expected_keywords: Mapped[list[str] | None] = mapped_column(JSONType, nullable=True)
    case_sensitive: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    assessment: Mapped['Assessment'] = relationship(back_populates='questions')

    @property
    def correct_answers(self) -> list[int]:
        return [index for index, option in enumerate(self.options or []) if option.get('is_correct')]


Index('ix_assessments_is_active', Assessment.is_active)
Index('ix_assessments_type', Assessment.assessment_type)
Index('ix_assessment_questions_assessment_id', AssessmentQuestion.assessment_id)

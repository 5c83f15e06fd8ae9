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
    UniqueConstraint,
    Uuid,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from assessment_engine.db.base_class import Base, JSONType
from assessment_engine.models.assessment import Assessment
from assessment_engine.models.constants import ATTEMPT_STATUS_VALUES, GRADING_STATUS_VALUES, sql_values
from assessment_engine.models.mixins import TimestampMixin, UUIDPrimaryKeyMixin


class AssessmentAttempt(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = 'assessment_attempts'
    __table_args__ = (
        UniqueConstraint(
            'assessment_id', 'student_id', 'attempt_number', name='uq_assessment_attempt_student_number'
        ),
        CheckConstraint(
            f"status in ({sql_values(ATTEMPT_STATUS_VALUES)})",
            name='assessment_attempt_status_values',
        ),
        CheckConstraint(
            f"grading_status in ({sql_values(GRADING_STATUS_VALUES)})",
            name='assessment_attempt_grading_status_values',
        ),
        CheckConstraint('attempt_number >= 1', name='assessment_attempt_number_positive'),
    )

    assessment_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey('assessments.id', ondelete='RESTRICT'), nullable=False
    )
    student_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    attempt_number: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    status: Mapped[str] = mapped_column(String(30), nullable=False, default='in_progress')
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    auto_submitted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    last_saved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    question_order: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    option_order: Mapped[dict[str, list[int]]] = mapped_column(JSONType, nullable=False, default=dict)
    furthest_page: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    score: Mapped[float | None] = mapped_column(Float, nullable=True)
    max_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    auto_graded_points: Mapped[float | None] = mapped_column(Float, nullable=True)
    manual_graded_points: Mapped[float | None] = mapped_column(Float, nullable=True)
    score_percent: Mapped[float | None] = mapped_column(Float, nullable=True)
    passed: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    letter_grade: Mapped[str | None] = mapped_column(String(4), nullable=True)
    grading_status: Mapped[str] = mapped_column(String(30), nullable=False, default='pending')
    question_results: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, nullable=False, default=list)
    graded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    assessment: Mapped['Assessment'] = relationship()
    answers: Mapped[list['AttemptAnswer']] = relationship(
        back_populates='attempt', cascade='all, delete-orphan', order_by='AttemptAnswer.saved_at'
    )
    manual_scores: Mapped[list['ManualScore']] = relationship(
        back_populates='attempt', cascade='all, delete-orphan'
    )

    # Every UPDATE is issued as "... WHERE id = :id AND version = :loaded_version"; a concurrent
    # writer that already bumped the counter makes the flush fail with StaleDataError.
    __mapper_args__ = {'version_id_col': version}


class AttemptAnswer(UUIDPrimaryKeyMixin, Base):
    __tablename__ = 'assessment_attempt_answers'
    __table_args__ = (
        UniqueConstraint('attempt_id', 'question_id', name='uq_assessment_attempt_answer_question'),
    )

    attempt_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey('assessment_attempts.id', ondelete='CASCADE'), nullable=False
    )
    question_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    value: Mapped[Any] = mapped_column(JSONType, nullable=True)
    # Seconds the student reports having spent on the question, as of this save.
    time_spent: Mapped[int | None] = mapped_column(Integer, nullable=True)
    saved_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    attempt: Mapped['AssessmentAttempt'] = relationship(back_populates='answers')


class ManualScore(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = 'assessment_manual_scores'
    __table_args__ = (
        UniqueConstraint('attempt_id', 'question_id', name='uq_assessment_manual_score_question'),
        CheckConstraint('points >= 0', name='assessment_manual_score_points_non_negative'),
    )

    attempt_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey('assessment_attempts.id', ondelete='CASCADE'), nullable=False
    )
    question_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    points: Mapped[float] = mapped_column(Float, nullable=False)
    feedback: Mapped[str | None] = mapped_column(Text, nullable=True)
    graded_by: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)
    graded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    attempt: Mapped['AssessmentAttempt'] = relationship(back_populates='manual_scores')


Index('ix_assessment_attempts_assessment_id', AssessmentAttempt.assessment_id)
Index('ix_assessment_attempts_student_id', AssessmentAttempt.student_id)
Index(
    'uq_assessment_attempts_one_in_progress',
    AssessmentAttempt.assessment_id,
    AssessmentAttempt.student_id,
    unique=True,
    postgresql_where=text("status = 'in_progress'"),
    sqlite_where=text("status = 'in_progress'"),
)
Index('ix_assessment_attempt_answers_attempt_id', AttemptAnswer.attempt_id)

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from assessment_engine.core.errors import AssessmentLocked, AssessmentNotFound, QuestionNotFound
from assessment_engine.engine.definition import SETTINGS_FIELDS, AssessmentDefinition, QuestionDefinition
from assessment_engine.models.assessment import Assessment, AssessmentQuestion
from assessment_engine.models.attempt import AssessmentAttempt
from assessment_engine.schemas.assessment import AssessmentCreate, AssessmentUpdate, QuestionCreate, QuestionUpdate


logger = logging.getLogger(__name__)

TYPE_SPECIFIC_FIELDS = ('options', 'max_words', 'expected_keywords', 'case_sensitive')
# Fields of a question that stay editable after the first attempt; nothing here moves points.
PRESENTATION_FIELDS = {'text', 'explanation', 'time_limit_seconds'}
KEYWORD_FIELDS = {'expected_keywords', 'case_sensitive'}
REQUIRED_ASSESSMENT_FIELDS = {'title', 'assessment_type', 'duration_minutes', 'max_attempts', 'passing_score'}


def list_assessments(
    db: Session,
    *,
    page: int,
    page_size: int,
    course_id: UUID | None = None,
    assessment_type: str | None = None,
    published: bool | None = None,
    active: bool | None = None,
) -> tuple[list[Assessment], int]:
    base = select(Assessment)
    if course_id:
        base = base.where(Assessment.course_id == course_id)
    if assessment_type:
        base = base.where(Assessment.assessment_type == assessment_type)
    if published is not None:
        base = base.where(Assessment.is_published.is_(published))
    if active is not None:
        base = base.where(Assessment.is_active.is_(active))

    total = db.scalar(select(func.count()).select_from(base.subquery()))
    items = db.scalars(
        base.options(selectinload(Assessment.questions))
        .order_by(Assessment.created_at.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    ).all()
    return list(items), int(total or 0)


def get_assessment(db: Session, assessment_id: UUID) -> Assessment:
    assessment = db.scalar(
        select(Assessment).where(Assessment.id == assessment_id).options(selectinload(Assessment.questions))
    )
    if not assessment:
        raise AssessmentNotFound()
    return assessment


def has_attempts(db: Session, assessment_id: UUID) -> bool:
    attempt_id = db.scalar(
        select(AssessmentAttempt.id).where(AssessmentAttempt.assessment_id == assessment_id).limit(1)
    )
    return attempt_id is not None


def _question_definition(payload: dict[str, Any], question_id: str = '') -> QuestionDefinition:
    definition = QuestionDefinition.from_payload(payload, question_id=question_id)
    definition.validate()
    return definition


def create_assessment(db: Session, *, payload: AssessmentCreate, actor_user_id: UUID | None) -> Assessment:
    questions = [
        _question_definition(item.model_dump(), question_id=f'#{index + 1}')
        for index, item in enumerate(payload.questions)
    ]
    AssessmentDefinition(
        id='',
        title=payload.title,
        duration_minutes=payload.duration_minutes,
        max_attempts=payload.max_attempts,
        passing_score=payload.passing_score,
        settings=payload.settings,
        questions=tuple(questions),
        instructions=payload.instructions,
        assessment_type=payload.assessment_type,
        available_from=payload.available_from,
        available_until=payload.available_until,
    ).validate()

    assessment = Assessment(
        title=payload.title.strip(),
        description=payload.description,
        instructions=payload.instructions,
        assessment_type=payload.assessment_type,
        course_id=payload.course_id,
        duration_minutes=payload.duration_minutes,
        max_attempts=payload.max_attempts,
        passing_score=payload.passing_score,
        available_from=payload.available_from,
        available_until=payload.available_until,
        created_by=actor_user_id,
        updated_by=actor_user_id,
        **payload.settings.model_dump(),
    )
    for index, question in enumerate(questions):
        assessment.questions.append(
            AssessmentQuestion(
                order_index=index,
                created_by=actor_user_id,
                updated_by=actor_user_id,
                **question.to_payload(),
            )
        )
    db.add(assessment)
    db.flush()
    logger.info('Assessment %s created with %s questions', assessment.id, len(questions))
    return assessment


def update_assessment(
    db: Session,
    assessment: Assessment,
    *,
    payload: AssessmentUpdate,
    actor_user_id: UUID | None,
) -> Assessment:
    updates = payload.model_dump(exclude_unset=True)
    settings_patch = updates.pop('settings', None) or {}
    for key, value in updates.items():
        if value is None and key in REQUIRED_ASSESSMENT_FIELDS:
            continue
        setattr(assessment, key, value)
    for key, value in settings_patch.items():
        if key in SETTINGS_FIELDS and value is not None:
            setattr(assessment, key, value)

    # Re-validate the merged aggregate before anything reaches the database.
    AssessmentDefinition.from_model(assessment).validate()
    assessment.updated_by = actor_user_id
    db.flush()
    return assessment


def _ensure_unlocked(db: Session, assessment: Assessment, operation: str) -> None:
    if has_attempts(db, assessment.id):
        logger.warning('Rejected %s on assessment %s: attempts already exist', operation, assessment.id)
        raise AssessmentLocked()


def _renumber(assessment: Assessment) -> None:
    for index, question in enumerate(sorted(assessment.questions, key=lambda item: item.order_index)):
        question.order_index = index


def get_question(assessment: Assessment, question_id: UUID) -> AssessmentQuestion:
    for question in assessment.questions:
        if question.id == question_id:
            return question
    raise QuestionNotFound()


def add_question(
    db: Session,
    assessment: Assessment,
    *,
    payload: QuestionCreate,
    actor_user_id: UUID | None,
) -> AssessmentQuestion:
    _ensure_unlocked(db, assessment, 'add_question')
    definition = _question_definition(payload.model_dump())
    question = AssessmentQuestion(
        order_index=len(assessment.questions),
        created_by=actor_user_id,
        updated_by=actor_user_id,
        **definition.to_payload(),
    )
    assessment.questions.append(question)
    assessment.updated_by = actor_user_id
    db.flush()
    return question


def update_question(
    db: Session,
    assessment: Assessment,
    question_id: UUID,
    *,
    payload: QuestionUpdate,
    actor_user_id: UUID | None,
) -> AssessmentQuestion:
    question = get_question(assessment, question_id)
    current = QuestionDefinition.from_model(question).to_payload()
    updates = payload.model_dump(exclude_unset=True)

    merged = dict(current)
    new_type = updates.get('question_type') or current['question_type']
    if new_type != current['question_type']:
        for key in TYPE_SPECIFIC_FIELDS:
            if key not in updates:
                merged.pop(key, None)
    merged.update({key: value for key, value in updates.items() if value is not None or key in PRESENTATION_FIELDS})
    merged['question_type'] = new_type

    candidate = _question_definition(merged, question_id=str(question.id)).to_payload()

    if has_attempts(db, assessment.id):
        editable = set(PRESENTATION_FIELDS)
        if current['question_type'] == 'short_answer':
            editable |= KEYWORD_FIELDS
        frozen_changes = sorted(
            key for key, value in candidate.items() if key not in editable and value != current.get(key)
        )
        if frozen_changes:
            logger.warning(
                'Rejected update of question %s on assessment %s: %s frozen by existing attempts',
                question.id,
                assessment.id,
                ', '.join(frozen_changes),
            )
            raise AssessmentLocked(f'Assessment already has attempts; cannot change {", ".join(frozen_changes)}')

    for key, value in candidate.items():
        setattr(question, key, value)
    question.updated_by = actor_user_id
    assessment.updated_by = actor_user_id
    db.flush()
    return question


def remove_question(
    db: Session,
    assessment: Assessment,
    question_id: UUID,
    *,
    actor_user_id: UUID | None,
) -> None:
    _ensure_unlocked(db, assessment, 'remove_question')
    question = get_question(assessment, question_id)
    assessment.questions.remove(question)
    _renumber(assessment)
    assessment.updated_by = actor_user_id
    db.flush()


def publish_assessment(db: Session, assessment: Assessment, *, actor_user_id: UUID | None) -> Assessment:
    AssessmentDefinition.from_model(assessment).validate(require_questions=True)
    if not assessment.is_published:
        assessment.is_published = True
        assessment.published_at = datetime.now(UTC)
        assessment.updated_by = actor_user_id
        db.flush()
        logger.info('Assessment %s published', assessment.id)
    return assessment


def deactivate_assessment(db: Session, assessment: Assessment, *, actor_user_id: UUID | None) -> Assessment:
    if assessment.is_active:
        assessment.is_active = False
        assessment.updated_by = actor_user_id
        db.flush()
        logger.info('Assessment %s deactivated', assessment.id)
    return assessment

"""
Attempt lifecycle: start or resume, lazy expiry, submission, grading and manual scores.

Attempts move ``in_progress -> {expired, submitted} -> graded``. There is no timer anywhere:
every operation that touches an attempt first compares ``now`` with ``expires_at`` and, when
the deadline has passed, moves the attempt to ``expired`` and grades whatever answers exist.
That transition is committed immediately so it survives the error the caller is about to raise.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.orm.exc import StaleDataError

from assessment_engine.core.errors import (
    AssessmentNotAvailable,
    AttemptExpired,
    AttemptNotFound,
    AttemptStateError,
    AttemptVersionConflict,
    EngineError,
    GradingIncomplete,
    MaxAttemptsExceeded,
    QuestionNotFound,
    ValidationError,
)
from assessment_engine.engine.definition import AssessmentDefinition, as_utc
from assessment_engine.engine.scoring import GradeResult, ManualGrade, grade
from assessment_engine.engine.shuffle import presentation_for
from assessment_engine.models.assessment import Assessment
from assessment_engine.models.attempt import AssessmentAttempt, ManualScore
from assessment_engine.models.constants import COMPLETED_ATTEMPT_STATUSES, MANUALLY_GRADABLE_TYPES
from assessment_engine.services import assessment_service


logger = logging.getLogger(__name__)

EXPIRY_COMMIT_RETRIES = 3


def utcnow() -> datetime:
    return datetime.now(UTC)


def _attempt_query():
    return select(AssessmentAttempt).options(
        selectinload(AssessmentAttempt.answers),
        selectinload(AssessmentAttempt.manual_scores),
        selectinload(AssessmentAttempt.assessment).selectinload(Assessment.questions),
    )


def get_attempt(db: Session, attempt_id: UUID) -> AssessmentAttempt:
    attempt = db.scalar(_attempt_query().where(AssessmentAttempt.id == attempt_id))
    if not attempt:
        raise AttemptNotFound()
    return attempt


def _in_progress_attempt(db: Session, assessment_id: UUID, student_id: UUID) -> AssessmentAttempt | None:
    return db.scalar(
        _attempt_query().where(
            AssessmentAttempt.assessment_id == assessment_id,
            AssessmentAttempt.student_id == student_id,
            AssessmentAttempt.status == 'in_progress',
        )
    )


def answers_of(attempt: AssessmentAttempt) -> dict[str, Any]:
    return {str(answer.question_id): answer.value for answer in attempt.answers}


def manual_grades_of(attempt: AssessmentAttempt) -> dict[str, ManualGrade]:
    return {
        str(score.question_id): ManualGrade(points=float(score.points), feedback=score.feedback)
        for score in attempt.manual_scores
    }


def is_due(attempt: AssessmentAttempt, now: datetime) -> bool:
    return attempt.status == 'in_progress' and now >= as_utc(attempt.expires_at)


def remaining_seconds(attempt: AssessmentAttempt, now: datetime) -> int:
    if attempt.status != 'in_progress':
        return 0
    return max(0, math.floor((as_utc(attempt.expires_at) - now).total_seconds()))


def grade_attempt(
    attempt: AssessmentAttempt,
    *,
    now: datetime,
    definition: AssessmentDefinition | None = None,
) -> GradeResult:
    """Run the scorer over the stored answers and copy the outcome onto the attempt row."""
    definition = definition or AssessmentDefinition.from_model(attempt.assessment)
    result = grade(definition, answers_of(attempt), manual_grades_of(attempt))

    changed = (
        attempt.score != result.score
        or attempt.max_score != result.max_score
        or attempt.grading_status != result.grading_status
    )
    attempt.score = result.score
    attempt.max_score = result.max_score
    attempt.score_percent = result.percent
    attempt.auto_graded_points = result.auto_graded_points
    attempt.manual_graded_points = result.manual_graded_points
    attempt.passed = result.passed
    attempt.letter_grade = result.letter_grade
    attempt.grading_status = result.grading_status
    attempt.question_results = [item.as_dict() for item in result.results]
    if result.is_final:
        if attempt.graded_at is None or changed:
            attempt.graded_at = now
        if attempt.status in ('submitted', 'expired'):
            attempt.status = 'graded'
    else:
        attempt.graded_at = None
    return result


def expire_if_due(db: Session, attempt: AssessmentAttempt, now: datetime, *, _retries: int = 0) -> bool:
    """
    Apply lazy expiry. Returns True when this call moved the attempt out of ``in_progress``.

    Callers tell an expired attempt apart from a submitted one through ``auto_submitted``, since
    an expired attempt with nothing left to grade by hand goes straight on to ``graded``.
    """
    if not is_due(attempt, now):
        return False

    attempt.status = 'expired'
    attempt.submitted_at = attempt.expires_at
    attempt.auto_submitted = True
    grade_attempt(attempt, now=now)
    try:
        db.commit()
    except StaleDataError:
        # Another request wrote the attempt first; reload and look again.
        db.rollback()
        if _retries >= EXPIRY_COMMIT_RETRIES:
            raise AttemptVersionConflict()
        db.refresh(attempt)
        return expire_if_due(db, attempt, now, _retries=_retries + 1)

    logger.info(
        'Attempt %s expired at %s and was auto-submitted (status=%s)', attempt.id, attempt.expires_at, attempt.status
    )
    return True


def ensure_writable(
    db: Session,
    attempt: AssessmentAttempt,
    now: datetime,
    *,
    inactive_error: type[EngineError],
) -> None:
    expire_if_due(db, attempt, now)
    if attempt.auto_submitted:
        raise AttemptExpired()
    if attempt.status != 'in_progress':
        raise inactive_error('Attempt is no longer in progress')


def start_or_resume(
    db: Session,
    *,
    assessment_id: UUID,
    student_id: UUID,
    now: datetime | None = None,
) -> tuple[AssessmentAttempt, bool]:
    """Return ``(attempt, resumed)``; a live attempt is handed back unchanged instead of a new one."""
    now = now or utcnow()
    assessment = assessment_service.get_assessment(db, assessment_id)
    if not assessment.is_active or not assessment.is_published:
        raise AssessmentNotAvailable()
    definition = AssessmentDefinition.from_model(assessment)
    if not definition.is_available_at(now):
        raise AssessmentNotAvailable('Assessment is outside its availability window')

    current = _in_progress_attempt(db, assessment_id, student_id)
    if current is not None and not expire_if_due(db, current, now):
        logger.info('Attempt %s resumed by student %s', current.id, student_id)
        return current, True

    count = int(
        db.scalar(
            select(func.count())
            .select_from(AssessmentAttempt)
            .where(AssessmentAttempt.assessment_id == assessment_id, AssessmentAttempt.student_id == student_id)
        )
        or 0
    )
    if count >= definition.max_attempts:
        raise MaxAttemptsExceeded(f'All {definition.max_attempts} attempts have been used')
    if not definition.questions:
        raise ValidationError('Assessment has no questions')

    attempt_number = count + 1
    presentation = presentation_for(definition, student_id, attempt_number)
    attempt = AssessmentAttempt(
        assessment_id=assessment.id,
        student_id=student_id,
        attempt_number=attempt_number,
        status='in_progress',
        started_at=now,
        expires_at=now + timedelta(minutes=definition.duration_minutes),
        question_order=presentation.question_order,
        option_order=presentation.option_order,
        furthest_page=0,
        grading_status='pending',
        question_results=[],
    )
    db.add(attempt)
    try:
        db.flush()
    except IntegrityError:
        # A concurrent start for the same student won the partial unique index.
        db.rollback()
        winner = _in_progress_attempt(db, assessment_id, student_id)
        if winner is None:
            raise
        logger.info('Concurrent start for student %s resolved to attempt %s', student_id, winner.id)
        return winner, True

    logger.info('Attempt %s (#%s) started by student %s', attempt.id, attempt_number, student_id)
    return attempt, False


def attempt_questions(attempt: AssessmentAttempt) -> list[dict[str, Any]]:
    """Questions in the attempt's stored presentation order, without correctness or keywords."""
    by_id = {str(question.id): question for question in attempt.assessment.questions}
    questions = []
    for question_id in attempt.question_order:
        question = by_id.get(question_id)
        if question is None:
            continue
        options = None
        if question_id in attempt.option_order:
            authored = question.options or []
            options = [
                {'index': index, 'text': authored[index]['text']}
                for index in attempt.option_order[question_id]
                if index < len(authored)
            ]
        questions.append(
            {
                'id': question.id,
                'question_type': question.question_type,
                'text': question.text,
                'points': question.points,
                'time_limit_seconds': question.time_limit_seconds,
                'max_words': question.max_words,
                'is_required': question.is_required,
                'options': options,
            }
        )
    return questions


def page_count(attempt: AssessmentAttempt) -> int:
    per_page = max(attempt.assessment.question_per_page, 1)
    return max(1, math.ceil(len(attempt.question_order) / per_page))


def submit_attempt(db: Session, attempt: AssessmentAttempt, *, now: datetime | None = None) -> GradeResult:
    now = now or utcnow()
    ensure_writable(db, attempt, now, inactive_error=AttemptStateError)

    attempt.status = 'submitted'
    attempt.submitted_at = now
    result = grade_attempt(attempt, now=now)
    try:
        db.flush()
    except StaleDataError as exc:
        db.rollback()
        raise AttemptVersionConflict() from exc

    logger.info(
        'Attempt %s submitted: score=%s/%s final=%s', attempt.id, result.score, result.max_score, result.is_final
    )
    return result


@dataclass
class AttemptResult:
    attempt: AssessmentAttempt
    results_visible: bool
    is_final: bool
    score: float | None = None
    max_score: float | None = None
    percent: float | None = None
    passed: bool | None = None
    letter_grade: str | None = None
    auto_graded_points: float | None = None
    manual_graded_points: float | None = None
    pending_question_ids: list[str] = field(default_factory=list)
    questions: list[dict[str, Any]] | None = None


def build_result(attempt: AssessmentAttempt, *, viewer_is_staff: bool) -> AttemptResult:
    """
    Shape the stored grade for a viewer.

    Staff always see everything. Students see a final score once the attempt is graded, a
    provisional one only when ``show_results_immediately`` is set, and per-question detail only
    when ``show_correct_answers`` is set.
    """
    assessment = attempt.assessment
    completed = attempt.status in COMPLETED_ATTEMPT_STATUSES
    is_final = attempt.status == 'graded'
    pending = [item['question_id'] for item in attempt.question_results if item['status'] == 'pending_manual_grade']

    if viewer_is_staff:
        visible = completed
        show_detail = completed
    else:
        visible = is_final or (completed and assessment.show_results_immediately)
        show_detail = visible and assessment.show_correct_answers

    result = AttemptResult(attempt=attempt, results_visible=visible, is_final=is_final)
    if not visible:
        return result
    result.score = attempt.score
    result.max_score = attempt.max_score
    result.percent = attempt.score_percent
    result.passed = attempt.passed
    result.letter_grade = attempt.letter_grade
    result.auto_graded_points = attempt.auto_graded_points
    result.manual_graded_points = attempt.manual_graded_points
    result.pending_question_ids = pending
    if show_detail:
        result.questions = list(attempt.question_results)
    return result


def get_attempt_result(
    db: Session,
    attempt: AssessmentAttempt,
    *,
    viewer_is_staff: bool,
    now: datetime | None = None,
) -> AttemptResult:
    # Read path: an overdue attempt is expired quietly, never reported as an error.
    expire_if_due(db, attempt, now or utcnow())
    return build_result(attempt, viewer_is_staff=viewer_is_staff)


def get_final_result(db: Session, attempt: AssessmentAttempt, *, now: datetime | None = None) -> AttemptResult:
    expire_if_due(db, attempt, now or utcnow())
    if attempt.status == 'in_progress':
        raise AttemptStateError('Attempt has not been submitted')
    if attempt.status != 'graded':
        raise GradingIncomplete()
    return build_result(attempt, viewer_is_staff=True)


def record_manual_score(
    db: Session,
    attempt: AssessmentAttempt,
    *,
    question_id: UUID,
    points: float,
    feedback: str | None,
    graded_by: UUID | None,
    now: datetime | None = None,
) -> GradeResult:
    now = now or utcnow()
    expire_if_due(db, attempt, now)
    if attempt.status not in COMPLETED_ATTEMPT_STATUSES:
        raise AttemptStateError('Manual scores can only be recorded after the attempt is submitted')

    definition = AssessmentDefinition.from_model(attempt.assessment)
    question = definition.question(str(question_id))
    if question is None:
        raise QuestionNotFound()
    if question.question_type not in MANUALLY_GRADABLE_TYPES:
        raise ValidationError('Only essay and short answer questions accept manual scores')
    if points < 0 or points > question.points:
        raise ValidationError(f'points must be between 0 and {question.points:g}')

    existing = next((score for score in attempt.manual_scores if score.question_id == question_id), None)
    if existing is None:
        attempt.manual_scores.append(
            ManualScore(
                question_id=question_id,
                points=points,
                feedback=feedback,
                graded_by=graded_by,
                graded_at=now,
            )
        )
    else:
        existing.points = points
        existing.feedback = feedback
        existing.graded_by = graded_by
        existing.graded_at = now

    result = grade_attempt(attempt, now=now, definition=definition)
    try:
        db.flush()
    except StaleDataError as exc:
        db.rollback()
        raise AttemptVersionConflict() from exc

    logger.info(
        'Manual score %s recorded on attempt %s question %s; grading_status=%s',
        points,
        attempt.id,
        question_id,
        result.grading_status,
    )
    return result


def regrade_attempt(db: Session, attempt: AssessmentAttempt, *, now: datetime | None = None) -> GradeResult:
    now = now or utcnow()
    expire_if_due(db, attempt, now)
    if attempt.status not in COMPLETED_ATTEMPT_STATUSES:
        raise AttemptStateError('Only submitted or expired attempts can be regraded')
    result = grade_attempt(attempt, now=now)
    db.flush()
    logger.info('Attempt %s regraded: score=%s/%s', attempt.id, result.score, result.max_score)
    return result


def regrade_assessment(db: Session, assessment_id: UUID, *, now: datetime | None = None) -> int:
    now = now or utcnow()
    assessment = assessment_service.get_assessment(db, assessment_id)
    definition = AssessmentDefinition.from_model(assessment)
    attempts = db.scalars(
        _attempt_query().where(
            AssessmentAttempt.assessment_id == assessment_id,
            AssessmentAttempt.status.in_(sorted(COMPLETED_ATTEMPT_STATUSES)),
        )
    ).all()
    for attempt in attempts:
        grade_attempt(attempt, now=now, definition=definition)
    db.flush()
    logger.info('Regraded %s attempts of assessment %s', len(attempts), assessment_id)
    return len(attempts)


def list_attempts(
    db: Session,
    *,
    assessment_id: UUID,
    student_id: UUID | None = None,
    page: int = 1,
    page_size: int = 50,
    now: datetime | None = None,
) -> tuple[list[AssessmentAttempt], int]:
    now = now or utcnow()
    base = select(AssessmentAttempt).where(AssessmentAttempt.assessment_id == assessment_id)
    if student_id:
        base = base.where(AssessmentAttempt.student_id == student_id)

    total = db.scalar(select(func.count()).select_from(base.subquery()))
    items = db.scalars(
        base.options(
            selectinload(AssessmentAttempt.answers),
            selectinload(AssessmentAttempt.manual_scores),
            selectinload(AssessmentAttempt.assessment).selectinload(Assessment.questions),
        )
        .order_by(AssessmentAttempt.student_id, AssessmentAttempt.attempt_number)
        .offset((page - 1) * page_size)
        .limit(page_size)
    ).all()
    for attempt in items:
        expire_if_due(db, attempt, now)
    return list(items), int(total or 0)

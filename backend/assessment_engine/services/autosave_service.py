from __future__ import annotations

import logging
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified
from sqlalchemy.orm.exc import StaleDataError

from assessment_engine.core.config import settings
from assessment_engine.core.errors import AnswerRejected, AttemptVersionConflict
from assessment_engine.engine.definition import AssessmentDefinition, QuestionDefinition, page_of
from assessment_engine.models.attempt import AssessmentAttempt, AttemptAnswer
from assessment_engine.services import attempt_service


logger = logging.getLogger(__name__)


def normalize_answer(question: QuestionDefinition, value: Any) -> Any:
    """
    Check a raw answer against the question shape and return the form that gets stored.

    Choice answers become a sorted list of option indices (a bare index is accepted); an
    empty selection clears the answer. Text answers are stored as typed.
    """
    if value is None:
        return None

    if question.is_choice:
        if isinstance(value, int) and not isinstance(value, bool):
            value = [value]
        if not isinstance(value, list) or not all(
            isinstance(item, int) and not isinstance(item, bool) for item in value
        ):
            raise AnswerRejected('Choice answers must be a list of option indices')
        if not value:
            return None
        if len(set(value)) != len(value):
            raise AnswerRejected('Option indices must be distinct')
        if any(item < 0 or item >= len(question.options) for item in value):
            raise AnswerRejected('Option index out of range')
        if question.question_type == 'true_false' and len(value) > 1:
            raise AnswerRejected('True/false questions accept a single selection')
        return sorted(value)

    if not isinstance(value, str):
        raise AnswerRejected('Text answers must be a string')
    if question.question_type == 'essay' and question.max_words is not None:
        if len(value.split()) > question.max_words:
            raise AnswerRejected(f'Essay answers are limited to {question.max_words} words')
    return value


def record_answer(
    db: Session,
    attempt: AssessmentAttempt,
    question_id: UUID,
    value: Any,
    *,
    expected_version: int | None = None,
    time_spent: int | None = None,
    now: datetime | None = None,
) -> bool:
    """
    Store one answer (last write wins per question). Returns False when nothing changed.

    A replay of the answer already stored is a no-op, whatever ``expected_version`` it carries.
    The attempt row is touched on every real write, so the ORM version counter turns two
    concurrent saves into a compare-and-swap: the slower flush fails with StaleDataError.
    """
    now = now or attempt_service.utcnow()
    attempt_service.ensure_writable(db, attempt, now, inactive_error=AnswerRejected)

    definition = AssessmentDefinition.from_model(attempt.assessment)
    key = str(question_id)
    question = definition.question(key)
    if question is None or key not in attempt.question_order:
        raise AnswerRejected('Question is not part of this attempt')

    normalized = normalize_answer(question, value)
    existing = next((answer for answer in attempt.answers if answer.question_id == question_id), None)
    if existing is None and normalized is None:
        return False
    if existing is not None and existing.value == normalized:
        return False

    if expected_version is not None and expected_version != attempt.version:
        raise AttemptVersionConflict()
    page = page_of(key, attempt.question_order, definition.settings.question_per_page)
    if page < attempt.furthest_page and not definition.settings.allow_backtrack:
        raise AnswerRejected('Backtracking is disabled for this assessment')

    if existing is None:
        attempt.answers.append(
            AttemptAnswer(question_id=question_id, value=normalized, time_spent=time_spent, saved_at=now)
        )
    else:
        existing.value = normalized
        existing.saved_at = now
        if time_spent is not None:
            existing.time_spent = time_spent
    if page > attempt.furthest_page:
        attempt.furthest_page = page
    attempt.last_saved_at = now
    # Two saves within the same clock tick still have to bump the version.
    flag_modified(attempt, 'last_saved_at')
    db.flush()
    return True


def record_answer_with_retry(
    db: Session,
    attempt: AssessmentAttempt,
    question_id: UUID,
    value: Any,
    *,
    expected_version: int | None = None,
    time_spent: int | None = None,
    now: datetime | None = None,
    max_retries: int | None = None,
) -> bool:
    retries = max_retries or settings.AUTOSAVE_MAX_RETRIES
    for attempt_no in range(1, retries + 1):
        try:
            return record_answer(
                db,
                attempt,
                question_id,
                value,
                expected_version=expected_version,
                time_spent=time_spent,
                now=now,
            )
        except (StaleDataError, IntegrityError) as exc:
            db.rollback()
            if attempt_no >= retries:
                logger.warning('Autosave on attempt %s gave up after %s conflicts', attempt.id, retries)
                raise AttemptVersionConflict() from exc
            logger.info('Autosave conflict on attempt %s (try %s/%s); retrying', attempt.id, attempt_no, retries)
            db.refresh(attempt)
    raise AttemptVersionConflict()


def visit_page(db: Session, attempt: AssessmentAttempt, page: int, *, now: datetime | None = None) -> AssessmentAttempt:
    now = now or attempt_service.utcnow()
    attempt_service.ensure_writable(db, attempt, now, inactive_error=AnswerRejected)
    if page < 0 or page >= attempt_service.page_count(attempt):
        raise AnswerRejected('Page out of range')
    if page < attempt.furthest_page and not attempt.assessment.allow_backtrack:
        raise AnswerRejected('Backtracking is disabled for this assessment')
    if page > attempt.furthest_page:
        attempt.furthest_page = page
        try:
            db.flush()
        except StaleDataError as exc:
            db.rollback()
            raise AttemptVersionConflict() from exc
    return attempt

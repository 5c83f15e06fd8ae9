from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from assessment_engine.api.deps import Principal, get_current_principal, require_roles
from assessment_engine.core.errors import AttemptNotFound
from assessment_engine.db.session import get_db
from assessment_engine.models.attempt import AssessmentAttempt
from assessment_engine.schemas.assessment import PublicQuestionOut
from assessment_engine.schemas.attempt import (
    AnswerAck,
    AnswerIn,
    AttemptAnswerOut,
    AttemptListResponse,
    AttemptOut,
    AttemptResultOut,
    AttemptStartOut,
    ManualScoreIn,
    PageVisitOut,
    QuestionResultOut,
)
from assessment_engine.schemas.common import PaginationMeta
from assessment_engine.services import attempt_service, audit_service, autosave_service
from assessment_engine.services.attempt_service import AttemptResult


router = APIRouter(tags=['attempts'])


def _load_attempt(db: Session, attempt_id: UUID, principal: Principal, *, owner_only: bool = False) -> AssessmentAttempt:
    attempt = attempt_service.get_attempt(db, attempt_id)
    if attempt.student_id == principal.user_id:
        return attempt
    if owner_only or not principal.is_staff:
        # Other students' attempts are indistinguishable from missing ones.
        raise AttemptNotFound()
    return attempt


def _result_out(result: AttemptResult) -> AttemptResultOut:
    return AttemptResultOut(
        attempt=AttemptOut.model_validate(result.attempt),
        results_visible=result.results_visible,
        score=result.score,
        max_score=result.max_score,
        percent=result.percent,
        passed=result.passed,
        letter_grade=result.letter_grade,
        auto_graded_points=result.auto_graded_points,
        manual_graded_points=result.manual_graded_points,
        is_final=result.is_final,
        pending_question_ids=[UUID(item) for item in result.pending_question_ids],
        questions=(
            [QuestionResultOut.model_validate(item) for item in result.questions]
            if result.questions is not None
            else None
        ),
    )


@router.post('/assessments/{assessment_id}/attempts', response_model=AttemptStartOut)
def start_or_resume_attempt(
    assessment_id: UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_roles('student')),
) -> AttemptStartOut:
    attempt, resumed = attempt_service.start_or_resume(db, assessment_id=assessment_id, student_id=principal.user_id)
    db.commit()

    assessment = attempt.assessment
    return AttemptStartOut(
        attempt=AttemptOut.model_validate(attempt),
        resumed=resumed,
        questions=[PublicQuestionOut(**item) for item in attempt_service.attempt_questions(attempt)],
        answers=[AttemptAnswerOut.model_validate(answer) for answer in attempt.answers],
        question_per_page=assessment.question_per_page,
        page_count=attempt_service.page_count(attempt),
        allow_backtrack=assessment.allow_backtrack,
        remaining_seconds=attempt_service.remaining_seconds(attempt, attempt_service.utcnow()),
    )


@router.get('/assessments/{assessment_id}/attempts', response_model=AttemptListResponse)
def list_attempts(
    assessment_id: UUID,
    student_id: UUID | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=50, ge=1, le=200),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> AttemptListResponse:
    if not principal.is_staff:
        student_id = principal.user_id
    items, total = attempt_service.list_attempts(
        db,
        assessment_id=assessment_id,
        student_id=student_id,
        page=page,
        page_size=page_size,
    )
    return AttemptListResponse(
        items=[AttemptOut.model_validate(item) for item in items],
        meta=PaginationMeta(page=page, page_size=page_size, total=total),
    )


@router.put('/attempts/{attempt_id}/answers/{question_id}', response_model=AnswerAck)
def record_answer(
    attempt_id: UUID,
    question_id: UUID,
    payload: AnswerIn,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> AnswerAck:
    attempt = _load_attempt(db, attempt_id, principal, owner_only=True)
    changed = autosave_service.record_answer_with_retry(
        db,
        attempt,
        question_id,
        payload.value,
        expected_version=payload.expected_version,
        time_spent=payload.time_spent,
    )
    db.commit()
    return AnswerAck(
        attempt_id=attempt.id,
        question_id=question_id,
        version=attempt.version,
        saved_at=attempt.last_saved_at,
        changed=changed,
    )


@router.post('/attempts/{attempt_id}/pages/{page}', response_model=PageVisitOut)
def visit_page(
    attempt_id: UUID,
    page: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> PageVisitOut:
    attempt = _load_attempt(db, attempt_id, principal, owner_only=True)
    attempt = autosave_service.visit_page(db, attempt, page)
    db.commit()
    return PageVisitOut(attempt_id=attempt.id, furthest_page=attempt.furthest_page, version=attempt.version)


@router.post('/attempts/{attempt_id}/submit', response_model=AttemptResultOut)
def submit_attempt(
    attempt_id: UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> AttemptResultOut:
    attempt = _load_attempt(db, attempt_id, principal, owner_only=True)
    attempt_service.submit_attempt(db, attempt)
    db.commit()
    return _result_out(attempt_service.build_result(attempt, viewer_is_staff=principal.is_staff))


@router.get('/attempts/{attempt_id}/result', response_model=AttemptResultOut)
def get_attempt_result(
    attempt_id: UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> AttemptResultOut:
    attempt = _load_attempt(db, attempt_id, principal)
    result = attempt_service.get_attempt_result(db, attempt, viewer_is_staff=principal.is_staff)
    return _result_out(result)


@router.get('/attempts/{attempt_id}/final-result', response_model=AttemptResultOut)
def get_final_result(
    attempt_id: UUID,
    db: Session = Depends(get_db),
    _: Principal = Depends(require_roles('faculty')),
) -> AttemptResultOut:
    attempt = attempt_service.get_attempt(db, attempt_id)
    return _result_out(attempt_service.get_final_result(db, attempt))


@router.post('/attempts/{attempt_id}/manual-scores', response_model=AttemptResultOut)
def record_manual_score(
    attempt_id: UUID,
    payload: ManualScoreIn,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_roles('faculty')),
) -> AttemptResultOut:
    attempt = attempt_service.get_attempt(db, attempt_id)
    result = attempt_service.record_manual_score(
        db,
        attempt,
        question_id=payload.question_id,
        points=payload.points,
        feedback=payload.feedback,
        graded_by=principal.user_id,
    )
    audit_service.log_action(
        db,
        actor_user_id=principal.user_id,
        action='attempt_manual_score',
        entity_type='assessment_attempt',
        entity_id=attempt.id,
        details={
            'question_id': payload.question_id,
            'points': payload.points,
            'grading_status': result.grading_status,
        },
    )
    db.commit()
    return _result_out(attempt_service.build_result(attempt, viewer_is_staff=True))


@router.post('/attempts/{attempt_id}/regrade', response_model=AttemptResultOut)
def regrade_attempt(
    attempt_id: UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_roles('faculty')),
) -> AttemptResultOut:
    attempt = attempt_service.get_attempt(db, attempt_id)
    result = attempt_service.regrade_attempt(db, attempt)
    audit_service.log_action(
        db,
        actor_user_id=principal.user_id,
        action='attempt_regrade',
        entity_type='assessment_attempt',
        entity_id=attempt.id,
        details={'score': result.score, 'max_score': result.max_score},
    )
    db.commit()
    return _result_out(attempt_service.build_result(attempt, viewer_is_staff=True))

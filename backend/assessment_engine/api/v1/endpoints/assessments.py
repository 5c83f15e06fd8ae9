from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from assessment_engine.api.deps import Principal, get_current_principal, require_roles
from assessment_engine.core.errors import AssessmentNotFound
from assessment_engine.db.session import get_db
from assessment_engine.schemas.assessment import (
    AssessmentCreate,
    AssessmentListResponse,
    AssessmentOut,
    AssessmentSummaryOut,
    AssessmentUpdate,
    PublicAssessmentOut,
    QuestionCreate,
    QuestionOut,
    QuestionUpdate,
    RegradeOut,
)
from assessment_engine.schemas.common import PaginationMeta
from assessment_engine.services import assessment_service, attempt_service, audit_service


router = APIRouter(prefix='/assessments', tags=['assessments'])


@router.get('', response_model=AssessmentListResponse)
def list_assessments(
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
    course_id: UUID | None = Query(default=None),
    assessment_type: str | None = Query(default=None),
    published: bool | None = Query(default=None),
    active: bool | None = Query(default=None),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> AssessmentListResponse:
    if not principal.is_staff:
        # Students only ever see what they could start.
        published, active = True, True
    items, total = assessment_service.list_assessments(
        db,
        page=page,
        page_size=page_size,
        course_id=course_id,
        assessment_type=assessment_type,
        published=published,
        active=active,
    )
    return AssessmentListResponse(
        items=[AssessmentSummaryOut.model_validate(item) for item in items],
        meta=PaginationMeta(page=page, page_size=page_size, total=total),
    )


@router.post('', response_model=AssessmentOut, status_code=status.HTTP_201_CREATED)
def create_assessment(
    payload: AssessmentCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_roles('faculty')),
) -> AssessmentOut:
    assessment = assessment_service.create_assessment(db, payload=payload, actor_user_id=principal.user_id)
    audit_service.log_action(
        db,
        actor_user_id=principal.user_id,
        action='assessment_create',
        entity_type='assessment',
        entity_id=assessment.id,
        details={'title': assessment.title, 'question_count': len(assessment.questions)},
    )
    db.commit()
    return AssessmentOut.model_validate(assessment)


@router.get('/{assessment_id}', response_model=AssessmentOut | PublicAssessmentOut)
def get_assessment(
    assessment_id: UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> AssessmentOut | PublicAssessmentOut:
    assessment = assessment_service.get_assessment(db, assessment_id)
    if principal.is_staff:
        return AssessmentOut.model_validate(assessment)
    if not assessment.is_published or not assessment.is_active:
        raise AssessmentNotFound()
    return PublicAssessmentOut(
        id=assessment.id,
        title=assessment.title,
        description=assessment.description,
        instructions=assessment.instructions,
        assessment_type=assessment.assessment_type,
        duration_minutes=assessment.duration_minutes,
        max_attempts=assessment.max_attempts,
        passing_score=assessment.passing_score,
        available_from=assessment.available_from,
        available_until=assessment.available_until,
        total_points=assessment.total_points,
        question_count=len(assessment.questions),
    )


@router.patch('/{assessment_id}', response_model=AssessmentOut)
def update_assessment(
    assessment_id: UUID,
    payload: AssessmentUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_roles('faculty')),
) -> AssessmentOut:
    assessment = assessment_service.get_assessment(db, assessment_id)
    assessment = assessment_service.update_assessment(
        db, assessment, payload=payload, actor_user_id=principal.user_id
    )
    audit_service.log_action(
        db,
        actor_user_id=principal.user_id,
        action='assessment_update',
        entity_type='assessment',
        entity_id=assessment.id,
        details={'fields': sorted(payload.model_dump(exclude_unset=True))},
    )
    db.commit()
    return AssessmentOut.model_validate(assessment)


@router.post('/{assessment_id}/questions', response_model=QuestionOut, status_code=status.HTTP_201_CREATED)
def add_question(
    assessment_id: UUID,
    payload: QuestionCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_roles('faculty')),
) -> QuestionOut:
    assessment = assessment_service.get_assessment(db, assessment_id)
    question = assessment_service.add_question(db, assessment, payload=payload, actor_user_id=principal.user_id)
    audit_service.log_action(
        db,
        actor_user_id=principal.user_id,
        action='assessment_question_add',
        entity_type='assessment_question',
        entity_id=question.id,
        details={'assessment_id': assessment.id, 'total_points': assessment.total_points},
    )
    db.commit()
    return QuestionOut.model_validate(question)


@router.put('/{assessment_id}/questions/{question_id}', response_model=QuestionOut)
def update_question(
    assessment_id: UUID,
    question_id: UUID,
    payload: QuestionUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_roles('faculty')),
) -> QuestionOut:
    assessment = assessment_service.get_assessment(db, assessment_id)
    question = assessment_service.update_question(
        db, assessment, question_id, payload=payload, actor_user_id=principal.user_id
    )
    audit_service.log_action(
        db,
        actor_user_id=principal.user_id,
        action='assessment_question_update',
        entity_type='assessment_question',
        entity_id=question.id,
        details={'assessment_id': assessment.id, 'fields': sorted(payload.model_dump(exclude_unset=True))},
    )
    db.commit()
    return QuestionOut.model_validate(question)


@router.delete('/{assessment_id}/questions/{question_id}', status_code=status.HTTP_204_NO_CONTENT)
def remove_question(
    assessment_id: UUID,
    question_id: UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_roles('faculty')),
) -> None:
    assessment = assessment_service.get_assessment(db, assessment_id)
    assessment_service.remove_question(db, assessment, question_id, actor_user_id=principal.user_id)
    audit_service.log_action(
        db,
        actor_user_id=principal.user_id,
        action='assessment_question_remove',
        entity_type='assessment_question',
        entity_id=question_id,
        details={'assessment_id': assessment.id, 'total_points': assessment.total_points},
    )
    db.commit()


@router.post('/{assessment_id}/publish', response_model=AssessmentOut)
def publish_assessment(
    assessment_id: UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_roles('faculty')),
) -> AssessmentOut:
    assessment = assessment_service.get_assessment(db, assessment_id)
    assessment = assessment_service.publish_assessment(db, assessment, actor_user_id=principal.user_id)
    audit_service.log_action(
        db,
        actor_user_id=principal.user_id,
        action='assessment_publish',
        entity_type='assessment',
        entity_id=assessment.id,
        details={'published_at': assessment.published_at},
    )
    db.commit()
    return AssessmentOut.model_validate(assessment)


@router.post('/{assessment_id}/deactivate', response_model=AssessmentOut)
def deactivate_assessment(
    assessment_id: UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_roles('faculty')),
) -> AssessmentOut:
    assessment = assessment_service.get_assessment(db, assessment_id)
    assessment = assessment_service.deactivate_assessment(db, assessment, actor_user_id=principal.user_id)
    audit_service.log_action(
        db,
        actor_user_id=principal.user_id,
        action='assessment_deactivate',
        entity_type='assessment',
        entity_id=assessment.id,
    )
    db.commit()
    return AssessmentOut.model_validate(assessment)


@router.post('/{assessment_id}/regrade', response_model=RegradeOut)
def regrade_assessment(
    assessment_id: UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_roles('faculty')),
) -> RegradeOut:
    count = attempt_service.regrade_assessment(db, assessment_id)
    audit_service.log_action(
        db,
        actor_user_id=principal.user_id,
        action='assessment_regrade',
        entity_type='assessment',
        entity_id=assessment_id,
        details={'regraded_count': count},
    )
    db.commit()
    return RegradeOut(assessment_id=assessment_id, regraded_count=count)

"""
Engine error types.

Each error is an ``HTTPException`` so services can raise it directly and FastAPI renders it
without extra handlers. The stable machine code travels in the ``X-Error-Code`` header and on
the instance as ``code``.
"""

from fastapi import HTTPException, status


class EngineError(HTTPException):
    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = 'engine_error'
    default_detail: str = 'Assessment engine error'

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(
            status_code=self.status_code,
            detail=detail or self.default_detail,
            headers={'X-Error-Code': self.code},
        )


class ValidationError(EngineError):
    status_code = 422
    code = 'validation_error'
    default_detail = 'Invalid assessment definition'


class AssessmentLocked(ValidationError):
    status_code = status.HTTP_409_CONFLICT
    code = 'assessment_locked'
    default_detail = 'Assessment already has attempts; scoring fields are frozen'


class AssessmentNotFound(EngineError):
    status_code = status.HTTP_404_NOT_FOUND
    code = 'assessment_not_found'
    default_detail = 'Assessment not found'


class QuestionNotFound(EngineError):
    status_code = status.HTTP_404_NOT_FOUND
    code = 'question_not_found'
    default_detail = 'Question not found'


class AssessmentNotAvailable(EngineError):
    status_code = status.HTTP_403_FORBIDDEN
    code = 'assessment_not_available'
    default_detail = 'Assessment is not available'


class MaxAttemptsExceeded(EngineError):
    status_code = status.HTTP_409_CONFLICT
    code = 'max_attempts_exceeded'
    default_detail = 'No remaining attempts'


class AttemptNotFound(EngineError):
    status_code = status.HTTP_404_NOT_FOUND
    code = 'attempt_not_found'
    default_detail = 'Attempt not found'


class AttemptExpired(EngineError):
    status_code = status.HTTP_410_GONE
    code = 'attempt_expired'
    default_detail = "Time's up"


class AnswerRejected(EngineError):
    status_code = 422
    code = 'answer_rejected'
    default_detail = 'Answer rejected'


class AttemptStateError(EngineError):
    status_code = status.HTTP_409_CONFLICT
    code = 'attempt_state_error'
    default_detail = 'Attempt is not in a valid state for this operation'


class AttemptVersionConflict(EngineError):
    status_code = status.HTTP_409_CONFLICT
    code = 'version_conflict'
    default_detail = 'Attempt was modified by another client; reload and retry'


class GradingIncomplete(EngineError):
    status_code = status.HTTP_409_CONFLICT
    code = 'grading_incomplete'
    default_detail = 'Manual grading is still pending'

from assessment_engine.schemas.assessment import (
    AssessmentCreate,
    AssessmentListResponse,
    AssessmentOut,
    AssessmentSummaryOut,
    AssessmentUpdate,
    PublicAssessmentOut,
    PublicQuestionOut,
    QuestionCreate,
    QuestionOut,
    QuestionUpdate,
)
from assessment_engine.schemas.attempt import (
    AnswerAck,
    AnswerIn,
    AttemptListResponse,
    AttemptOut,
    AttemptResultOut,
    AttemptStartOut,
    ManualScoreIn,
)
from assessment_engine.schemas.common import PaginationMeta

__all__ = [
    'AnswerAck',
    'AnswerIn',
    'AssessmentCreate',
    'AssessmentListResponse',
    'AssessmentOut',
    'AssessmentSummaryOut',
    'AssessmentUpdate',
    'AttemptListResponse',
    'AttemptOut',
    'AttemptResultOut',
    'AttemptStartOut',
    'ManualScoreIn',
    'PaginationMeta',
    'PublicAssessmentOut',
    'PublicQuestionOut',
    'QuestionCreate',
    'QuestionOut',
    'QuestionUpdate',
]

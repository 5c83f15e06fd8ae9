from assessment_engine.db.base_class import Base
from assessment_engine.models.assessment import Assessment, AssessmentQuestion
from assessment_engine.models.attempt import AssessmentAttempt, AttemptAnswer, ManualScore
from assessment_engine.models.audit import AuditLog


__all__ = [
    'Assessment',
    'AssessmentAttempt',
    'AssessmentQuestion',
    'AttemptAnswer',
    'AuditLog',
    'Base',
    'ManualScore',
]

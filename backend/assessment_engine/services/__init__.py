from assessment_engine.services import (
    assessment_service,
    attempt_service,
    audit_service,
    autosave_service,
)

__all__ = [
    'assessment_service',
    'attempt_service',
    'audit_service',
    'autosave_service',
]

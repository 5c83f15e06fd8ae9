from assessment_engine.engine.definition import (
    AssessmentDefinition,
    AssessmentSettings,
    OptionDefinition,
    QuestionDefinition,
)
from assessment_engine.engine.scoring import GradeResult, ManualGrade, QuestionResult, grade
from assessment_engine.engine.shuffle import PresentationOrder, order_for, presentation_for, seed_for

__all__ = [
    'AssessmentDefinition',
    'AssessmentSettings',
    'GradeResult',
    'ManualGrade',
    'OptionDefinition',
    'PresentationOrder',
    'QuestionDefinition',
    'QuestionResult',
    'grade',
    'order_for',
    'presentation_for',
    'seed_for',
]

QUESTION_TYPE_VALUES = ['mcq', 'true_false', 'essay', 'short_answer']
CHOICE_QUESTION_TYPES = {'mcq', 'true_false'}
MANUALLY_GRADABLE_TYPES = {'essay', 'short_answer'}

ASSESSMENT_TYPE_VALUES = ['exam', 'quiz', 'cat']

ATTEMPT_STATUS_VALUES = ['in_progress', 'expired', 'submitted', 'graded']
# Statuses an attempt can be in once the student can no longer change answers.
COMPLETED_ATTEMPT_STATUSES = {'expired', 'submitted', 'graded'}

GRADING_STATUS_VALUES = ['pending', 'auto_graded', 'pending_manual_grade', 'completed']

MIN_ESSAY_WORDS = 50
DEFAULT_ESSAY_WORDS = 500


def sql_values(values: list[str]) -> str:
    return ', '.join(f"'{value}'" for value in values)

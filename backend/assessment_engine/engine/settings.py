from pydantic import BaseModel, ConfigDict, Field


class AssessmentSettings(BaseModel):
    """Presentation and result-release switches of an assessment, with their defaults."""

    model_config = ConfigDict(frozen=True, extra='forbid')

    shuffle_questions: bool = False
    shuffle_options: bool = False
    show_results_immediately: bool = False
    show_correct_answers: bool = False
    allow_backtrack: bool = True
    question_per_page: int = Field(default=1, ge=1)


SETTINGS_FIELDS = tuple(AssessmentSettings.model_fields)

"""
Point-in-time, immutable view of an authored assessment.

The ORM aggregate in ``assessment_engine.models.assessment`` is what authoring mutates; the
scoring and shuffle code only ever sees these frozen snapshots, so a grade computed from a
snapshot cannot observe a half-applied edit.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from assessment_engine.core.errors import ValidationError
from assessment_engine.engine.settings import SETTINGS_FIELDS, AssessmentSettings
from assessment_engine.models.constants import (
    CHOICE_QUESTION_TYPES,
    DEFAULT_ESSAY_WORDS,
    MIN_ESSAY_WORDS,
    QUESTION_TYPE_VALUES,
)


@dataclass(frozen=True)
class OptionDefinition:
    text: str
    is_correct: bool = False


@dataclass(frozen=True)
class QuestionDefinition:
    id: str
    question_type: str
    text: str
    points: float
    options: tuple[OptionDefinition, ...] = ()
    max_words: int | None = None
    expected_keywords: tuple[str, ...] = ()
    case_sensitive: bool = False
    time_limit_seconds: int | None = None
    explanation: str | None = None
    is_required: bool = True

    @property
    def correct_answers(self) -> frozenset[int]:
        return frozenset(index for index, option in enumerate(self.options) if option.is_correct)

    @property
    def is_choice(self) -> bool:
        return self.question_type in CHOICE_QUESTION_TYPES

    def validate(self) -> None:
        label = f'Question {self.id}' if self.id else 'Question'
        if self.question_type not in QUESTION_TYPE_VALUES:
            raise ValidationError(f'{label}: unknown question type {self.question_type!r}')
        if not self.text or not self.text.strip():
            raise ValidationError(f'{label}: text is required')
        if isinstance(self.points, bool) or not self.points > 0:
            raise ValidationError(f'{label}: points must be positive')
        if self.time_limit_seconds is not None and self.time_limit_seconds < 1:
            raise ValidationError(f'{label}: time_limit_seconds must be positive')

        if self.is_choice:
            self._validate_choice(label)
            return

        if self.options:
            raise ValidationError(f'{label}: {self.question_type} questions cannot have options')
        if self.question_type == 'essay':
            if self.max_words is None or self.max_words < MIN_ESSAY_WORDS:
                raise ValidationError(f'{label}: max_words must be at least {MIN_ESSAY_WORDS}')
            if self.expected_keywords:
                raise ValidationError(f'{label}: essay questions cannot have expected keywords')
        else:
            if not self.expected_keywords:
                raise ValidationError(f'{label}: short answer questions need at least one expected keyword')
            if any(not keyword.strip() for keyword in self.expected_keywords):
                raise ValidationError(f'{label}: expected keywords cannot be blank')
            if self.max_words is not None:
                raise ValidationError(f'{label}: max_words only applies to essay questions')

    def _validate_choice(self, label: str) -> None:
        if self.expected_keywords or self.max_words is not None:
            raise ValidationError(f'{label}: choice questions only carry options')
        if any(not option.text.strip() for option in self.options):
            raise ValidationError(f'{label}: option text is required')
        correct_count = len(self.correct_answers)
        if self.question_type == 'mcq':
            if len(self.options) < 2:
                raise ValidationError(f'{label}: multiple choice questions need at least 2 options')
            if correct_count < 1:
                raise ValidationError(f'{label}: multiple choice questions need at least 1 correct option')
        else:
            if len(self.options) != 2:
                raise ValidationError(f'{label}: true/false questions need exactly 2 options')
            if correct_count != 1:
                raise ValidationError(f'{label}: true/false questions need exactly 1 correct option')

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any], question_id: str = '') -> QuestionDefinition:
        question_type = payload.get('question_type')
        max_words = payload.get('max_words')
        if question_type == 'essay' and max_words is None:
            max_words = DEFAULT_ESSAY_WORDS
        return cls(
            id=question_id,
            question_type=question_type,
            text=payload.get('text') or '',
            points=payload.get('points', 1),
            options=tuple(
                OptionDefinition(text=option.get('text') or '', is_correct=bool(option.get('is_correct', False)))
                for option in payload.get('options') or []
            ),
            max_words=max_words,
            expected_keywords=tuple(payload.get('expected_keywords') or ()),
            case_sensitive=bool(payload.get('case_sensitive', False)),
            time_limit_seconds=payload.get('time_limit_seconds'),
            explanation=payload.get('explanation'),
            is_required=bool(payload.get('is_required', True)),
        )

    @classmethod
    def from_model(cls, question: Any) -> QuestionDefinition:
        return cls(
            id=str(question.id),
            question_type=question.question_type,
            text=question.text,
            points=float(question.points),
            options=tuple(
                OptionDefinition(text=option.get('text', ''), is_correct=bool(option.get('is_correct', False)))
                for option in question.options or []
            ),
            max_words=question.max_words,
            expected_keywords=tuple(question.expected_keywords or ()),
            case_sensitive=bool(question.case_sensitive),
            time_limit_seconds=question.time_limit_seconds,
            explanation=question.explanation,
            is_required=bool(question.is_required),
        )

    def to_payload(self) -> dict[str, Any]:
        """Column values for persisting this question (type-specific fields only where they apply)."""
        return {
            'question_type': self.question_type,
            'text': self.text.strip(),
            'points': float(self.points),
            'options': [{'text': o.text, 'is_correct': o.is_correct} for o in self.options] if self.is_choice else None,
            'max_words': self.max_words if self.question_type == 'essay' else None,
            'expected_keywords': [k.strip() for k in self.expected_keywords] if self.question_type == 'short_answer' else None,
            'case_sensitive': self.case_sensitive if self.question_type == 'short_answer' else False,
            'time_limit_seconds': self.time_limit_seconds,
            'explanation': self.explanation,
            'is_required': self.is_required,
        }


@dataclass(frozen=True)
class AssessmentDefinition:
    id: str
    title: str
    duration_minutes: int
    max_attempts: int
    passing_score: float
    settings: AssessmentSettings = field(default_factory=AssessmentSettings)
    questions: tuple[QuestionDefinition, ...] = ()
    instructions: str | None = None
    assessment_type: str = 'exam'
    available_from: datetime | None = None
    available_until: datetime | None = None

    @property
    def total_points(self) -> float:
        return float(sum(question.points for question in self.questions))

    def question(self, question_id: str) -> QuestionDefinition | None:
        for question in self.questions:
            if question.id == question_id:
                return question
        return None

    def validate(self, *, require_questions: bool = False) -> None:
        if not self.title or not self.title.strip():
            raise ValidationError('Assessment title is required')
        if self.duration_minutes < 1:
            raise ValidationError('duration_minutes must be at least 1')
        if self.max_attempts < 1:
            raise ValidationError('max_attempts must be at least 1')
        if not 0 <= self.passing_score <= 100:
            raise ValidationError('passing_score must be between 0 and 100')
        if self.available_from and self.available_until:
            if as_utc(self.available_until) < as_utc(self.available_from):
                raise ValidationError('available_until must not be before available_from')
        if require_questions and not self.questions:
            raise ValidationError('Assessment has no questions')
        seen: set[str] = set()
        for question in self.questions:
            if question.id in seen:
                raise ValidationError(f'Duplicate question id {question.id}')
            seen.add(question.id)
            question.validate()

    def is_available_at(self, now: datetime) -> bool:
        if self.available_from and now < as_utc(self.available_from):
            return False
        if self.available_until and now > as_utc(self.available_until):
            return False
        return True

    @classmethod
    def from_model(cls, assessment: Any) -> AssessmentDefinition:
        return cls(
            id=str(assessment.id),
            title=assessment.title,
            duration_minutes=assessment.duration_minutes,
            max_attempts=assessment.max_attempts,
            passing_score=float(assessment.passing_score),
            settings=AssessmentSettings(**{name: getattr(assessment, name) for name in SETTINGS_FIELDS}),
            questions=tuple(
                QuestionDefinition.from_model(question)
                for question in sorted(assessment.questions, key=lambda item: item.order_index)
            ),
            instructions=assessment.instructions,
            assessment_type=assessment.assessment_type,
            available_from=assessment.available_from,
            available_until=assessment.available_until,
        )


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; everything the engine stores is UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def page_of(question_id: str, question_order: Iterable[str], question_per_page: int) -> int | None:
    for position, candidate in enumerate(question_order):
        if candidate == question_id:
            return position // max(question_per_page, 1)
    return None

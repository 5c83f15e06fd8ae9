"""
Deterministic grading of an attempt against an assessment snapshot.

``grade`` has no side effects and reads nothing but its arguments, so it is safe to call from
any thread or process and to call again (regrade) with the same inputs for the same result.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import asdict, dataclass
from typing import Any

from assessment_engine.engine.definition import AssessmentDefinition, QuestionDefinition


LETTER_GRADE_THRESHOLDS: tuple[tuple[float, str], ...] = (
    (90, 'A'),
    (85, 'A-'),
    (80, 'B+'),
    (75, 'B'),
    (70, 'B-'),
    (65, 'C+'),
    (60, 'C'),
    (55, 'C-'),
    (50, 'D+'),
    (45, 'D'),
    (40, 'D-'),
)


@dataclass(frozen=True)
class ManualGrade:
    points: float
    feedback: str | None = None


@dataclass(frozen=True)
class QuestionResult:
    question_id: str
    question_type: str
    points_possible: float
    points_awarded: float
    status: str  # correct | incorrect | unanswered | pending_manual_grade | manually_graded
    correct_answers: list[int] | None = None
    explanation: str | None = None
    feedback: str | None = None

    @property
    def is_correct(self) -> bool | None:
        if self.status in ('correct', 'incorrect', 'unanswered'):
            return self.status == 'correct'
        return None

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class GradeResult:
    score: float
    max_score: float
    percent: float
    passed: bool
    letter_grade: str
    is_final: bool
    results: tuple[QuestionResult, ...]

    @property
    def used_manual_scores(self) -> bool:
        return any(result.status == 'manually_graded' for result in self.results)

    @property
    def manual_graded_points(self) -> float:
        return round(sum(r.points_awarded for r in self.results if r.status == 'manually_graded'), 6)

    @property
    def auto_graded_points(self) -> float:
        return round(self.score - self.manual_graded_points, 6)

    @property
    def grading_status(self) -> str:
        if not self.is_final:
            return 'pending_manual_grade'
        return 'completed' if self.used_manual_scores else 'auto_graded'

    @property
    def pending_question_ids(self) -> list[str]:
        return [result.question_id for result in self.results if result.status == 'pending_manual_grade']


def letter_grade_for(percent: float) -> str:
    for threshold, letter in LETTER_GRADE_THRESHOLDS:
        if percent >= threshold:
            return letter
    return 'F'


def normalize_selection(value: Any) -> frozenset[int] | None:
    """Coerce a stored choice answer into a set of option indices; None when nothing usable was saved."""
    if value is None:
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return frozenset({value})
    if isinstance(value, (list, tuple, set, frozenset)):
        if not all(isinstance(item, int) and not isinstance(item, bool) for item in value):
            return None
        return frozenset(value) or None
    return None


def _grade_choice(question: QuestionDefinition, value: Any) -> QuestionResult:
    selected = normalize_selection(value)
    correct = sorted(question.correct_answers)
    if selected is None:
        status, awarded = 'unanswered', 0.0
    elif selected == question.correct_answers:
        status, awarded = 'correct', question.points
    else:
        status, awarded = 'incorrect', 0.0
    return QuestionResult(
        question_id=question.id,
        question_type=question.question_type,
        points_possible=question.points,
        points_awarded=awarded,
        status=status,
        correct_answers=correct,
        explanation=question.explanation,
    )


def _grade_short_answer(question: QuestionDefinition, value: Any) -> QuestionResult:
    submission = value.strip() if isinstance(value, str) else ''
    if not submission:
        status, awarded = 'unanswered', 0.0
    else:
        keywords = [keyword.strip() for keyword in question.expected_keywords if keyword.strip()]
        if not question.case_sensitive:
            submission = submission.lower()
            keywords = [keyword.lower() for keyword in keywords]
        if any(keyword in submission for keyword in keywords):
            status, awarded = 'correct', question.points
        else:
            status, awarded = 'incorrect', 0.0
    return QuestionResult(
        question_id=question.id,
        question_type=question.question_type,
        points_possible=question.points,
        points_awarded=awarded,
        status=status,
        explanation=question.explanation,
    )


def _manual_result(question: QuestionDefinition, manual: ManualGrade) -> QuestionResult:
    return QuestionResult(
        question_id=question.id,
        question_type=question.question_type,
        points_possible=question.points,
        points_awarded=min(max(manual.points, 0.0), question.points),
        status='manually_graded',
        explanation=question.explanation,
        feedback=manual.feedback,
    )


def grade_question(question: QuestionDefinition, value: Any, manual: ManualGrade | None = None) -> QuestionResult:
    if question.is_choice:
        return _grade_choice(question, value)
    if manual is not None:
        return _manual_result(question, manual)
    if question.question_type == 'short_answer':
        return _grade_short_answer(question, value)
    # Essays are never auto-scored.
    return QuestionResult(
        question_id=question.id,
        question_type=question.question_type,
        points_possible=question.points,
        points_awarded=0.0,
        status='pending_manual_grade',
        explanation=question.explanation,
    )


def grade(
    definition: AssessmentDefinition,
    answers: Mapping[str, Any],
    manual_scores: Mapping[str, ManualGrade] | None = None,
) -> GradeResult:
    manual_scores = manual_scores or {}
    results = tuple(
        grade_question(question, answers.get(question.id), manual_scores.get(question.id))
        for question in definition.questions
    )
    max_score = definition.total_points
    score = round(sum(result.points_awarded for result in results), 6)
    percent = round(score / max_score * 100, 6) if max_score > 0 else 0.0
    return GradeResult(
        score=score,
        max_score=max_score,
        percent=percent,
        passed=percent >= definition.passing_score,
        letter_grade=letter_grade_for(percent),
        is_final=not any(result.status == 'pending_manual_grade' for result in results),
        results=results,
    )

from __future__ import annotations

import random
from collections.abc import Sequence
from dataclasses import dataclass
from hashlib import sha256
from typing import TypeVar

from assessment_engine.engine.definition import AssessmentDefinition


T = TypeVar('T')


@dataclass(frozen=True)
class PresentationOrder:
    question_order: list[str]
    # question id -> authored option indices in display order
    option_order: dict[str, list[int]]


def _digest_seed(material: str) -> int:
    return int.from_bytes(sha256(material.encode('utf-8')).digest()[:8], 'big')


def seed_for(assessment_id: object, student_id: object, attempt_number: int) -> int:
    return _digest_seed(f'{assessment_id}:{student_id}:{attempt_number}')


def derive_seed(seed: int, salt: str) -> int:
    return _digest_seed(f'{seed}:{salt}')


def order_for(seed: int, items: Sequence[T]) -> list[T]:
    """Return a permutation of ``items`` fully determined by ``seed``; ``items`` is left untouched."""
    ordered = list(items)
    random.Random(seed).shuffle(ordered)
    return ordered


def presentation_for(definition: AssessmentDefinition, student_id: object, attempt_number: int) -> PresentationOrder:
    seed = seed_for(definition.id, student_id, attempt_number)
    question_ids = [question.id for question in definition.questions]
    if definition.settings.shuffle_questions:
        question_ids = order_for(derive_seed(seed, 'questions'), question_ids)

    option_order: dict[str, list[int]] = {}
    for question in definition.questions:
        if not question.is_choice:
            continue
        indices = list(range(len(question.options)))
        if definition.settings.shuffle_options:
            indices = order_for(derive_seed(seed, question.id), indices)
        option_order[question.id] = indices

    return PresentationOrder(question_order=question_ids, option_order=option_order)

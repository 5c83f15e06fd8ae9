import uuid

from assessment_engine.engine.definition import AssessmentDefinition, AssessmentSettings, QuestionDefinition
from assessment_engine.engine.shuffle import order_for, presentation_for, seed_for

from tests.conftest import essay, mcq


def _definition(**settings) -> AssessmentDefinition:
    questions = tuple(
        QuestionDefinition.from_payload(mcq(option_count=5, text=f'Question {index}'), question_id=f'q{index}')
        for index in range(8)
    ) + (QuestionDefinition.from_payload(essay(), question_id='essay'),)
    return AssessmentDefinition(
        id='assessment-1',
        title='Shuffled',
        duration_minutes=30,
        max_attempts=3,
        passing_score=50,
        settings=AssessmentSettings(**settings),
        questions=questions,
    )


def test_order_for_is_stable_for_a_seed_and_leaves_input_untouched() -> None:
    items = list(range(20))
    first = order_for(42, items)
    second = order_for(42, items)

    assert first == second
    assert sorted(first) == items
    assert items == list(range(20))


def test_seed_depends_on_attempt_number() -> None:
    student = uuid.uuid4()
    assert seed_for('a', student, 1) == seed_for('a', student, 1)
    assert seed_for('a', student, 1) != seed_for('a', student, 2)
    assert seed_for('a', student, 1) != seed_for('b', student, 1)


def test_different_attempts_shuffle_differently() -> None:
    items = list(range(20))
    student = uuid.uuid4()
    orders = {tuple(order_for(seed_for('a', student, number), items)) for number in range(1, 6)}
    assert len(orders) > 1


def test_unshuffled_assessment_keeps_authored_order() -> None:
    definition = _definition()
    presentation = presentation_for(definition, uuid.uuid4(), 1)

    assert presentation.question_order == [question.id for question in definition.questions]
    assert presentation.option_order['q0'] == [0, 1, 2, 3, 4]
    assert 'essay' not in presentation.option_order


def test_resume_reproduces_presentation_order() -> None:
    definition = _definition(shuffle_questions=True, shuffle_options=True)
    student = uuid.uuid4()

    first = presentation_for(definition, student, 1)
    again = presentation_for(definition, student, 1)

    assert first == again
    assert sorted(first.question_order) == sorted(question.id for question in definition.questions)
    for question_id, order in first.option_order.items():
        assert sorted(order) == [0, 1, 2, 3, 4], question_id


def test_question_and_option_shuffles_are_independent() -> None:
    student = uuid.uuid4()
    options_only = presentation_for(_definition(shuffle_options=True), student, 1)
    questions_only = presentation_for(_definition(shuffle_questions=True), student, 1)

    assert options_only.question_order == [f'q{index}' for index in range(8)] + ['essay']
    assert all(order == [0, 1, 2, 3, 4] for order in questions_only.option_order.values())
    assert any(order != [0, 1, 2, 3, 4] for order in options_only.option_order.values())

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from assessment_engine.services import attempt_service

from tests.conftest import (
    OTHER_STUDENT_ID,
    create_assessment_via_api,
    essay,
    faculty_headers,
    mcq,
    short_answer,
    student_headers,
)


def _start(client: TestClient, assessment_id: str, headers: dict[str, str] | None = None):
    response = client.post(f'/api/v1/assessments/{assessment_id}/attempts', headers=headers or student_headers())
    assert response.status_code == 200, response.text
    return response.json()


def _answer(client: TestClient, attempt_id: str, question_id: str, value, **extra):
    return client.put(
        f'/api/v1/attempts/{attempt_id}/answers/{question_id}',
        headers=extra.pop('headers', None) or student_headers(),
        json={'value': value, **extra},
    )


def test_start_resume_and_submit_flow(client: TestClient) -> None:
    assessment = create_assessment_via_api(
        client,
        [mcq(points=5, correct=(0, 2), option_count=4), short_answer(points=5, keywords=('recursion',))],
        passing_score=50,
    )

    started = _start(client, assessment['id'])
    attempt_id = started['attempt']['id']
    assert started['resumed'] is False
    assert started['page_count'] == 2
    assert 0 < started['remaining_seconds'] <= 3600
    choice = next(question for question in started['questions'] if question['question_type'] == 'mcq')
    assert [option['index'] for option in choice['options']] == [0, 1, 2, 3]
    assert 'is_correct' not in choice['options'][0]

    resumed = _start(client, assessment['id'])
    assert resumed['resumed'] is True
    assert resumed['attempt']['id'] == attempt_id

    keyword = next(question for question in started['questions'] if question['question_type'] == 'short_answer')
    ack = _answer(client, attempt_id, choice['id'], [2, 0])
    assert ack.status_code == 200, ack.text
    assert ack.json()['changed'] is True
    version = ack.json()['version']

    replay = _answer(client, attempt_id, choice['id'], [0, 2])
    assert replay.json()['changed'] is False
    assert replay.json()['version'] == version

    assert _answer(client, attempt_id, keyword['id'], 'I used Recursion in my solution').status_code == 200

    submitted = client.post(f'/api/v1/attempts/{attempt_id}/submit', headers=student_headers())
    assert submitted.status_code == 200, submitted.text
    result = submitted.json()
    assert result['attempt']['status'] == 'graded'
    assert result['is_final'] is True
    assert result['score'] == 10
    assert result['passed'] is True
    assert result['letter_grade'] == 'A'
    assert result['questions'] is None

    again = client.post(f'/api/v1/attempts/{attempt_id}/submit', headers=student_headers())
    assert again.status_code == 409
    assert again.json()['code'] == 'attempt_state_error'

    late_answer = _answer(client, attempt_id, choice['id'], [1])
    assert late_answer.status_code == 422
    assert late_answer.json()['code'] == 'answer_rejected'


def test_other_students_cannot_touch_an_attempt(client: TestClient) -> None:
    assessment = create_assessment_via_api(client, [mcq()])
    started = _start(client, assessment['id'])
    attempt_id = started['attempt']['id']
    question_id = started['questions'][0]['id']
    intruder = student_headers(OTHER_STUDENT_ID)

    assert _answer(client, attempt_id, question_id, [0], headers=intruder).status_code == 404
    assert client.post(f'/api/v1/attempts/{attempt_id}/submit', headers=intruder).status_code == 404
    assert client.get(f'/api/v1/attempts/{attempt_id}/result', headers=intruder).status_code == 404
    assert client.get(f'/api/v1/attempts/{attempt_id}/result', headers=faculty_headers()).status_code == 200

    listing = client.get(f"/api/v1/assessments/{assessment['id']}/attempts", headers=intruder)
    assert listing.json()['meta']['total'] == 0
    staff_listing = client.get(f"/api/v1/assessments/{assessment['id']}/attempts", headers=faculty_headers())
    assert staff_listing.json()['meta']['total'] == 1


def test_max_attempts_enforced_over_http(client: TestClient) -> None:
    assessment = create_assessment_via_api(client, [mcq()], max_attempts=2)

    for _ in range(2):
        attempt_id = _start(client, assessment['id'])['attempt']['id']
        assert client.post(f'/api/v1/attempts/{attempt_id}/submit', headers=student_headers()).status_code == 200

    third = client.post(f"/api/v1/assessments/{assessment['id']}/attempts", headers=student_headers())
    assert third.status_code == 409
    assert third.json()['code'] == 'max_attempts_exceeded'


def test_stale_client_version_conflicts(client: TestClient) -> None:
    assessment = create_assessment_via_api(client, [short_answer()])
    started = _start(client, assessment['id'])
    attempt_id = started['attempt']['id']
    question_id = started['questions'][0]['id']

    first = _answer(client, attempt_id, question_id, 'draft', expected_version=started['attempt']['version'])
    assert first.status_code == 200

    resent = _answer(client, attempt_id, question_id, 'draft', expected_version=started['attempt']['version'])
    assert resent.status_code == 200, resent.text
    assert resent.json()['changed'] is False
    assert resent.json()['version'] == first.json()['version']

    stale = _answer(client, attempt_id, question_id, 'older tab', expected_version=started['attempt']['version'])
    assert stale.status_code == 409
    assert stale.json()['code'] == 'version_conflict'


def test_expired_attempt_reports_times_up(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    assessment = create_assessment_via_api(client, [mcq(points=1), mcq(points=1)], duration_minutes=15)
    started = _start(client, assessment['id'])
    attempt_id = started['attempt']['id']
    first, second = started['questions']
    assert _answer(client, attempt_id, first['id'], [0]).status_code == 200

    later = attempt_service.utcnow() + timedelta(minutes=16)
    monkeypatch.setattr(attempt_service, 'utcnow', lambda: later)

    expired = _answer(client, attempt_id, second['id'], [0])
    assert expired.status_code == 410
    assert expired.json() == {'detail': "Time's up", 'code': 'attempt_expired'}

    result = client.get(f'/api/v1/attempts/{attempt_id}/result', headers=student_headers())
    assert result.status_code == 200
    body = result.json()
    assert body['attempt']['status'] == 'graded'
    assert body['attempt']['auto_submitted'] is True
    assert body['score'] == 1

    submit = client.post(f'/api/v1/attempts/{attempt_id}/submit', headers=student_headers())
    assert submit.status_code == 410


def test_backtrack_disabled_over_http(client: TestClient) -> None:
    assessment = create_assessment_via_api(
        client, [mcq(), mcq(), mcq(), mcq()], settings={'allow_backtrack': False, 'question_per_page': 2}
    )
    started = _start(client, assessment['id'])
    attempt_id = started['attempt']['id']
    assert started['page_count'] == 2
    assert started['allow_backtrack'] is False

    moved = client.post(f'/api/v1/attempts/{attempt_id}/pages/1', headers=student_headers())
    assert moved.status_code == 200
    assert moved.json()['furthest_page'] == 1

    first_page_question = started['questions'][0]['id']
    rejected = _answer(client, attempt_id, first_page_question, [0])
    assert rejected.status_code == 422
    assert rejected.json()['code'] == 'answer_rejected'

    back = client.post(f'/api/v1/attempts/{attempt_id}/pages/0', headers=student_headers())
    assert back.status_code == 422


def test_essay_needs_manual_score_before_final_result(client: TestClient) -> None:
    assessment = create_assessment_via_api(
        client,
        [mcq(points=5), essay(points=5)],
        settings={'show_results_immediately': True},
    )
    started = _start(client, assessment['id'])
    attempt_id = started['attempt']['id']
    by_type = {question['question_type']: question['id'] for question in started['questions']}
    _answer(client, attempt_id, by_type['mcq'], [0])
    _answer(
        client, attempt_id, by_type['essay'], 'Hash tables give constant time lookups on average.', time_spent=180
    )

    submitted = client.post(f'/api/v1/attempts/{attempt_id}/submit', headers=student_headers()).json()
    assert submitted['attempt']['status'] == 'submitted'
    assert submitted['attempt']['grading_status'] == 'pending_manual_grade'
    assert submitted['is_final'] is False
    assert submitted['score'] == 5
    assert submitted['pending_question_ids'] == [by_type['essay']]

    pending = client.get(f'/api/v1/attempts/{attempt_id}/final-result', headers=faculty_headers())
    assert pending.status_code == 409
    assert pending.json()['code'] == 'grading_incomplete'

    forbidden = client.post(
        f'/api/v1/attempts/{attempt_id}/manual-scores',
        headers=student_headers(),
        json={'question_id': by_type['essay'], 'points': 5},
    )
    assert forbidden.status_code == 403

    too_many = client.post(
        f'/api/v1/attempts/{attempt_id}/manual-scores',
        headers=faculty_headers(),
        json={'question_id': by_type['essay'], 'points': 6},
    )
    assert too_many.status_code == 422

    scored = client.post(
        f'/api/v1/attempts/{attempt_id}/manual-scores',
        headers=faculty_headers(),
        json={'question_id': by_type['essay'], 'points': 3.5, 'feedback': 'Mention collisions'},
    )
    assert scored.status_code == 200, scored.text
    body = scored.json()
    assert body['attempt']['status'] == 'graded'
    assert body['is_final'] is True
    assert body['score'] == 8.5
    assert body['auto_graded_points'] == 5
    assert body['manual_graded_points'] == 3.5
    essay_result = next(item for item in body['questions'] if item['question_id'] == by_type['essay'])
    assert essay_result['status'] == 'manually_graded'
    assert essay_result['feedback'] == 'Mention collisions'

    final = client.get(f'/api/v1/attempts/{attempt_id}/final-result', headers=faculty_headers())
    assert final.status_code == 200
    assert final.json()['score'] == 8.5


def test_regrade_endpoints(client: TestClient) -> None:
    assessment = create_assessment_via_api(client, [short_answer(points=4, keywords=('heap',))])
    started = _start(client, assessment['id'])
    attempt_id = started['attempt']['id']
    question_id = started['questions'][0]['id']
    _answer(client, attempt_id, question_id, 'a priority queue')
    client.post(f'/api/v1/attempts/{attempt_id}/submit', headers=student_headers())

    fixed = client.put(
        f"/api/v1/assessments/{assessment['id']}/questions/{question_id}",
        headers=faculty_headers(),
        json={'expected_keywords': ['heap', 'priority queue']},
    )
    assert fixed.status_code == 200, fixed.text

    before = client.get(f'/api/v1/attempts/{attempt_id}/result', headers=faculty_headers()).json()
    assert before['score'] == 0

    regraded = client.post(f"/api/v1/assessments/{assessment['id']}/regrade", headers=faculty_headers())
    assert regraded.status_code == 200
    assert regraded.json()['regraded_count'] == 1

    after = client.post(f'/api/v1/attempts/{attempt_id}/regrade', headers=faculty_headers())
    assert after.status_code == 200
    assert after.json()['score'] == 4

from fastapi.testclient import TestClient
from sqlalchemy import select
from sqlalchemy.orm import Session

from assessment_engine.models.audit import AuditLog

from tests.conftest import (
    ADMIN_ID,
    create_assessment_via_api,
    essay,
    faculty_headers,
    headers_for,
    mcq,
    short_answer,
    student_headers,
    true_false,
)


def test_health(client: TestClient) -> None:
    response = client.get('/api/v1/health')
    assert response.status_code == 200
    assert response.json()['status'] == 'ok'


def test_routes_require_a_token(client: TestClient) -> None:
    assert client.get('/api/v1/assessments').status_code == 401
    bad = client.get('/api/v1/assessments', headers={'Authorization': 'Bearer not-a-token'})
    assert bad.status_code == 401


def test_students_cannot_author(client: TestClient) -> None:
    response = client.post(
        '/api/v1/assessments',
        headers=student_headers(),
        json={'title': 'Sneaky', 'questions': [mcq()]},
    )
    assert response.status_code == 403

    admin = client.post(
        '/api/v1/assessments',
        headers=headers_for(ADMIN_ID, 'admin'),
        json={'title': 'Admin made', 'questions': [mcq()]},
    )
    assert admin.status_code == 201, admin.text


def test_create_assessment_with_defaults(client: TestClient) -> None:
    response = client.post(
        '/api/v1/assessments',
        headers=faculty_headers(),
        json={'title': 'CS101 Midterm', 'questions': [mcq(points=5), true_false(points=2), essay(points=3)]},
    )
    assert response.status_code == 201, response.text
    payload = response.json()

    assert payload['assessment_type'] == 'exam'
    assert payload['duration_minutes'] == 60
    assert payload['max_attempts'] == 1
    assert payload['passing_score'] == 60
    assert payload['settings'] == {
        'shuffle_questions': False,
        'shuffle_options': False,
        'show_results_immediately': False,
        'show_correct_answers': False,
        'allow_backtrack': True,
        'question_per_page': 1,
    }
    assert payload['total_points'] == 10
    assert payload['question_count'] == 3
    assert payload['is_published'] is False
    assert payload['questions'][0]['correct_answers'] == [0]


def test_create_assessment_with_several_questions(client: TestClient) -> None:
    response = client.post(
        '/api/v1/assessments',
        headers=faculty_headers(),
        json={'title': 'Boundary quiz', 'passing_score': 50, 'questions': [mcq(points=5), mcq(points=5, correct=(1,))]},
    )
    assert response.status_code == 201, response.text
    payload = response.json()
    assert payload['total_points'] == 10
    assert [question['order_index'] for question in payload['questions']] == [0, 1]

    broken = client.post(
        '/api/v1/assessments',
        headers=faculty_headers(),
        json={'title': 'Second is broken', 'questions': [mcq(), mcq(correct=())]},
    )
    assert broken.status_code == 422
    assert broken.json()['detail'].startswith('Question #2')


def test_invalid_question_is_rejected_and_not_persisted(client: TestClient) -> None:
    response = client.post(
        '/api/v1/assessments',
        headers=faculty_headers(),
        json={'title': 'Broken', 'questions': [mcq(correct=())]},
    )
    assert response.status_code == 422
    assert response.json()['code'] == 'validation_error'
    assert response.headers['X-Error-Code'] == 'validation_error'

    listing = client.get('/api/v1/assessments', headers=faculty_headers())
    assert listing.json()['meta']['total'] == 0


def test_total_points_tracks_question_mutations(client: TestClient) -> None:
    created = client.post(
        '/api/v1/assessments',
        headers=faculty_headers(),
        json={'title': 'Growing quiz', 'assessment_type': 'quiz', 'questions': [mcq(points=2)]},
    ).json()
    assessment_id = created['id']

    added = client.post(
        f'/api/v1/assessments/{assessment_id}/questions', headers=faculty_headers(), json=short_answer(points=3)
    )
    assert added.status_code == 201, added.text
    question_id = added.json()['id']
    assert client.get(f'/api/v1/assessments/{assessment_id}', headers=faculty_headers()).json()['total_points'] == 5

    updated = client.put(
        f'/api/v1/assessments/{assessment_id}/questions/{question_id}',
        headers=faculty_headers(),
        json={'points': 4},
    )
    assert updated.status_code == 200, updated.text
    assert client.get(f'/api/v1/assessments/{assessment_id}', headers=faculty_headers()).json()['total_points'] == 6

    removed = client.delete(f'/api/v1/assessments/{assessment_id}/questions/{question_id}', headers=faculty_headers())
    assert removed.status_code == 204
    detail = client.get(f'/api/v1/assessments/{assessment_id}', headers=faculty_headers()).json()
    assert detail['total_points'] == 2
    assert [question['order_index'] for question in detail['questions']] == [0]


def test_changing_question_type_drops_old_fields(client: TestClient) -> None:
    created = client.post(
        '/api/v1/assessments', headers=faculty_headers(), json={'title': 'Retype', 'questions': [mcq()]}
    ).json()
    question_id = created['questions'][0]['id']

    response = client.put(
        f"/api/v1/assessments/{created['id']}/questions/{question_id}",
        headers=faculty_headers(),
        json={'question_type': 'essay'},
    )
    assert response.status_code == 200, response.text
    question = response.json()
    assert question['question_type'] == 'essay'
    assert question['options'] is None
    assert question['max_words'] == 500


def test_update_settings_and_window(client: TestClient) -> None:
    created = client.post(
        '/api/v1/assessments', headers=faculty_headers(), json={'title': 'Settings', 'questions': [mcq()]}
    ).json()

    response = client.patch(
        f"/api/v1/assessments/{created['id']}",
        headers=faculty_headers(),
        json={'duration_minutes': 90, 'settings': {'shuffle_questions': True, 'question_per_page': 5}},
    )
    assert response.status_code == 200, response.text
    payload = response.json()
    assert payload['duration_minutes'] == 90
    assert payload['settings']['shuffle_questions'] is True
    assert payload['settings']['question_per_page'] == 5
    assert payload['settings']['allow_backtrack'] is True

    inverted = client.patch(
        f"/api/v1/assessments/{created['id']}",
        headers=faculty_headers(),
        json={'available_from': '2026-06-02T00:00:00Z', 'available_until': '2026-06-01T00:00:00Z'},
    )
    assert inverted.status_code == 422


def test_publish_requires_questions(client: TestClient) -> None:
    created = client.post('/api/v1/assessments', headers=faculty_headers(), json={'title': 'Empty'}).json()
    response = client.post(f"/api/v1/assessments/{created['id']}/publish", headers=faculty_headers())
    assert response.status_code == 422


def test_students_see_only_published_assessments_without_answers(client: TestClient) -> None:
    published = create_assessment_via_api(client, [mcq(), short_answer()])
    draft = client.post('/api/v1/assessments', headers=faculty_headers(), json={'title': 'Draft', 'questions': [mcq()]})
    assert draft.status_code == 201

    listing = client.get('/api/v1/assessments', headers=student_headers())
    assert listing.status_code == 200
    assert [item['id'] for item in listing.json()['items']] == [published['id']]

    detail = client.get(f"/api/v1/assessments/{published['id']}", headers=student_headers())
    assert detail.status_code == 200
    body = detail.json()
    assert body['question_count'] == 2
    assert 'questions' not in body

    hidden = client.get(f"/api/v1/assessments/{draft.json()['id']}", headers=student_headers())
    assert hidden.status_code == 404


def test_authoring_locks_once_an_attempt_exists(client: TestClient) -> None:
    assessment = create_assessment_via_api(client, [mcq(points=2), short_answer(points=2)])
    choice_id = assessment['questions'][0]['id']
    keyword_id = assessment['questions'][1]['id']

    started = client.post(f"/api/v1/assessments/{assessment['id']}/attempts", headers=student_headers())
    assert started.status_code == 200, started.text

    added = client.post(f"/api/v1/assessments/{assessment['id']}/questions", headers=faculty_headers(), json=mcq())
    assert added.status_code == 409
    assert added.json()['code'] == 'assessment_locked'

    removed = client.delete(f"/api/v1/assessments/{assessment['id']}/questions/{choice_id}", headers=faculty_headers())
    assert removed.status_code == 409

    repointed = client.put(
        f"/api/v1/assessments/{assessment['id']}/questions/{choice_id}",
        headers=faculty_headers(),
        json={'points': 10},
    )
    assert repointed.status_code == 409

    reworded = client.put(
        f"/api/v1/assessments/{assessment['id']}/questions/{choice_id}",
        headers=faculty_headers(),
        json={'text': 'Pick the best option', 'explanation': 'Option 0 is right'},
    )
    assert reworded.status_code == 200, reworded.text

    keywords = client.put(
        f"/api/v1/assessments/{assessment['id']}/questions/{keyword_id}",
        headers=faculty_headers(),
        json={'expected_keywords': ['recursion', 'recursive']},
    )
    assert keywords.status_code == 200, keywords.text
    assert keywords.json()['expected_keywords'] == ['recursion', 'recursive']


def test_deactivate_hides_assessment_from_students(client: TestClient) -> None:
    assessment = create_assessment_via_api(client, [mcq()])
    response = client.post(f"/api/v1/assessments/{assessment['id']}/deactivate", headers=faculty_headers())
    assert response.status_code == 200
    assert response.json()['is_active'] is False

    listing = client.get('/api/v1/assessments', headers=student_headers())
    assert listing.json()['meta']['total'] == 0

    start = client.post(f"/api/v1/assessments/{assessment['id']}/attempts", headers=student_headers())
    assert start.status_code == 403
    assert start.json()['code'] == 'assessment_not_available'


def test_authoring_is_audited(client: TestClient, db_session: Session) -> None:
    create_assessment_via_api(client, [mcq()])
    actions = db_session.scalars(select(AuditLog.action).order_by(AuditLog.created_at)).all()
    assert set(actions) == {'assessment_create', 'assessment_publish'}

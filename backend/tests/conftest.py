import os
import uuid
from collections.abc import Generator
from typing import Any

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

os.environ.setdefault('DATABASE_URL', os.getenv('TEST_DATABASE_URL') or 'sqlite+pysqlite:///:memory:')
os.environ.setdefault('JWT_SECRET_KEY', 'test-access-secret-32-chars-min-0001')
os.environ.setdefault('APP_ENV', 'test')
os.environ.setdefault('CORS_ORIGINS', 'http://localhost:3001')
os.environ.setdefault('LOG_LEVEL', 'WARNING')

from assessment_engine.core.security import create_access_token
from assessment_engine.db.base import Base
from assessment_engine.db.session import SessionLocal, engine, get_db
from assessment_engine.main import app
from assessment_engine.models.assessment import Assessment
from assessment_engine.schemas.assessment import AssessmentCreate
from assessment_engine.services import assessment_service


FACULTY_ID = uuid.UUID('00000000-0000-0000-0000-0000000000f1')
ADMIN_ID = uuid.UUID('00000000-0000-0000-0000-0000000000a1')
STUDENT_ID = uuid.UUID('00000000-0000-0000-0000-000000000051')
OTHER_STUDENT_ID = uuid.UUID('00000000-0000-0000-0000-000000000052')


@pytest.fixture(autouse=True)
def setup_database() -> Generator[None, None, None]:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)

    yield

    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    def _override_db() -> Generator[Session, None, None]:
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = _override_db

    with TestClient(app) as api_client:
        yield api_client

    app.dependency_overrides.clear()


def auth_header(access_token: str) -> dict[str, str]:
    return {'Authorization': f'Bearer {access_token}'}


def headers_for(user_id: uuid.UUID, *roles: str) -> dict[str, str]:
    return auth_header(create_access_token(str(user_id), list(roles)))


def faculty_headers() -> dict[str, str]:
    return headers_for(FACULTY_ID, 'faculty')


def student_headers(user_id: uuid.UUID = STUDENT_ID) -> dict[str, str]:
    return headers_for(user_id, 'student')


def mcq(points: float = 5, correct: tuple[int, ...] = (0,), option_count: int = 3, **extra: Any) -> dict[str, Any]:
    return {
        'question_type': 'mcq',
        'text': extra.pop('text', 'Pick the right option'),
        'points': points,
        'options': [{'text': f'Option {index}', 'is_correct': index in correct} for index in range(option_count)],
        **extra,
    }


def true_false(points: float = 1, answer: bool = True) -> dict[str, Any]:
    return {
        'question_type': 'true_false',
        'text': 'The statement is true',
        'points': points,
        'options': [{'text': 'True', 'is_correct': answer}, {'text': 'False', 'is_correct': not answer}],
    }


def short_answer(points: float = 2, keywords: tuple[str, ...] = ('recursion',), case_sensitive: bool = False) -> dict[str, Any]:
    return {
        'question_type': 'short_answer',
        'text': 'Which technique did you use?',
        'points': points,
        'expected_keywords': list(keywords),
        'case_sensitive': case_sensitive,
    }


def essay(points: float = 10, max_words: int = 100) -> dict[str, Any]:
    return {
        'question_type': 'essay',
        'text': 'Discuss the trade-offs',
        'points': points,
        'max_words': max_words,
    }


def make_assessment(
    db: Session,
    questions: list[dict[str, Any]],
    *,
    publish: bool = True,
    **fields: Any,
) -> Assessment:
    payload = AssessmentCreate(title=fields.pop('title', 'Data Structures Midterm'), questions=questions, **fields)
    assessment = assessment_service.create_assessment(db, payload=payload, actor_user_id=FACULTY_ID)
    if publish:
        assessment_service.publish_assessment(db, assessment, actor_user_id=FACULTY_ID)
    db.commit()
    return assessment


def create_assessment_via_api(client: TestClient, questions: list[dict[str, Any]], **fields: Any) -> dict[str, Any]:
    response = client.post(
        '/api/v1/assessments',
        headers=faculty_headers(),
        json={'title': 'Algorithms Quiz', 'questions': questions, **fields},
    )
    assert response.status_code == 201, response.text
    payload = response.json()

    published = client.post(f"/api/v1/assessments/{payload['id']}/publish", headers=faculty_headers())
    assert published.status_code == 200, published.text
    return published.json()

from pathlib import Path
import os
import shutil
import tempfile
import uuid
import pytest

# Point the app at a throwaway database and storage root before it is imported.
_TEST_ROOT = Path(tempfile.mkdtemp(prefix="literacy-tests-"))
os.environ["DATABASE_URL"] = f"sqlite:///{_TEST_ROOT / 'test.db'}"
os.environ["STORAGE_DIR"] = str(_TEST_ROOT / "storage")
os.environ["CREATE_RATE_LIMIT_PER_MIN"] = "1000"
os.environ["LOGIN_RATE_LIMIT_PER_MIN"] = "1000"


@pytest.fixture(scope="session", autouse=True)
def reset_storage():
    """Remove the temporary database and storage once the run finishes."""
    yield
    shutil.rmtree(_TEST_ROOT, ignore_errors=True)


@pytest.fixture
def register_user():
    """Return a helper that registers a fresh account and returns auth headers."""
    from fastapi.testclient import TestClient
    from literacy_practice.main import app

    client = TestClient(app)

    def _register(first_name="Test", last_name="Student"):
        email = f"student-{uuid.uuid4().hex[:10]}@example.com"
        r = client.post('/auth/register', json={
            'email': email,
            'password': 'password123',
            'confirm_password': 'password123',
            'first_name': first_name,
            'last_name': last_name,
        })
        assert r.status_code == 201, r.text
        login = client.post('/auth/login', json={'email': email, 'password': 'password123'})
        assert login.status_code == 200, login.text
        return {'Authorization': f"Bearer {login.json()['access_token']}"}, r.json()['id']

    return _register


@pytest.fixture
def make_content():
    """Return a helper that inserts practice content with raw question rows."""
    from sqlmodel import Session
    from literacy_practice.database import engine
    from literacy_practice import models

    def _make(title=None, questions=(), **fields):
        with Session(engine) as session:
            content = models.PracticeContent(
                title=title or f"Passage {uuid.uuid4().hex[:8]}",
                description=fields.pop('description', 'A short reading passage.'),
                question_type=fields.pop('question_type', 'multiple-choice'),
                **fields,
            )
            session.add(content)
            session.commit()
            session.refresh(content)
            for row in questions:
                session.add(models.Question(practice_content_id=content.id, **row))
            session.commit()
            return content.id

    return _make

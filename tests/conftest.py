import os

import pytest

from app import create_app
from errors import StoreError, StoreUnavailable
from quiz_state import QuizController, SessionState

TODAY = "2024-03-05"
QUESTIONS_ROOT = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "static")


class FakeStore:
    """In-memory stand-in for ResultStore used by the controller tests."""

    def __init__(self, configured=True, fail=False):
        self.configured = configured
        self.fail = fail
        self.saved = []
        self.rows = []

    def is_configured(self):
        return self.configured

    def list(self):
        if not self.configured:
            raise StoreUnavailable()
        if self.fail:
            raise StoreError("connection refused")
        return list(self.rows)

    def upsert(self, name, date, subject, correct, incorrect):
        if not self.configured:
            raise StoreUnavailable()
        if self.fail:
            raise StoreError("connection refused")
        self.saved.append((name, date, subject, correct, incorrect))


@pytest.fixture
def fake_store():
    return FakeStore()


@pytest.fixture
def controller(fake_store):
    return QuizController(SessionState(), fake_store, QUESTIONS_ROOT, today=lambda: TODAY)


@pytest.fixture
def app(tmp_path):
    return create_app(
        database_url=f"sqlite:///{tmp_path / 'results.db'}",
        config={"TESTING": True, "SECRET_KEY": "test-secret", "TODAY": lambda: TODAY},
    )


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def store(app):
    with app.app_context():
        yield app.extensions["result_store"]

import uuid

import pytest
from fastapi.testclient import TestClient

from elearn_quiz.core.config import get_settings
from elearn_quiz.core.security import create_access_token
from elearn_quiz.db.database import SessionLocal
from elearn_quiz.db.models import Option, Question, Quiz, User
from elearn_quiz.main import create_app


@pytest.fixture(scope="session")
def app(tmp_path_factory):
    """
    Application avec une base SQLite temporaire (isolée) et des secrets de test.
    """
    tmp_db = tmp_path_factory.mktemp("db") / "quiz_test.db"
    with pytest.MonkeyPatch.context() as mp:
        mp.setenv("APP_ENV", "test")
        mp.setenv("APP_NAME", "ELEARN QUIZ API (tests)")
        mp.setenv("DATABASE_URL", f"sqlite:///{tmp_db}")
        mp.setenv("CORS_ORIGINS", "http://localhost")
        mp.setenv("AUTH_JWT_SECRET", "test-auth-secret")
        mp.setenv("QUIZ_TOKEN_SECRET", "test-quiz-secret")
        mp.setenv("QUIZ_TOKEN_GRACE_SECONDS", "120")
        mp.setenv("ATTEMPT_HISTORY_LIMIT", "0")

        # IMPORTANT: vider le cache des settings pour prendre en compte les env
        get_settings.cache_clear()
        yield create_app()

    get_settings.cache_clear()


@pytest.fixture(scope="session")
def test_client(app):
    return TestClient(app)


@pytest.fixture
def db(app):
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_user(db):
    def _make(username: str = "student", role: str = "STUDENT"):
        user = User(id=f"u_{uuid.uuid4().hex[:10]}", username=username, role=role)
        db.add(user)
        db.commit()
        headers = {"Authorization": f"Bearer {create_access_token(user.id, role)}"}
        return user, headers

    return _make


@pytest.fixture
def make_quiz(db):
    """
    Quiz de test : n questions, 3 options chacune, la bonne en position 1
    (le mélange à l'émission doit donc la déplacer de temps en temps).
    """

    def _make(n_questions: int = 2, duration_sec: int = 90, published: bool = True, i18n: bool = False):
        prefix = uuid.uuid4().hex[:8]
        quiz = Quiz(
            id=f"quiz_{prefix}",
            title="Bases de Python",
            title_json={"EN": "Python basics", "UA": "Основи Python"} if i18n else None,
            duration_sec=duration_sec,
            published=published,
        )
        for i in range(n_questions):
            q = Question(
                id=f"{prefix}_q{i + 1}",
                position=i,
                text=f"Question {i + 1}",
                text_json={"EN": f"EN question {i + 1}"} if i18n else None,
                explanation=f"Explication {i + 1}",
                explanation_json={"EN": f"EN explanation {i + 1}"} if i18n else None,
            )
            for j in range(3):
                q.options.append(
                    Option(
                        id=f"{prefix}_q{i + 1}_o{j + 1}",
                        position=j,
                        text=f"Option {j + 1}",
                        text_json={"EN": f"EN option {j + 1}"} if i18n else None,
                        correct=(j == 1),
                    )
                )
            quiz.questions.append(q)
        db.add(quiz)
        db.commit()
        return quiz

    return _make


def correct_option(quiz: Quiz, question_index: int) -> str:
    return f"{quiz.questions[question_index].id}_o2"


def wrong_option(quiz: Quiz, question_index: int) -> str:
    return f"{quiz.questions[question_index].id}_o1"

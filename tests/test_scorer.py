import pytest
from conftest import correct_option

from elearn_quiz.core.errors import Forbidden, NotFound, Unauthorized
from elearn_quiz.db.models import QuizAttempt, UsedQuizToken
from elearn_quiz.services.quiz_issuer import QuizIssuer, shuffle_options
from elearn_quiz.services.quiz_token import QuizTokenService
from elearn_quiz.services.scorer import AttemptScorer


class FakeClock:
    def __init__(self, now: float = 1_700_000_000):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def tokens(clock):
    return QuizTokenService("scorer-secret", grace_seconds=120, clock=clock)


@pytest.fixture
def issuer(tokens):
    return QuizIssuer(tokens)


@pytest.fixture
def scorer(tokens):
    return AttemptScorer(tokens, xp_per_correct=10)


def test_shuffle_is_deterministic_for_a_seed(make_quiz):
    quiz = make_quiz(n_questions=3)
    assert shuffle_options(quiz, 7) == shuffle_options(quiz, 7)
    for q in quiz.questions:
        assert sorted(shuffle_options(quiz, 7)[q.id]) == sorted(o.id for o in q.options)


def test_submit_before_deadline_plus_grace_is_accepted(db, make_user, make_quiz, issuer, scorer, clock):
    user, _ = make_user()
    quiz = make_quiz(n_questions=1, duration_sec=60)
    served = issuer.get_quiz(db, quiz.id, user.id)

    clock.now += 60 + 120
    res = scorer.submit(
        db,
        quiz_id=quiz.id,
        user_id=user.id,
        token=served.token,
        answers=[{"questionId": quiz.questions[0].id, "optionId": correct_option(quiz, 0)}],
    )
    assert res.correct_count == 1


def test_submit_after_deadline_is_forbidden(db, make_user, make_quiz, issuer, scorer, clock):
    user, _ = make_user()
    quiz = make_quiz(duration_sec=60)
    served = issuer.get_quiz(db, quiz.id, user.id)

    clock.now += 60 + 121
    with pytest.raises(Forbidden) as exc:
        scorer.submit(db, quiz_id=quiz.id, user_id=user.id, token=served.token, answers=[])
    assert "Temps" in exc.value.message
    assert db.query(QuizAttempt).filter(QuizAttempt.user_id == user.id).count() == 0


def test_signature_is_checked_before_ownership_and_expiry(db, make_user, make_quiz, issuer, scorer, clock):
    user, _ = make_user()
    quiz = make_quiz()
    other_service = QuizTokenService("another-secret", clock=clock)
    token, _ = other_service.issue(quiz_id=quiz.id, user_id="someone-else", duration_sec=1, seed=1, order={})

    clock.now += 10_000
    with pytest.raises(Unauthorized):
        scorer.submit(db, quiz_id=quiz.id, user_id=user.id, token=token, answers=[])


def test_ownership_is_checked_before_expiry(db, make_user, make_quiz, issuer, scorer, clock):
    alice, _ = make_user("alice")
    bob, _ = make_user("bob")
    quiz = make_quiz(duration_sec=10)
    served = issuer.get_quiz(db, quiz.id, alice.id)

    clock.now += 10_000
    with pytest.raises(Forbidden) as exc:
        scorer.submit(db, quiz_id=quiz.id, user_id=bob.id, token=served.token, answers=[])
    assert "correspond" in exc.value.message


def test_quiz_unpublished_between_issue_and_submit_is_not_found(db, make_user, make_quiz, issuer, scorer):
    user, _ = make_user()
    quiz = make_quiz()
    served = issuer.get_quiz(db, quiz.id, user.id)

    quiz.published = False
    db.commit()

    with pytest.raises(NotFound):
        scorer.submit(db, quiz_id=quiz.id, user_id=user.id, token=served.token, answers=[])


def test_issue_of_unknown_quiz_is_not_found(db, make_user, issuer):
    user, _ = make_user()
    with pytest.raises(NotFound):
        issuer.get_quiz(db, "missing", user.id)


def test_concurrent_duplicate_loses_at_commit(db, app, make_user, make_quiz, issuer, scorer, monkeypatch):
    """
    Deux submits passent le contrôle rapide en même temps : le second bute sur
    la clé primaire de UsedQuizToken et ne crée aucune tentative.
    """
    from elearn_quiz.db.database import SessionLocal

    user, _ = make_user()
    quiz = make_quiz(n_questions=1)
    served = issuer.get_quiz(db, quiz.id, user.id)
    answers = [{"questionId": quiz.questions[0].id, "optionId": correct_option(quiz, 0)}]

    first = scorer.submit(db, quiz_id=quiz.id, user_id=user.id, token=served.token, answers=answers)
    assert first.correct_count == 1

    late = SessionLocal()
    try:
        real_get = late.get
        seen = {"used_token_lookups": 0}

        def racing_get(entity, ident, **kw):
            if entity is UsedQuizToken:
                seen["used_token_lookups"] += 1
                if seen["used_token_lookups"] == 1:
                    return None  # l'autre requête n'a pas encore commité
            return real_get(entity, ident, **kw)

        monkeypatch.setattr(late, "get", racing_get)
        with pytest.raises(Forbidden):
            scorer.submit(late, quiz_id=quiz.id, user_id=user.id, token=served.token, answers=answers)
    finally:
        late.close()

    db.expire_all()
    assert db.query(QuizAttempt).filter(QuizAttempt.user_id == user.id).count() == 1


def test_server_history_limit_prunes_oldest(db, make_user, make_quiz, tokens, issuer):
    user, _ = make_user()
    quiz = make_quiz(n_questions=1)
    capped = AttemptScorer(tokens, history_limit=2)

    for _ in range(4):
        served = issuer.get_quiz(db, quiz.id, user.id)
        capped.submit(db, quiz_id=quiz.id, user_id=user.id, token=served.token, answers=[])

    assert db.query(QuizAttempt).filter(QuizAttempt.user_id == user.id).count() == 2
    # les tokens consommés restent invalidés même quand la tentative est purgée
    assert db.query(UsedQuizToken).filter(UsedQuizToken.user_id == user.id).count() == 4


def test_first_submits_of_the_day_racing_on_the_counter_both_count(db, make_user, make_quiz, issuer, scorer, monkeypatch):
    from elearn_quiz.services import activity

    user, _ = make_user()
    quiz = make_quiz(n_questions=1)
    answers = [{"questionId": quiz.questions[0].id, "optionId": correct_option(quiz, 0)}]

    first = issuer.get_quiz(db, quiz.id, user.id)
    scorer.submit(db, quiz_id=quiz.id, user_id=user.id, token=first.token, answers=answers)

    real_find = activity._find_row
    lookups = []

    def late_find(session, user_id, day):
        lookups.append(day)
        if len(lookups) == 1:
            return None  # la ligne du jour est créée par l'autre submit
        return real_find(session, user_id, day)

    monkeypatch.setattr(activity, "_find_row", late_find)
    second = issuer.get_quiz(db, quiz.id, user.id)
    result = scorer.submit(db, quiz_id=quiz.id, user_id=user.id, token=second.token, answers=answers)

    assert result.correct_count == 1
    db.expire_all()
    assert db.query(QuizAttempt).filter(QuizAttempt.user_id == user.id).count() == 2
    rows = activity.recent_activity(db, user.id, days=1)
    assert [r.quiz_attempts for r in rows] == [2]

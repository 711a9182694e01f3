import asyncio

import httpx
import pytest
from conftest import correct_option

from elearn_quiz.client.api import QuizApiClient, QuizApiError, parse_submit_result
from elearn_quiz.client.session import QuizMode, QuizSession, SessionContext
from elearn_quiz.client.storage import MemoryStore


def test_full_exam_session_against_the_api(app, make_user, make_quiz):
    _, headers = make_user()
    access_token = headers["Authorization"].split()[1]
    quiz = make_quiz(n_questions=2, duration_sec=90)

    async def scenario():
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
            api = QuizApiClient("http://test", access_token, client=http)
            served = await api.fetch_quiz(quiz.id)

            session = QuizSession(SessionContext(store=MemoryStore(), submit=api.submitter()), mode=QuizMode.exam)
            session.load(served)
            for i, q in enumerate(served.questions):
                session.select_option(q.id, correct_option(quiz, i))
                await session.advance()

            assert session.finished
            assert session.score == 2
            assert len(session.correct_map) == len(session.explanation_map) == 2
            assert session.attempt_history[0].quizId == quiz.id

            # même token rejoué après reset : refusé par le serveur
            session.reset()
            with pytest.raises(QuizApiError) as exc:
                await session.finish(True)
            assert exc.value.code == "FORBIDDEN"
            assert exc.value.status == 403

            history = await api.history()
            assert history.pagination.total == 1
            assert history.data[0].correct == 2

    asyncio.run(scenario())


def test_error_envelope_is_mapped_to_api_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            401,
            json={"success": False, "error": {"code": "UNAUTHORIZED", "message": "Quiz token invalide."}},
        )

    async def scenario():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://test") as http:
            api = QuizApiClient("http://test", "t", client=http)
            with pytest.raises(QuizApiError) as exc:
                await api.submit_attempt("quiz_1", "bad", [])
            assert (exc.value.code, exc.value.status, exc.value.message) == (
                "UNAUTHORIZED",
                401,
                "Quiz token invalide.",
            )

    asyncio.run(scenario())


def test_network_failure_is_reported_as_api_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async def scenario():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://test") as http:
            api = QuizApiClient("http://test", "t", client=http)
            with pytest.raises(QuizApiError) as exc:
                await api.fetch_quiz("quiz_1")
            assert exc.value.code == "NETWORK_ERROR"

    asyncio.run(scenario())


def test_requests_carry_bearer_and_lang():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers.get("authorization")
        seen["lang"] = request.url.params.get("lang")
        return httpx.Response(200, json={"id": "quiz_1", "title": "T", "durationSec": 30, "questions": [], "token": "x"})

    async def scenario():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://test") as http:
            quiz = await QuizApiClient("http://test", "abc", client=http).fetch_quiz("quiz_1", lang="PL")
            assert quiz.durationSec == 30

    asyncio.run(scenario())
    assert seen == {"auth": "Bearer abc", "lang": "PL"}


def test_legacy_correct_ids_field_is_read_as_fallback():
    res = parse_submit_result({"correct": 1, "correctIds": {"q1": "o2"}, "solutions": {"q1": "x"}})
    assert res.correctMap == {"q1": "o2"}

    res = parse_submit_result({"correct": 1, "correctMap": {"q1": "o3"}, "correctIds": {"q1": "o2"}})
    assert res.correctMap == {"q1": "o3"}
    assert res.solutions == {}

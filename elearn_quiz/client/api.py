"""Client HTTP de l'API quiz (httpx, async)."""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx

from elearn_quiz.client.config import ClientSettings, get_client_settings
from elearn_quiz.models.quiz import HistoryOut, QuizOut, SubmitOut

logger = logging.getLogger(__name__)

Submitter = Callable[[str, str, List[Dict[str, str]]], Awaitable[SubmitOut]]


class QuizApiError(Exception):
    def __init__(self, code: str, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.status = status

    def __repr__(self) -> str:
        return f"QuizApiError(code={self.code!r}, status={self.status!r}, message={self.message!r})"


def parse_submit_result(data: Dict[str, Any]) -> SubmitOut:
    """
    `correctMap` est le champ canonique ; `correctIds` (ancien nom) n'est lu
    qu'en repli quand correctMap est absent.
    """
    data = dict(data or {})
    if "correctMap" not in data and isinstance(data.get("correctIds"), dict):
        data["correctMap"] = data["correctIds"]
    data.setdefault("correct", 0)
    data.setdefault("correctMap", {})
    data.setdefault("solutions", {})
    data.setdefault("total", 0)
    data.setdefault("xpEarned", 0)
    return SubmitOut.model_validate(data)


class QuizApiClient:
    def __init__(
        self,
        base_url: str,
        access_token: str,
        *,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=base_url.rstrip("/"), timeout=timeout)
        self._headers = {"Authorization": f"Bearer {access_token}"}

    @classmethod
    def from_settings(cls, access_token: str, settings: Optional[ClientSettings] = None) -> "QuizApiClient":
        settings = settings or get_client_settings()
        return cls(settings.QUIZ_API_BASE_URL, access_token, timeout=settings.QUIZ_API_TIMEOUT)

    async def __aenter__(self) -> "QuizApiClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # ---------- endpoints ----------

    async def fetch_quiz(self, quiz_id: str, lang: Optional[str] = None) -> QuizOut:
        params = {"lang": lang} if lang else None
        data = await self._request("GET", f"/quiz/{quiz_id}", params=params)
        return QuizOut.model_validate(data)

    async def submit_attempt(
        self,
        quiz_id: str,
        token: str,
        answers: List[Dict[str, str]],
        lang: Optional[str] = None,
    ) -> SubmitOut:
        body: Dict[str, Any] = {"token": token, "answers": answers}
        if lang:
            body["lang"] = lang
        data = await self._request("POST", f"/quiz/{quiz_id}/submit", json=body)
        return parse_submit_result(data)

    async def history(self, page: int = 1, limit: int = 5, lang: Optional[str] = None) -> HistoryOut:
        params: Dict[str, Any] = {"page": page, "limit": limit}
        if lang:
            params["lang"] = lang
        data = await self._request("GET", "/quiz/user/history", params=params)
        return HistoryOut.model_validate(data)

    def submitter(self, lang: Optional[str] = None) -> Submitter:
        """Adaptateur pour SessionContext.submit."""

        async def _submit(quiz_id: str, token: str, answers: List[Dict[str, str]]) -> SubmitOut:
            return await self.submit_attempt(quiz_id, token, answers, lang=lang)

        return _submit

    # ---------- internals ----------

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            resp = await self._client.request(method, path, headers=self._headers, **kwargs)
        except httpx.TimeoutException:
            logger.error("Timeout calling %s %s", method, path)
            raise QuizApiError("TIMEOUT", "Le serveur ne répond pas.")
        except httpx.RequestError as e:
            logger.error("Error calling %s %s (%s)", method, path, e)
            raise QuizApiError("NETWORK_ERROR", "Serveur injoignable.")

        if resp.status_code >= 400:
            raise self._error_from(resp)
        return resp.json()

    @staticmethod
    def _error_from(resp: httpx.Response) -> QuizApiError:
        code, message = "HTTP_ERROR", resp.reason_phrase or f"HTTP {resp.status_code}"
        try:
            err = resp.json().get("error") or {}
            code = err.get("code") or code
            message = err.get("message") or message
        except (ValueError, AttributeError):
            pass
        return QuizApiError(code, message, status=resp.status_code)

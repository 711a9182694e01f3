from __future__ import annotations

import time
from dataclasses import asdict, dataclass
from typing import List

from elearn_quiz.client.storage import QUIZ_HISTORY_KEY, LocalStore, safe_get_json, safe_set_json

DEFAULT_HISTORY_LIMIT = 10


@dataclass(frozen=True)
class LocalAttempt:
    quizId: str
    score: int
    total: int
    ts: int  # epoch ms

    @classmethod
    def from_dict(cls, raw: dict) -> "LocalAttempt":
        return cls(
            quizId=str(raw["quizId"]),
            score=int(raw.get("score", 0)),
            total=int(raw.get("total", 0)),
            ts=int(raw.get("ts", 0)),
        )


class AttemptHistory:
    """Historique local plafonné, plus récent d'abord."""

    def __init__(self, store: LocalStore, limit: int = DEFAULT_HISTORY_LIMIT) -> None:
        self._store = store
        self.limit = limit

    def load(self) -> List[LocalAttempt]:
        raw = safe_get_json(self._store, QUIZ_HISTORY_KEY, [])
        if not isinstance(raw, list):
            return []
        out: List[LocalAttempt] = []
        for item in raw:
            try:
                out.append(LocalAttempt.from_dict(item))
            except (KeyError, TypeError, ValueError):
                continue
        return out[: self.limit]

    def record(self, quiz_id: str, score: int, total: int, ts: int | None = None) -> List[LocalAttempt]:
        attempt = LocalAttempt(
            quizId=quiz_id,
            score=score,
            total=total,
            ts=ts if ts is not None else int(time.time() * 1000),
        )
        items = [attempt, *self.load()][: self.limit]
        safe_set_json(self._store, QUIZ_HISTORY_KEY, [asdict(a) for a in items])
        return items

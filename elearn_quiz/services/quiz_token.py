"""
Quiz tokens : payload structuré signé (JWT HS256).

Le token lie une émission de quiz à un utilisateur et à une échéance, et
transporte l'ordre exact des options servi au client. Le scorer s'appuie
uniquement sur cet ordre signé pour relire les réponses.
"""

import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Callable, Dict, List

import jwt

from elearn_quiz.core.errors import Unauthorized

logger = logging.getLogger(__name__)

TOKEN_TYPE = "quiz"
ALGORITHM = "HS256"
_REQUIRED_CLAIMS = ["typ", "jti", "quizId", "sub", "iat", "exp", "dur", "seed", "order"]


@dataclass
class QuizTokenClaims:
    jti: str
    quiz_id: str
    user_id: str
    issued_at: int
    expires_at: int
    duration_sec: int
    seed: int
    order: Dict[str, List[str]] = field(default_factory=dict)  # questionId -> optionIds (ordre servi)

    def to_payload(self) -> dict:
        return {
            "typ": TOKEN_TYPE,
            "jti": self.jti,
            "quizId": self.quiz_id,
            "sub": self.user_id,
            "iat": self.issued_at,
            "exp": self.expires_at,
            "dur": self.duration_sec,
            "seed": self.seed,
            "order": self.order,
        }

    @classmethod
    def from_payload(cls, payload: dict) -> "QuizTokenClaims":
        order = payload["order"]
        if not isinstance(order, dict) or not all(
            isinstance(k, str) and isinstance(v, list) and all(isinstance(o, str) for o in v)
            for k, v in order.items()
        ):
            raise ValueError("order malformé")
        return cls(
            jti=str(payload["jti"]),
            quiz_id=str(payload["quizId"]),
            user_id=str(payload["sub"]),
            issued_at=int(payload["iat"]),
            expires_at=int(payload["exp"]),
            duration_sec=int(payload["dur"]),
            seed=int(payload["seed"]),
            order=order,
        )


class QuizTokenService:
    def __init__(
        self,
        secret: str,
        grace_seconds: int = 120,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._secret = secret
        self.grace_seconds = grace_seconds
        self._clock = clock

    def now(self) -> int:
        return int(self._clock())

    def issue(
        self,
        *,
        quiz_id: str,
        user_id: str,
        duration_sec: int,
        seed: int,
        order: Dict[str, List[str]],
    ) -> tuple[str, QuizTokenClaims]:
        issued_at = self.now()
        claims = QuizTokenClaims(
            jti=uuid.uuid4().hex,
            quiz_id=str(quiz_id),
            user_id=str(user_id),
            issued_at=issued_at,
            expires_at=issued_at + int(duration_sec) + self.grace_seconds,
            duration_sec=int(duration_sec),
            seed=seed,
            order=order,
        )
        token = jwt.encode(claims.to_payload(), self._secret, algorithm=ALGORITHM)
        return token, claims

    def verify(self, token: str | None) -> QuizTokenClaims:
        """
        Signature + structure uniquement. L'expiration est vérifiée à part
        (après le contrôle de propriété) via is_expired().
        """
        if not token:
            raise Unauthorized("Quiz token manquant.")
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[ALGORITHM],
                options={"verify_exp": False, "verify_iat": False, "require": _REQUIRED_CLAIMS},
            )
            if payload.get("typ") != TOKEN_TYPE:
                raise ValueError("typ inattendu")
            return QuizTokenClaims.from_payload(payload)
        except (jwt.InvalidTokenError, ValueError, TypeError, KeyError) as e:
            logger.warning("Quiz token verification failed: %s", e)
            raise Unauthorized("Quiz token invalide.")

    def is_expired(self, claims: QuizTokenClaims) -> bool:
        return self.now() > claims.expires_at

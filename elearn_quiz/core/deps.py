import logging

import jwt
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import select
from sqlalchemy.orm import Session

from elearn_quiz.core.config import get_settings
from elearn_quiz.core.errors import Unauthorized
from elearn_quiz.core.security import decode_token
from elearn_quiz.db.database import get_db
from elearn_quiz.db.models import User
from elearn_quiz.services.quiz_issuer import QuizIssuer
from elearn_quiz.services.quiz_token import QuizTokenService
from elearn_quiz.services.scorer import AttemptScorer

logger = logging.getLogger(__name__)

bearer = HTTPBearer(auto_error=False)


def get_current_user(
    creds: HTTPAuthorizationCredentials | None = Depends(bearer),
    db: Session = Depends(get_db),
) -> User:
    """
    Identité fournie par le service d'auth : on fait confiance à la signature,
    on ne revalide pas les identifiants.
    """
    if not creds:
        raise Unauthorized("Token manquant.")

    try:
        payload = decode_token(creds.credentials)
        user_id = str(payload["sub"])
    except (jwt.InvalidTokenError, KeyError):
        raise Unauthorized("Token invalide.")

    user = db.execute(select(User).where(User.id == user_id)).scalar_one_or_none()
    if not user:
        raise Unauthorized("Utilisateur introuvable.")
    return user


def get_token_service() -> QuizTokenService:
    settings = get_settings()
    return QuizTokenService(
        secret=settings.QUIZ_TOKEN_SECRET,
        grace_seconds=settings.QUIZ_TOKEN_GRACE_SECONDS,
    )


def get_quiz_issuer(tokens: QuizTokenService = Depends(get_token_service)) -> QuizIssuer:
    return QuizIssuer(tokens)


def get_attempt_scorer(tokens: QuizTokenService = Depends(get_token_service)) -> AttemptScorer:
    settings = get_settings()
    return AttemptScorer(
        tokens,
        xp_per_correct=settings.XP_PER_CORRECT,
        history_limit=settings.ATTEMPT_HISTORY_LIMIT,
    )

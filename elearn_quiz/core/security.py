from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import jwt

from elearn_quiz.core.config import get_settings


def create_access_token(user_id: str, role: str = "STUDENT", expires_minutes: int = 60) -> str:
    """
    Émet un access token au format du service d'auth.
    Utilisé par les tests et les outils de dev ; en prod c'est le service d'auth qui signe.
    """
    settings = get_settings()
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "role": role,
        "iat": now,
        "exp": now + timedelta(minutes=expires_minutes),
    }
    return jwt.encode(payload, settings.AUTH_JWT_SECRET, algorithm=settings.AUTH_JWT_ALGORITHM)


def decode_token(token: str) -> Dict[str, Any]:
    """
    Vérifie la signature + l'expiration d'un access token.
    Lève jwt.InvalidTokenError si invalide.
    """
    settings = get_settings()
    return jwt.decode(token, settings.AUTH_JWT_SECRET, algorithms=[settings.AUTH_JWT_ALGORITHM])

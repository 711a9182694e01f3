from functools import lru_cache
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Base
    APP_ENV: str = "dev"  # dev | staging | prod
    APP_NAME: str = "ELEARN QUIZ API"
    APP_VERSION: str = "0.1.0"

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"

    # Database
    DATABASE_URL: str = "sqlite:///./elearn_quiz.db"

    # Security
    # secret des access tokens émis par le service d'auth (externe)
    AUTH_JWT_SECRET: str = "change_me"
    AUTH_JWT_ALGORITHM: str = "HS256"

    # Quiz tokens
    QUIZ_TOKEN_SECRET: str = "change_me_too"
    QUIZ_TOKEN_GRACE_SECONDS: int = 120  # latence réseau + décalage d'horloge

    # Scoring
    XP_PER_CORRECT: int = 10
    ATTEMPT_HISTORY_LIMIT: int = 0  # 0 = illimité

    # Logging
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache
def get_settings() -> Settings:
    return Settings()

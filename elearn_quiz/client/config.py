from functools import lru_cache
from pydantic_settings import BaseSettings


class ClientSettings(BaseSettings):
    QUIZ_API_BASE_URL: str = "http://localhost:8000"
    QUIZ_API_TIMEOUT: float = 10.0

    # stockage local (progression + historique)
    QUIZ_STORAGE_PATH: str = "./.quiz_store"
    QUIZ_HISTORY_LIMIT: int = 10
    QUIZ_LOW_TIME_SECONDS: int = 15

    class Config:
        env_prefix = "ELEARN_"
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


@lru_cache
def get_client_settings() -> ClientSettings:
    return ClientSettings()

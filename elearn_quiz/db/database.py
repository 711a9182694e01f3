from __future__ import annotations

from typing import Iterator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker


class Base(DeclarativeBase):
    pass


engine: Optional[Engine] = None
SessionLocal = sessionmaker(autoflush=False, expire_on_commit=False)


def configure_engine(database_url: str) -> Engine:
    """
    (Re)crée l'engine et lie SessionLocal dessus.
    Appelé par create_app() ; les tests pointent vers une base SQLite temporaire.
    """
    global engine

    connect_args = {}
    if database_url.startswith("sqlite"):
        # TestClient / uvicorn : sessions servies depuis d'autres threads
        connect_args["check_same_thread"] = False

    if engine is not None:
        engine.dispose()
    engine = create_engine(database_url, connect_args=connect_args, future=True)
    SessionLocal.configure(bind=engine)
    return engine


def init_db() -> None:
    from elearn_quiz.db import models  # noqa: F401  (charge les modèles)

    if engine is None:
        raise RuntimeError("engine non configuré (configure_engine)")
    Base.metadata.create_all(bind=engine)


def get_db() -> Iterator[Session]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

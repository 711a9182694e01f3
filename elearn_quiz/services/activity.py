from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from elearn_quiz.db.models import UserActivity

logger = logging.getLogger(__name__)

COUNTER_FIELDS = ("quiz_attempts", "materials_viewed", "time_spent", "goals_completed")


def increment_daily_counter(
    db: Session,
    *,
    user_id: str,
    field: str,
    amount: int = 1,
    day: Optional[date] = None,
    commit: bool = True,
) -> UserActivity:
    """
    Incrémente un compteur du jour (ligne créée à la volée).
    commit=False : l'appelant garde la main sur la transaction (scorer).
    """
    if field not in COUNTER_FIELDS:
        raise ValueError(f"Compteur inconnu: {field}")

    day = day or date.today()
    row = _find_row(db, user_id, day)
    if row is None:
        row = _create_row(db, user_id, day)

    setattr(row, field, int(getattr(row, field) or 0) + int(amount))

    if commit:
        db.commit()
        db.refresh(row)
    else:
        db.flush()
    return row


def _find_row(db: Session, user_id: str, day: date) -> Optional[UserActivity]:
    return db.execute(
        select(UserActivity).where(UserActivity.user_id == user_id, UserActivity.day == day)
    ).scalar_one_or_none()


def _create_row(db: Session, user_id: str, day: date) -> UserActivity:
    row = UserActivity(
        user_id=user_id,
        day=day,
        time_spent=0,
        quiz_attempts=0,
        materials_viewed=0,
        goals_completed=0,
    )
    try:
        with db.begin_nested():
            db.add(row)
    except IntegrityError:
        # premier compteur du jour écrit en parallèle par une autre requête
        logger.info("daily activity row already created (user=%s, day=%s)", user_id, day)
        row = _find_row(db, user_id, day)
        if row is None:
            raise
    return row


def recent_activity(db: Session, user_id: str, days: int = 7, today: Optional[date] = None) -> list[UserActivity]:
    today = today or date.today()
    start = today - timedelta(days=days)
    return list(
        db.execute(
            select(UserActivity)
            .where(UserActivity.user_id == user_id, UserActivity.day >= start)
            .order_by(UserActivity.day.asc())
        ).scalars().all()
    )

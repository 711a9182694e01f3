import math
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session, joinedload

from elearn_quiz.db.models import QuizAttempt
from elearn_quiz.models.quiz import HistoryItem, HistoryOut, Pagination
from elearn_quiz.utils.i18n import localize

DEFAULT_LIMIT = 5
MAX_LIMIT = 100


def attempt_history(
    db: Session,
    user_id: str,
    page: int = 1,
    limit: int = DEFAULT_LIMIT,
    lang: Optional[str] = None,
) -> HistoryOut:
    """Historique serveur des tentatives, plus récentes d'abord."""
    limit = max(1, min(MAX_LIMIT, int(limit or DEFAULT_LIMIT)))
    page = max(1, int(page or 1))
    offset = (page - 1) * limit

    attempts = db.execute(
        select(QuizAttempt)
        .where(QuizAttempt.user_id == user_id)
        .options(joinedload(QuizAttempt.quiz))
        .order_by(QuizAttempt.created_at.desc(), QuizAttempt.id.desc())
        .limit(limit)
        .offset(offset)
    ).scalars().all()
    total = db.execute(
        select(func.count()).select_from(QuizAttempt).where(QuizAttempt.user_id == user_id)
    ).scalar_one()

    items = [
        HistoryItem(
            quizId=a.quiz_id,
            quizTitle=localize(a.quiz.title_json, a.quiz.title, lang) if a.quiz else "",
            correct=a.score,
            total=a.total,
            lastAttempt=a.created_at.isoformat(),
        )
        for a in attempts
    ]
    return HistoryOut(
        data=items,
        pagination=Pagination(page=page, limit=limit, total=int(total), totalPages=math.ceil(total / limit)),
    )

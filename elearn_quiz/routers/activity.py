from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from elearn_quiz.core.deps import get_current_user
from elearn_quiz.db.database import get_db
from elearn_quiz.db.models import User
from elearn_quiz.services.activity import recent_activity

router = APIRouter(prefix="/activity", tags=["activity"])


@router.get("/me")
def my_activity(
    days: int = Query(7, ge=1, le=90),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    rows = recent_activity(db, user.id, days=days)
    return {
        "items": [
            {
                "date": r.day.isoformat(),
                "quizAttempts": r.quiz_attempts,
                "materialsViewed": r.materials_viewed,
                "timeSpent": r.time_spent,
                "goalsCompleted": r.goals_completed,
            }
            for r in rows
        ],
        "days": days,
    }

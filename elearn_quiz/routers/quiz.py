from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from elearn_quiz.core.deps import get_attempt_scorer, get_current_user, get_quiz_issuer
from elearn_quiz.db.database import get_db
from elearn_quiz.db.models import User
from elearn_quiz.models.quiz import HistoryOut, QuizOut, SubmitIn, SubmitOut
from elearn_quiz.services.history import DEFAULT_LIMIT, attempt_history
from elearn_quiz.services.quiz_issuer import QuizIssuer
from elearn_quiz.services.scorer import AttemptScorer

router = APIRouter(prefix="/quiz", tags=["quiz"])


# déclaré avant /{quiz_id} pour ne pas être capturé par le path param
@router.get("/user/history", response_model=HistoryOut)
def history(
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_LIMIT, ge=1),
    lang: Optional[str] = None,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return attempt_history(db, user.id, page=page, limit=limit, lang=lang)


@router.get("/{quiz_id}", response_model=QuizOut)
def get_quiz(
    quiz_id: str,
    lang: Optional[str] = None,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    issuer: QuizIssuer = Depends(get_quiz_issuer),
):
    return issuer.get_quiz(db, quiz_id, user.id, lang)


@router.post("/{quiz_id}/submit", response_model=SubmitOut)
def submit_quiz(
    quiz_id: str,
    body: SubmitIn,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    scorer: AttemptScorer = Depends(get_attempt_scorer),
):
    res = scorer.submit(
        db,
        quiz_id=quiz_id,
        user_id=user.id,
        token=body.token,
        answers=body.answers,
        lang=body.lang,
    )
    return SubmitOut(
        correct=res.correct_count,
        total=res.total,
        xpEarned=res.xp_earned,
        correctMap=res.correct_map,
        solutions=res.explanation_map,
    )

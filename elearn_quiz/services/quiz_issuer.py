import logging
import random
import secrets
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from elearn_quiz.core.errors import NotFound
from elearn_quiz.db.models import Quiz, Question
from elearn_quiz.models.quiz import OptionOut, QuestionOut, QuizOut
from elearn_quiz.services.quiz_token import QuizTokenService
from elearn_quiz.utils.i18n import localize

logger = logging.getLogger(__name__)


def load_published_quiz(db: Session, quiz_id: str) -> Optional[Quiz]:
    return db.execute(
        select(Quiz)
        .where(Quiz.id == quiz_id, Quiz.published.is_(True))
        .options(selectinload(Quiz.questions).selectinload(Question.options))
    ).scalar_one_or_none()


def shuffle_options(quiz: Quiz, seed: int) -> Dict[str, List[str]]:
    """
    Ordre des options par question, déterministe pour un seed donné.
    Un seul Random pour tout le quiz : l'ordre dépend aussi de la position des questions.
    """
    rng = random.Random(seed)
    order: Dict[str, List[str]] = {}
    for q in quiz.questions:
        ids = [o.id for o in q.options]
        rng.shuffle(ids)
        order[q.id] = ids
    return order


class QuizIssuer:
    """
    Émission sans état : rien n'est écrit en base, le token signé est le seul état.
    """

    def __init__(self, tokens: QuizTokenService) -> None:
        self._tokens = tokens

    def get_quiz(self, db: Session, quiz_id: str, user_id: str, lang: Optional[str] = None) -> QuizOut:
        quiz = load_published_quiz(db, quiz_id)
        if not quiz:
            raise NotFound("Quiz introuvable.")

        seed = secrets.randbits(48)
        order = shuffle_options(quiz, seed)
        token, claims = self._tokens.issue(
            quiz_id=quiz.id,
            user_id=user_id,
            duration_sec=quiz.duration_sec,
            seed=seed,
            order=order,
        )
        logger.info("quiz %s issued to user %s (jti=%s, exp=%s)", quiz.id, user_id, claims.jti, claims.expires_at)

        questions: List[QuestionOut] = []
        for q in quiz.questions:
            by_id = {o.id: o for o in q.options}
            questions.append(
                QuestionOut(
                    id=q.id,
                    text=localize(q.text_json, q.text, lang),
                    options=[
                        OptionOut(id=oid, text=localize(by_id[oid].text_json, by_id[oid].text, lang))
                        for oid in order[q.id]
                    ],
                )
            )

        return QuizOut(
            id=quiz.id,
            title=localize(quiz.title_json, quiz.title, lang),
            durationSec=quiz.duration_sec,
            questions=questions,
            token=token,
        )

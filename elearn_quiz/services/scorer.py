import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from elearn_quiz.core.errors import Forbidden, NotFound
from elearn_quiz.db.models import Answer, QuizAttempt, UsedQuizToken, User
from elearn_quiz.services.activity import increment_daily_counter
from elearn_quiz.services.quiz_issuer import load_published_quiz
from elearn_quiz.services.quiz_token import QuizTokenClaims, QuizTokenService
from elearn_quiz.utils.i18n import localize

logger = logging.getLogger(__name__)


@dataclass
class SubmitResult:
    attempt_id: str
    correct_count: int
    total: int
    xp_earned: int
    correct_map: Dict[str, str] = field(default_factory=dict)  # questionId -> optionId correct
    explanation_map: Dict[str, str] = field(default_factory=dict)  # questionId -> explication


def _pairs(answers: Iterable) -> Dict[str, str]:
    """
    Réponses renseignées uniquement ; pour une même question la dernière l'emporte.
    Accepte des dicts ou des objets (AnswerIn).
    """
    out: Dict[str, str] = {}
    for a in answers:
        if isinstance(a, dict):
            qid, oid = a.get("questionId"), a.get("optionId")
        else:
            qid, oid = getattr(a, "questionId", None), getattr(a, "optionId", None)
        if isinstance(qid, str) and qid and isinstance(oid, str) and oid:
            out[qid] = oid
    return out


class AttemptScorer:
    """
    Valide un submit contre son quiz token, score, persiste la tentative.

    Ordre de validation : signature/structure -> propriétaire -> expiration -> existence.
    Chaque échec court-circuite avec son propre type d'erreur.
    """

    def __init__(self, tokens: QuizTokenService, xp_per_correct: int = 10, history_limit: int = 0) -> None:
        self._tokens = tokens
        self.xp_per_correct = xp_per_correct
        self.history_limit = history_limit

    # ---------- public API ----------

    def submit(
        self,
        db: Session,
        *,
        quiz_id: str,
        user_id: str,
        token: Optional[str],
        answers: Iterable,
        lang: Optional[str] = None,
    ) -> SubmitResult:
        claims = self._tokens.verify(token)

        if claims.user_id != str(user_id) or claims.quiz_id != str(quiz_id):
            logger.warning("quiz token mismatch (jti=%s, user=%s, quiz=%s)", claims.jti, user_id, quiz_id)
            raise Forbidden("Quiz token ne correspond pas à ce quiz / cet utilisateur.")

        if self._tokens.is_expired(claims):
            raise Forbidden("Temps imparti dépassé.")

        quiz = load_published_quiz(db, claims.quiz_id)
        if not quiz:
            raise NotFound("Quiz introuvable.")

        # correction complète : toutes les questions, répondues ou non
        correct_map: Dict[str, str] = {}
        explanation_map: Dict[str, str] = {}
        for q in quiz.questions:
            good = next((o for o in q.options if o.correct), None)
            correct_map[q.id] = good.id if good else ""
            explanation_map[q.id] = localize(q.explanation_json, q.explanation or "", lang)

        rows = self._score(claims, _pairs(answers), correct_map)
        correct_count = sum(1 for r in rows if r["is_correct"])
        xp_earned = correct_count * self.xp_per_correct
        total = len(quiz.questions)

        attempt_id = self._persist(
            db,
            claims=claims,
            user_id=str(user_id),
            score=correct_count,
            total=total,
            xp_earned=xp_earned,
            rows=rows,
        )
        logger.info(
            "attempt %s: user %s scored %d/%d on quiz %s", attempt_id, user_id, correct_count, total, quiz.id
        )

        return SubmitResult(
            attempt_id=attempt_id,
            correct_count=correct_count,
            total=total,
            xp_earned=xp_earned,
            correct_map=correct_map,
            explanation_map=explanation_map,
        )

    # ---------- internals ----------

    def _score(self, claims: QuizTokenClaims, answered: Dict[str, str], correct_map: Dict[str, str]) -> List[dict]:
        """
        Seules les options de l'ordre signé sont recevables ; le reste compte faux
        et n'est pas persisté.
        """
        rows: List[dict] = []
        for qid, oid in answered.items():
            served = claims.order.get(qid)
            if served is None or oid not in served:
                logger.info("answer ignored (jti=%s, question=%s, option=%s)", claims.jti, qid, oid)
                continue
            rows.append(
                {
                    "question_id": qid,
                    "option_id": oid,
                    "is_correct": bool(correct_map.get(qid)) and correct_map[qid] == oid,
                }
            )
        return rows

    def _persist(
        self,
        db: Session,
        *,
        claims: QuizTokenClaims,
        user_id: str,
        score: int,
        total: int,
        xp_earned: int,
        rows: List[dict],
    ) -> str:
        """
        Invalidation du token + tentative + réponses + XP + compteur du jour
        dans une seule transaction. Un doublon concurrent bute sur la clé
        primaire de UsedQuizToken.
        """
        if db.get(UsedQuizToken, claims.jti) is not None:
            logger.warning("quiz token replay rejected (jti=%s, user=%s)", claims.jti, user_id)
            raise Forbidden("Quiz token déjà utilisé.")

        try:
            db.add(UsedQuizToken(jti=claims.jti, user_id=user_id, quiz_id=claims.quiz_id))
            db.flush()

            attempt = QuizAttempt(
                user_id=user_id,
                quiz_id=claims.quiz_id,
                score=score,
                total=total,
                xp_earned=xp_earned,
                token_id=claims.jti,
            )
            db.add(attempt)
            db.flush()

            for r in rows:
                db.add(Answer(attempt_id=attempt.id, user_id=user_id, **r))

            user = db.get(User, user_id)
            if user is not None:
                user.xp = int(user.xp or 0) + xp_earned

            increment_daily_counter(db, user_id=user_id, field="quiz_attempts", amount=1, commit=False)

            if self.history_limit > 0:
                self._prune_history(db, user_id)

            db.commit()
        except IntegrityError:
            db.rollback()
            if db.get(UsedQuizToken, claims.jti) is None:
                # conflit sans rapport avec le token
                raise
            logger.warning("quiz token replay rejected at commit (jti=%s, user=%s)", claims.jti, user_id)
            raise Forbidden("Quiz token déjà utilisé.")

        return attempt.id

    def _prune_history(self, db: Session, user_id: str) -> None:
        stale = db.execute(
            select(QuizAttempt.id)
            .where(QuizAttempt.user_id == user_id)
            .order_by(QuizAttempt.created_at.desc(), QuizAttempt.id.desc())
            .offset(self.history_limit)
        ).scalars().all()
        if stale:
            db.execute(delete(Answer).where(Answer.attempt_id.in_(stale)))
            db.execute(delete(QuizAttempt).where(QuizAttempt.id.in_(stale)))

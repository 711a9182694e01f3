"""
Contrôleur de session quiz côté client.

Machine d'états : Idle -> InProgress -> (Reviewing | Submitting) -> Finished.
Toutes les transitions sont synchrones sauf finish(submit=True) qui attend un
seul appel réseau. Le drapeau `finished` est posé avant cet await : un tick du
timer et un submit manuel simultanés ne soumettent qu'une fois.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional

from elearn_quiz.client import events as ev
from elearn_quiz.client.api import Submitter
from elearn_quiz.client.config import ClientSettings, get_client_settings
from elearn_quiz.client.history import DEFAULT_HISTORY_LIMIT, AttemptHistory, LocalAttempt
from elearn_quiz.client.storage import (
    JsonFileStore,
    LocalStore,
    quiz_progress_key,
    safe_get_json,
    safe_remove,
    safe_set_json,
)
from elearn_quiz.client.timer import Countdown, Sleep
from elearn_quiz.models.quiz import QuestionOut, QuizOut, SubmitOut

logger = logging.getLogger(__name__)


class QuizMode(str, Enum):
    practice = "practice"
    exam = "exam"


class SessionState(str, Enum):
    idle = "idle"
    in_progress = "in_progress"
    reviewing = "reviewing"
    submitting = "submitting"
    finished = "finished"


@dataclass
class SessionContext:
    """Tout ce dont la session dépend ; une instance par session (pas d'état global)."""

    store: LocalStore
    submit: Submitter
    events: ev.EventChannel = field(default_factory=ev.EventChannel)
    sleep: Sleep = asyncio.sleep
    clock: Callable[[], float] = time.time
    history_limit: int = DEFAULT_HISTORY_LIMIT
    low_time_seconds: int = 15

    @classmethod
    def from_settings(cls, submit: Submitter, settings: Optional[ClientSettings] = None) -> "SessionContext":
        settings = settings or get_client_settings()
        return cls(
            store=JsonFileStore(settings.QUIZ_STORAGE_PATH),
            submit=submit,
            history_limit=settings.QUIZ_HISTORY_LIMIT,
            low_time_seconds=settings.QUIZ_LOW_TIME_SECONDS,
        )


class QuizSession:
    def __init__(self, ctx: SessionContext, mode: QuizMode = QuizMode.exam) -> None:
        self.ctx = ctx
        self.mode = QuizMode(mode)
        self.history = AttemptHistory(ctx.store, limit=ctx.history_limit)
        self._countdown = Countdown(self._tick, sleep=ctx.sleep)
        self._timer_requested = False
        self._storage_warned = False

        self.quiz: Optional[QuizOut] = None
        self.state = SessionState.idle
        self._reset_state(duration=0)
        self.attempt_history: List[LocalAttempt] = []

    # ---------- lifecycle ----------

    def load(self, quiz: QuizOut) -> bool:
        """
        Entre en InProgress pour ce quiz (+ son token). Reprend la progression
        sauvegardée pour le même quizId si elle existe.
        Refusé (False) tant qu'un submit est en vol.
        """
        if self._submit_in_flight("load"):
            return False
        self._countdown.cancel()
        self.quiz = quiz
        self._reset_state(duration=quiz.durationSec)

        saved = safe_get_json(self.ctx.store, quiz_progress_key(quiz.id), None)
        if isinstance(saved, dict):
            self._restore(saved)

        self.attempt_history = self.history.load()
        self.state = SessionState.in_progress
        self._autosave()
        return True

    def start_timer(self) -> None:
        """Lance le compte à rebours (mode examen uniquement ; à appeler dans une boucle asyncio)."""
        self._timer_requested = True
        if self.mode is QuizMode.exam and self.quiz is not None and not self.finished:
            self._countdown.start()

    def stop(self) -> None:
        """Abandon (navigation) : rien n'est envoyé au serveur, le token expirera seul."""
        self._timer_requested = False
        self._countdown.cancel()

    def reset(self) -> bool:
        """Recommence le même quiz émis (pas de nouveau fetch, même token)."""
        if self.quiz is None or self._submit_in_flight("reset"):
            return False
        self._countdown.cancel()
        self._reset_state(duration=self.quiz.durationSec)
        self.state = SessionState.in_progress
        safe_remove(self.ctx.store, quiz_progress_key(self.quiz.id))
        self._autosave()
        if self._timer_requested:
            self.start_timer()
        return True

    # ---------- operations ----------

    def select_option(self, question_id: str, option_id: str) -> bool:
        if self.state not in (SessionState.in_progress, SessionState.reviewing) or self.quiz is None:
            return False
        if question_id not in self._question_ids:
            return False
        self.selected_map[question_id] = option_id
        self._autosave()
        return True

    async def advance(self) -> None:
        """
        Examen : question suivante, ou soumission sur la dernière.
        Entraînement : 1er appel = affiche l'explication, 2e appel = avance.
        Sans option choisie pour la question courante : rien (skip() pour passer).
        """
        if self.quiz is None or self.finished:
            return
        q = self.current_question
        if q is None or not self.selected_map.get(q.id):
            return

        if self.mode is QuizMode.practice:
            if self.state is SessionState.in_progress:
                self.state = SessionState.reviewing
                return
            if self.state is not SessionState.reviewing:
                return
        elif self.state is not SessionState.in_progress:
            return

        await self._next()

    def skip(self) -> None:
        if self.quiz is None or self.finished:
            return
        if self.current_index >= len(self.quiz.questions) - 1:
            return
        self.state = SessionState.in_progress
        self.current_index += 1
        self._autosave()

    async def finish(self, submit: bool) -> Optional[SubmitOut]:
        """
        Termine la session une seule fois (un 2e appel ne fait rien).
        En cas d'échec du submit : l'erreur est émise sur le canal puis relevée,
        les réponses restent en mémoire ; la progression locale est effacée dans tous les cas.
        """
        if self.quiz is None or self.finished:
            return None
        self.finished = True
        self._countdown.cancel()
        quiz = self.quiz

        result: Optional[SubmitOut] = None
        try:
            if submit:
                self.state = SessionState.submitting
                answers = [
                    {"questionId": q.id, "optionId": self.selected_map[q.id]}
                    for q in quiz.questions
                    if self.selected_map.get(q.id)
                ]
                try:
                    result = await self.ctx.submit(quiz.id, quiz.token, answers)
                except Exception as e:
                    message = getattr(e, "message", None) or str(e) or "Échec de l'envoi."
                    logger.warning("quiz %s submit failed: %s", quiz.id, message)
                    self.ctx.events.emit(ev.ERROR, message, quizId=quiz.id, code=getattr(e, "code", None))
                    raise
                self._apply_result(quiz, result)
        finally:
            safe_remove(self.ctx.store, quiz_progress_key(quiz.id))
            self.state = SessionState.finished

        self.ctx.events.emit(
            ev.FINISHED,
            quizId=quiz.id,
            submitted=submit,
            score=self.score,
            total=len(quiz.questions),
        )
        return result

    # ---------- derived views ----------

    @property
    def current_question(self) -> Optional[QuestionOut]:
        if self.quiz is None or not self.quiz.questions:
            return None
        return self.quiz.questions[min(self.current_index, len(self.quiz.questions) - 1)]

    @property
    def show_explanation(self) -> bool:
        return self.state is SessionState.reviewing

    @property
    def unanswered_count(self) -> int:
        if self.quiz is None:
            return 0
        return sum(1 for q in self.quiz.questions if not self.selected_map.get(q.id))

    @property
    def low_time(self) -> bool:
        return self.mode is QuizMode.exam and self.seconds_remaining <= self.ctx.low_time_seconds

    @property
    def timer_running(self) -> bool:
        return self._countdown.running

    @property
    def countdown_task(self) -> Optional[asyncio.Task]:
        return self._countdown.task

    def progress_snapshot(self) -> Dict[str, object]:
        return {
            "selectedMap": dict(self.selected_map),
            "currentIndex": self.current_index,
            "secondsRemaining": self.seconds_remaining,
        }

    # ---------- internals ----------

    @property
    def _question_ids(self) -> set[str]:
        return {q.id for q in self.quiz.questions} if self.quiz else set()

    def _submit_in_flight(self, action: str) -> bool:
        # le finally de finish() écrirait dans la nouvelle session
        if self.state is SessionState.submitting:
            logger.warning("%s refused: submit in flight for quiz %s", action, self.quiz.id if self.quiz else None)
            return True
        return False

    def _reset_state(self, duration: int) -> None:
        self.current_index = 0
        self.selected_map: Dict[str, str] = {}
        self.seconds_remaining = duration
        self.finished = False
        self.score = 0
        self.correct_map: Dict[str, str] = {}
        self.explanation_map: Dict[str, str] = {}
        self._time_low_emitted = False

    def _restore(self, saved: dict) -> None:
        assert self.quiz is not None
        selected = saved.get("selectedMap")
        if isinstance(selected, dict):
            self.selected_map = {str(k): str(v) for k, v in selected.items() if isinstance(v, str) and v}

        idx = saved.get("currentIndex")
        if isinstance(idx, int) and not isinstance(idx, bool) and 0 <= idx < len(self.quiz.questions):
            self.current_index = idx

        left = saved.get("secondsRemaining")
        # 0 / absent -> durée complète
        if isinstance(left, int) and not isinstance(left, bool) and left > 0:
            self.seconds_remaining = min(left, self.quiz.durationSec)

    def _autosave(self) -> None:
        if self.quiz is None or self.finished:
            return
        ok = safe_set_json(self.ctx.store, quiz_progress_key(self.quiz.id), self.progress_snapshot())
        if not ok and not self._storage_warned:
            self._storage_warned = True
            self.ctx.events.emit(ev.STORAGE_WARNING, "Sauvegarde locale indisponible.", quizId=self.quiz.id)

    async def _next(self) -> None:
        assert self.quiz is not None
        self.state = SessionState.in_progress
        if self.current_index >= len(self.quiz.questions) - 1:
            await self.finish(True)
            return
        self.current_index += 1
        self._autosave()

    async def _tick(self) -> bool:
        if self.finished or self.mode is not QuizMode.exam or self.quiz is None:
            return False

        if self.seconds_remaining <= 1:
            self.seconds_remaining = 0
            try:
                await self.finish(True)
            except Exception as e:
                # déjà signalé sur le canal d'événements
                logger.warning("forced submit on timeout failed: %s", e)
            return False

        self.seconds_remaining -= 1
        if self.low_time and not self._time_low_emitted:
            self._time_low_emitted = True
            self.ctx.events.emit(ev.TIME_LOW, secondsRemaining=self.seconds_remaining, quizId=self.quiz.id)
        self._autosave()
        return True

    def _apply_result(self, quiz: QuizOut, result: SubmitOut) -> None:
        self.score = int(result.correct or 0)
        self.correct_map = dict(result.correctMap or {})
        self.explanation_map = dict(result.solutions or {})
        self.attempt_history = self.history.record(
            quiz.id,
            self.score,
            len(quiz.questions),
            ts=int(self.ctx.clock() * 1000),
        )

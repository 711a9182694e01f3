"""Canal d'événements de session (notifications, toasts) découplé de l'UI."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

FINISHED = "finished"
ERROR = "error"
STORAGE_WARNING = "storage_warning"
TIME_LOW = "time_low"


@dataclass
class SessionEvent:
    kind: str
    message: str = ""
    payload: Dict[str, Any] = field(default_factory=dict)


Listener = Callable[[SessionEvent], None]


class EventChannel:
    def __init__(self) -> None:
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Abonne listener ; renvoie la fonction de désabonnement."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def emit(self, kind: str, message: str = "", **payload: Any) -> SessionEvent:
        event = SessionEvent(kind=kind, message=message, payload=payload)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                # un listener UI défaillant ne doit pas casser la session
                logger.exception("event listener failed (%s)", kind)
        return event

"""
Stockage local côté client (équivalent du localStorage navigateur).

Best-effort : les helpers safe_* ne lèvent jamais, ils loguent un warning et
renvoient une valeur de repli.
"""

import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, Optional, Protocol

logger = logging.getLogger(__name__)

QUIZ_HISTORY_KEY = "quiz_history"


def quiz_progress_key(quiz_id: str) -> str:
    return f"quiz_progress_{quiz_id}"


class LocalStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class MemoryStore:
    def __init__(self) -> None:
        self._items: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove(self, key: str) -> None:
        self._items.pop(key, None)


class JsonFileStore:
    """
    Un fichier JSON par clé dans base_path.
    """

    _SAFE = re.compile(r"[^A-Za-z0-9_.-]")

    def __init__(self, base_path: str = "./.quiz_store"):
        self.base_path = Path(base_path)
        try:
            self.base_path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            # les safe_* dégradent ensuite (warning, valeur de repli)
            logger.warning('Local store "%s" unavailable: %s', base_path, e)

    def _path(self, key: str) -> Path:
        return self.base_path / f"{self._SAFE.sub('_', key)}.json"

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        tmp = path.with_suffix(".tmp")
        tmp.write_text(value, encoding="utf-8")
        tmp.replace(path)

    def remove(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)


def safe_get_json(store: LocalStore, key: str, fallback: Any) -> Any:
    try:
        raw = store.get(key)
        if raw is None:
            return fallback
        return json.loads(raw)
    except (OSError, ValueError) as e:
        logger.warning('Failed to read store key "%s": %s', key, e)
        return fallback


def safe_set_json(store: LocalStore, key: str, value: Any) -> bool:
    try:
        store.set(key, json.dumps(value))
        return True
    except (OSError, TypeError, ValueError) as e:
        logger.warning('Failed to save store key "%s": %s', key, e)
        return False


def safe_remove(store: LocalStore, key: str) -> bool:
    try:
        store.remove(key)
        return True
    except OSError as e:
        logger.warning('Failed to remove store key "%s": %s', key, e)
        return False

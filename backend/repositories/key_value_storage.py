"""Key/value storage backends for session state.

Two scopes are provided: a durable, file-backed store that survives process
restarts, and an in-memory store that lives as long as the session object.
"""

from abc import ABC, abstractmethod
import json
import logging
from pathlib import Path
from threading import RLock
from typing import Dict, Optional


logger = logging.getLogger(__name__)


class KeyValueStorage(ABC):
    """String-to-string storage contract."""

    @abstractmethod
    def get_item(self, key: str) -> Optional[str]:
        """Return the stored value, or ``None`` when the key is absent."""

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""

    @abstractmethod
    def remove_item(self, key: str) -> None:
        """Delete ``key``; absent keys are ignored."""


class MemoryKeyValueStorage(KeyValueStorage):
    """Per-session storage kept in process memory."""

    def __init__(self) -> None:
        self._items: Dict[str, str] = {}
        self._lock = RLock()

    def get_item(self, key: str) -> Optional[str]:
        with self._lock:
            return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            self._items[key] = str(value)

    def remove_item(self, key: str) -> None:
        with self._lock:
            self._items.pop(key, None)


class JsonFileKeyValueStorage(KeyValueStorage):
    """Durable storage persisted as one JSON object file."""

    def __init__(self, path: str) -> None:
        """Bind storage to ``path``; the file and its directory are created lazily."""
        self._path = Path(path)
        self._lock = RLock()

    @property
    def path(self) -> str:
        return str(self._path)

    def _read_all(self) -> Dict[str, str]:
        """Read every stored item, treating a missing or corrupt file as empty."""
        if not self._path.exists():
            return {}
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            logger.exception("Failed reading storage file path=%s", self._path)
            return {}
        if not isinstance(raw, dict):
            logger.warning("Storage file is not a JSON object path=%s", self._path)
            return {}
        return {str(key): str(value) for key, value in raw.items()}

    def _write_all(self, items: Dict[str, str]) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(items, indent=2), encoding="utf-8")
        except OSError:
            logger.exception("Failed writing storage file path=%s", self._path)
            raise

    def get_item(self, key: str) -> Optional[str]:
        with self._lock:
            return self._read_all().get(key)

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            items = self._read_all()
            items[key] = str(value)
            self._write_all(items)

    def remove_item(self, key: str) -> None:
        with self._lock:
            items = self._read_all()
            if key in items:
                del items[key]
                self._write_all(items)

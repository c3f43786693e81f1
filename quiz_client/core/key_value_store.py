"""Key-value repositories backing the client's persisted state."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
import tempfile
from threading import Lock
from typing import Protocol

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class InMemoryKeyValueStore:
    """Session-scoped store; its contents end with the process."""

    def __init__(self) -> None:
        self._values: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value

    def delete(self, key: str) -> None:
        self._values.pop(key, None)


class JsonFileKeyValueStore:
    """Durable store keeping every key in a single JSON document.

    A missing, unreadable or corrupted document reads as empty. Writes
    replace the whole document through a temporary file, so concurrent
    writers from separate processes resolve to last-writer-wins.
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._lock = Lock()

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str) -> str | None:
        with self._lock:
            value = self._read_document().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        with self._lock:
            document = self._read_document()
            document[key] = value
            self._write_document(document)

    def delete(self, key: str) -> None:
        with self._lock:
            document = self._read_document()
            if key in document:
                del document[key]
                self._write_document(document)

    def _read_document(self) -> dict:
        try:
            text = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as exc:
            logger.warning("Storage file %s is unreadable: %s", self._path, exc)
            return {}
        try:
            document = json.loads(text)
        except ValueError:
            logger.warning("Storage file %s is corrupted; treating it as empty", self._path)
            return {}
        return document if isinstance(document, dict) else {}

    def _write_document(self, document: dict) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_name = tempfile.mkstemp(dir=self._path.parent, prefix=self._path.name, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(document, handle)
            os.replace(temp_name, self._path)
        except OSError:
            Path(temp_name).unlink(missing_ok=True)
            raise

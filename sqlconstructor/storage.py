# File: sqlconstructor/storage.py
"""
SQL Constructor - Key-Value Persistence
=======================================
The editing session and the workspace persist their state through a small
key-value port instead of a fixed storage medium::

    store.save("sql_builder_fields", [...])
    store.load("sql_builder_fields", [])

Values are anything ``json.dumps`` accepts.  Reads never raise for missing
or corrupt data: the caller's fallback comes back and a warning is logged.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from sqlconstructor.utils import read_file, write_file

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("sqlconstructor.storage")


class StateStore:
    """Abstract key-value store.  Subclasses implement ``_read`` / ``_write``."""

    def load(self, key: str, fallback: Any = None) -> Any:
        raw: Any = self._read(key)
        if raw is None:
            return fallback
        try:
            return json.loads(raw)
        except (TypeError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring corrupt value for '%s': %s", key, exc)
            return fallback

    def save(self, key: str, value: Any) -> None:
        self._write(key, json.dumps(value))

    def _read(self, key: str) -> Any:
        raise NotImplementedError

    def _write(self, key: str, raw: str) -> None:
        raise NotImplementedError


class MemoryStore(StateStore):
    """In-process store holding JSON strings, like a browser's local storage."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self.data: Dict[str, str] = dict(initial or {})

    def _read(self, key: str) -> Any:
        return self.data.get(key)

    def _write(self, key: str, raw: str) -> None:
        self.data[key] = raw

    def __contains__(self, key: str) -> bool:
        return key in self.data

    def __len__(self) -> int:
        return len(self.data)


class JsonFileStore(StateStore):
    """
    All keys in one JSON object on disk.

    The file is re-read on every ``load`` and rewritten atomically on every
    ``save``, so two stores pointing at the same path stay consistent.
    """

    def __init__(self, path: Path) -> None:
        self.path: Path = Path(path)

    def _document(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data: Any = json.loads(read_file(self.path))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("State file %s is unreadable, starting empty: %s", self.path, exc)
            return {}
        if not isinstance(data, dict):
            logger.warning("State file %s does not hold an object, starting empty.", self.path)
            return {}
        return data

    def _read(self, key: str) -> Any:
        return self._document().get(key)

    def _write(self, key: str, raw: str) -> None:
        document: Dict[str, str] = self._document()
        document[key] = raw
        write_file(self.path, json.dumps(document, indent=2, sort_keys=True))

    def __repr__(self) -> str:
        return f"<JsonFileStore {self.path}>"


__all__: List[str] = ["JsonFileStore", "MemoryStore", "StateStore"]

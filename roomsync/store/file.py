"""
File-backed session store.

Keeps every session document in one JSON file so the admin CLI can
operate on the same sessions across invocations. The file is re-read
before and rewritten after every operation; subscriptions only see
writes made through this process.

Design decisions:
- Simple file-based storage (no database required)
- Writes go to a temp file and are renamed into place
- Any I/O failure surfaces as StoreWriteFailed
"""

from __future__ import annotations
import json
import logging
import os
import time
from pathlib import Path
from typing import Callable

from ..errors import StoreWriteFailed
from .memory import InMemorySessionStore

logger = logging.getLogger(__name__)


class FileSessionStore(InMemorySessionStore):
    """
    Session store persisted to a JSON file.

    Usage:
        store = FileSessionStore("~/.roomsync/sessions.json")
    """

    def __init__(self, path: str | Path | None = None, clock: Callable[[], float] = time.time):
        super().__init__(clock=clock)
        if path is None:
            path = Path.home() / ".roomsync" / "sessions.json"
        self.path = Path(path).expanduser()

    def _load(self):
        if not self.path.exists():
            self._documents = {}
            return
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StoreWriteFailed(f"Cannot read session store {self.path}: {e}") from e
        self._documents = data.get("sessions", {})

    def _save(self):
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump({"sessions": self._documents}, f, indent=2)
            os.replace(tmp_path, self.path)
        except OSError as e:
            logger.error("Failed to write session store %s: %s", self.path, e)
            raise StoreWriteFailed(f"Cannot write session store {self.path}: {e}") from e

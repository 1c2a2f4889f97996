"""
Session Store - The shared mutable session documents and their push channel.

The store is the only thing devices and the admin console share. Nobody
calls anybody else directly: writers update a document, and every
subscriber receives the latest whole document.

Contract:
- get/create/update/delete on JSON-compatible documents
- update() is partial; dotted keys address nested fields
  ("devices.main.last_seen") so a writer can touch one field only
- Every committed write bumps the document's version. Passing
  expected_version makes the write conditional (compare-and-swap)
- Subscribers see one document's updates in commit order; there is
  no ordering across documents
"""

from __future__ import annotations
import asyncio
from abc import ABC, abstractmethod
from typing import Any, Callable


_CLOSED = object()


class Subscription:
    """
    A push subscription delivering snapshots as they are committed.

    Iterate it with `async for`. For a single document each item is the
    whole document, or None once it has been deleted. For a collection
    subscription each item is the list of all documents.
    """

    def __init__(self, on_close: Callable[[Subscription], None] | None = None):
        self._queue: asyncio.Queue = asyncio.Queue()
        self._on_close = on_close
        self.closed = False

    def push(self, snapshot: Any):
        if not self.closed:
            self._queue.put_nowait(snapshot)

    async def next(self, timeout: float | None = None) -> Any:
        """Wait for the next snapshot. Raises StopAsyncIteration once closed."""
        if timeout is None:
            item = await self._queue.get()
        else:
            item = await asyncio.wait_for(self._queue.get(), timeout)
        if item is _CLOSED:
            raise StopAsyncIteration
        return item

    def pending(self) -> int:
        return self._queue.qsize()

    def __aiter__(self):
        return self

    async def __anext__(self) -> Any:
        return await self.next()

    def close(self):
        if self.closed:
            return
        self.closed = True
        self._queue.put_nowait(_CLOSED)
        if self._on_close:
            self._on_close(self)


class SessionStore(ABC):
    """Document store for session records."""

    @abstractmethod
    async def create(self, document: dict[str, Any]) -> str:
        """Store a new document and return its generated id."""

    @abstractmethod
    async def get(self, doc_id: str) -> dict[str, Any] | None:
        """Return the document (with "id" and "version") or None."""

    @abstractmethod
    async def update(
        self,
        doc_id: str,
        fields: dict[str, Any],
        expected_version: int | None = None,
    ) -> int:
        """
        Apply a partial update and return the new version.

        Raises SessionNotFound if the document does not exist and
        VersionConflict if expected_version is given and stale.
        """

    @abstractmethod
    async def delete(self, doc_id: str):
        """Remove the document. Deleting a missing document is a no-op."""

    @abstractmethod
    async def list_all(self) -> list[dict[str, Any]]:
        """All documents, newest first."""

    async def query(self, **equals: Any) -> list[dict[str, Any]]:
        """Documents whose top-level fields equal the given values."""
        return [
            doc for doc in await self.list_all()
            if all(doc.get(k) == v for k, v in equals.items())
        ]

    @abstractmethod
    def subscribe(self, doc_id: str) -> Subscription:
        """Subscribe to one document. The current snapshot is pushed first."""

    @abstractmethod
    def subscribe_all(self) -> Subscription:
        """Subscribe to the whole collection. The current list is pushed first."""


def set_path(document: dict[str, Any], path: str, value: Any):
    """Set a possibly dotted field path, creating intermediate maps."""
    keys = path.split(".")
    target = document
    for key in keys[:-1]:
        child = target.get(key)
        if not isinstance(child, dict):
            child = {}
            target[key] = child
        target = child
    target[keys[-1]] = value

"""
In-memory session store with versioned writes and push subscriptions.

Documents are deep-copied on the way in and out so no caller can hold
a reference into committed state. Each write runs to completion
without awaiting, so within one event loop commits are serialized.
"""

from __future__ import annotations
import time
import uuid
from copy import deepcopy
from typing import Any, Callable

from ..errors import SessionNotFound, VersionConflict
from .base import SessionStore, Subscription, set_path


class InMemorySessionStore(SessionStore):
    """
    Session store held in process memory.

    Usage:
        store = InMemorySessionStore()
        doc_id = await store.create({"status": "pending"})
        sub = store.subscribe(doc_id)
        await store.update(doc_id, {"status": "running"})
        snapshot = await sub.next()
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self.clock = clock
        self._documents: dict[str, dict[str, Any]] = {}
        self._doc_subscribers: dict[str, list[Subscription]] = {}
        self._collection_subscribers: list[Subscription] = []

    # ------------------------------------------------------------------
    # Persistence hooks (no-ops here; see FileSessionStore)
    # ------------------------------------------------------------------

    def _load(self):
        pass

    def _save(self):
        pass

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    async def create(self, document: dict[str, Any]) -> str:
        self._load()
        doc_id = str(uuid.uuid4())
        stored = deepcopy(document)
        stored["id"] = doc_id
        stored["version"] = 1
        stored.setdefault("created_at", self.clock())
        stored.setdefault("updated_at", stored["created_at"])
        self._documents[doc_id] = stored
        self._save()
        self._notify(doc_id)
        return doc_id

    async def get(self, doc_id: str) -> dict[str, Any] | None:
        self._load()
        document = self._documents.get(doc_id)
        return deepcopy(document) if document is not None else None

    async def update(
        self,
        doc_id: str,
        fields: dict[str, Any],
        expected_version: int | None = None,
    ) -> int:
        self._load()
        document = self._documents.get(doc_id)
        if document is None:
            raise SessionNotFound(doc_id)
        if expected_version is not None and document["version"] != expected_version:
            raise VersionConflict(doc_id, expected_version, document["version"])

        updated = deepcopy(document)
        for path, value in fields.items():
            if path in ("id", "version"):
                continue
            set_path(updated, path, deepcopy(value))
        updated["version"] = document["version"] + 1
        updated["updated_at"] = self.clock()

        self._documents[doc_id] = updated
        self._save()
        self._notify(doc_id)
        return updated["version"]

    async def delete(self, doc_id: str):
        self._load()
        if self._documents.pop(doc_id, None) is None:
            return
        self._save()
        self._notify(doc_id)

    async def list_all(self) -> list[dict[str, Any]]:
        self._load()
        return self._snapshot_all()

    def _snapshot_all(self) -> list[dict[str, Any]]:
        documents = sorted(
            self._documents.values(),
            key=lambda d: d.get("created_at", 0.0),
            reverse=True,
        )
        return [deepcopy(d) for d in documents]

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(self, doc_id: str) -> Subscription:
        self._load()
        subscription = Subscription(on_close=lambda s: self._unsubscribe(doc_id, s))
        self._doc_subscribers.setdefault(doc_id, []).append(subscription)
        document = self._documents.get(doc_id)
        subscription.push(deepcopy(document) if document is not None else None)
        return subscription

    def subscribe_all(self) -> Subscription:
        self._load()
        subscription = Subscription(on_close=self._collection_subscribers.remove)
        self._collection_subscribers.append(subscription)
        subscription.push(self._snapshot_all())
        return subscription

    def _unsubscribe(self, doc_id: str, subscription: Subscription):
        subscribers = self._doc_subscribers.get(doc_id, [])
        if subscription in subscribers:
            subscribers.remove(subscription)
        if not subscribers:
            self._doc_subscribers.pop(doc_id, None)

    def _notify(self, doc_id: str):
        document = self._documents.get(doc_id)
        for subscription in list(self._doc_subscribers.get(doc_id, [])):
            subscription.push(deepcopy(document) if document is not None else None)
        if self._collection_subscribers:
            snapshot = self._snapshot_all()
            for subscription in list(self._collection_subscribers):
                subscription.push(deepcopy(snapshot))

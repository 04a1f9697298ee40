"""Document store access.

The portal's data lives in a key-path document tree (Firebase Realtime
Database). There are no multi-key transactions: every ``write`` replaces
the whole value at one path, and cross-path consistency is the caller's
concern.

Two backends implement :class:`DocumentStore`:

* :class:`FirebaseDocumentStore` wraps ``firebase_admin.db``. Its calls are
  blocking, so they run in the default thread-pool executor.
* :class:`InMemoryDocumentStore` keeps the tree in a nested dict. It backs
  local development (``DOCUMENT_STORE_BACKEND=memory``) and the test suite.
"""
from __future__ import annotations

import asyncio
import copy
import functools
import time
import uuid
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any, Protocol

import structlog

from ..core.config import Settings, get_settings

logger = structlog.get_logger(__name__)

ChangeCallback = Callable[[Any], None]
ErrorCallback = Callable[[Exception], None]
Unsubscribe = Callable[[], None]


def split_path(path: str) -> list[str]:
    """Split ``"doctors/abc"`` into ``["doctors", "abc"]``; empty path is the root."""
    return [segment for segment in path.strip("/").split("/") if segment]


class DocumentStore(Protocol):
    """Interface for the key-path document tree."""

    async def read(self, path: str) -> Any:
        """Return the value at ``path``, or ``None`` when absent."""
        ...

    async def write(self, path: str, value: Any) -> None:
        """Replace the value at ``path``. Writing ``None`` deletes it."""
        ...

    async def push(self, path: str, value: Any) -> str:
        """Append ``value`` under a fresh child key of ``path`` and return the key."""
        ...

    async def subscribe(
        self,
        path: str,
        on_change: ChangeCallback,
        on_error: ErrorCallback | None = None,
    ) -> Unsubscribe:
        """Invoke ``on_change`` with the full value at ``path`` now and on every change."""
        ...

    async def health_check(self) -> dict:
        """Return ``{"status": "healthy"|"unhealthy", "error": ...}``."""
        ...


# ---------------------------------------------------------------------------
# Firebase Realtime Database
# ---------------------------------------------------------------------------


class FirebaseDocumentStore:
    """Realtime Database backend built on ``firebase_admin.db``."""

    def __init__(self, app: Any = None) -> None:
        from firebase_admin import db

        from ..core.firebase_config import get_firebase_app

        self._db = db
        self._app = app or get_firebase_app()

    def _ref(self, path: str):
        return self._db.reference("/" + "/".join(split_path(path)), app=self._app)

    async def _run(self, func: Callable, *args: Any, **kwargs: Any) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(func, *args, **kwargs))

    async def read(self, path: str) -> Any:
        return await self._run(self._ref(path).get)

    async def write(self, path: str, value: Any) -> None:
        ref = self._ref(path)
        if value is None:
            await self._run(ref.delete)
        else:
            await self._run(ref.set, value)

    async def push(self, path: str, value: Any) -> str:
        child = await self._run(self._ref(path).push, value)
        return child.key

    async def subscribe(
        self,
        path: str,
        on_change: ChangeCallback,
        on_error: ErrorCallback | None = None,
    ) -> Unsubscribe:
        """Listen on ``path``; callbacks are dispatched onto the calling event loop.

        The SDK delivers incremental events from a background thread, so each
        event triggers a fresh read of the whole subtree.
        """
        loop = asyncio.get_running_loop()
        ref = self._ref(path)

        def _listener(_event: Any) -> None:
            try:
                value = ref.get()
            except Exception as exc:
                logger.error("Document store subscription read failed", path=path, error=str(exc))
                if on_error is not None:
                    loop.call_soon_threadsafe(on_error, exc)
                return
            loop.call_soon_threadsafe(on_change, value)

        registration = await self._run(ref.listen, _listener)
        logger.info("Document store subscription opened", path=path)

        def _unsubscribe() -> None:
            registration.close()
            logger.info("Document store subscription closed", path=path)

        return _unsubscribe

    async def health_check(self) -> dict:
        try:
            await self._run(self._ref("clinics").get, shallow=True)
            return {"status": "healthy", "error": None}
        except Exception as exc:
            logger.error("Document store health check failed", error=str(exc))
            return {"status": "unhealthy", "error": str(exc)}


# ---------------------------------------------------------------------------
# In-memory tree
# ---------------------------------------------------------------------------


class InMemoryDocumentStore:
    """Nested-dict document tree with the same semantics as the Firebase backend.

    Values are deep-copied on the way in and out so callers never share
    state with the tree. Empty containers are pruned, matching the Realtime
    Database which never stores empty nodes.
    """

    def __init__(self, initial: dict | None = None) -> None:
        self._root: dict = copy.deepcopy(initial) if initial else {}
        self._subscribers: dict[int, tuple[list[str], ChangeCallback]] = {}
        self._next_subscriber = 0
        self._push_counter = 0

    def _get(self, segments: list[str]) -> Any:
        node: Any = self._root
        for segment in segments:
            if not isinstance(node, dict) or segment not in node:
                return None
            node = node[segment]
        return node

    def _set(self, segments: list[str], value: Any) -> None:
        if not segments:
            self._root = value if isinstance(value, dict) else {}
            return
        if value is None:
            self._delete(segments)
            return
        node = self._root
        for segment in segments[:-1]:
            child = node.get(segment)
            if not isinstance(child, dict):
                child = {}
                node[segment] = child
            node = child
        node[segments[-1]] = value

    def _delete(self, segments: list[str]) -> None:
        trail: list[tuple[dict, str]] = []
        node: Any = self._root
        for segment in segments:
            if not isinstance(node, dict) or segment not in node:
                return
            trail.append((node, segment))
            node = node[segment]
        parent, key = trail.pop()
        del parent[key]
        while trail:
            parent, key = trail.pop()
            if parent[key]:
                break
            del parent[key]

    def _notify(self, changed: list[str]) -> None:
        for watched, callback in list(self._subscribers.values()):
            overlap = min(len(watched), len(changed))
            if watched[:overlap] == changed[:overlap]:
                callback(copy.deepcopy(self._get(watched)))

    async def read(self, path: str) -> Any:
        return copy.deepcopy(self._get(split_path(path)))

    async def write(self, path: str, value: Any) -> None:
        segments = split_path(path)
        self._set(segments, copy.deepcopy(value))
        self._notify(segments)

    async def push(self, path: str, value: Any) -> str:
        self._push_counter += 1
        key = f"-{int(time.time() * 1000):013d}{self._push_counter:06d}{uuid.uuid4().hex[:4]}"
        await self.write(f"{path.rstrip('/')}/{key}", value)
        return key

    async def subscribe(
        self,
        path: str,
        on_change: ChangeCallback,
        on_error: ErrorCallback | None = None,
    ) -> Unsubscribe:
        segments = split_path(path)
        subscriber_id = self._next_subscriber
        self._next_subscriber += 1
        self._subscribers[subscriber_id] = (segments, on_change)
        on_change(copy.deepcopy(self._get(segments)))

        def _unsubscribe() -> None:
            self._subscribers.pop(subscriber_id, None)

        return _unsubscribe

    async def health_check(self) -> dict:
        return {"status": "healthy", "error": None}

    def snapshot(self) -> dict:
        """Return a deep copy of the whole tree."""
        return copy.deepcopy(self._root)


# ---------------------------------------------------------------------------
# Global singleton
# ---------------------------------------------------------------------------

_document_store: DocumentStore | None = None


def create_document_store(settings: Settings | None = None) -> DocumentStore:
    """Build the backend selected by ``DOCUMENT_STORE_BACKEND``."""
    settings = settings or get_settings()
    if settings.DOCUMENT_STORE_BACKEND == "memory":
        logger.warning("Using in-memory document store; data is not persisted")
        return InMemoryDocumentStore()
    return FirebaseDocumentStore()


def get_document_store() -> DocumentStore:
    """Return the process-level DocumentStore singleton (FastAPI dependency)."""
    global _document_store
    if _document_store is None:
        _document_store = create_document_store()
    return _document_store


def set_document_store(store: DocumentStore | None) -> None:
    """Replace the process-level store (application startup and tests)."""
    global _document_store
    _document_store = store


def utc_now_iso() -> str:
    """ISO-8601 UTC timestamp in the format stored on documents."""
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")

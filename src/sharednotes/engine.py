"""SyncEngine: one live, conflict-resolved view of a note.

``observe_synced(title)`` merges two sources into a single stream:

* the local store's stream for the title, forwarded as-is, and
* the remote poller's stream, which is never forwarded directly.  A remote
  version that is valid and strictly newer (by ``updated_at``) than the last
  known local version is written into the local store instead, and reaches
  subscribers through the local stream like any other commit.

Subscribers therefore only ever see values that are already persisted
locally.  Both sources feed one queue drained by a single worker thread per
subscription (:class:`MergeSession`), so the "last known local version" has
exactly one writer.

Writes go through ``upsert_synced``: committed locally right away, then sent
to the server in the background.  Deletes stay local; the server is never
told about them.

Usage::

    engine = SyncEngine(NoteStore("notes.duckdb"), NoteAPI())
    sub = engine.observe_synced("groceries").subscribe(render)
    engine.upsert_synced(Note("groceries", "eggs, milk"))
    ...
    sub.cancel()
"""

from __future__ import annotations

import logging
import queue
import threading
from concurrent.futures import Future
from typing import TYPE_CHECKING, Any, Callable

from sharednotes.live import Stream, Subscription
from sharednotes.note import Note
from sharednotes.poller import DEFAULT_INTERVAL, PollerRegistry
from sharednotes.store import NoteStore

if TYPE_CHECKING:
    from sharednotes.api import NoteAPI
    from sharednotes.config import Settings

logger = logging.getLogger(__name__)

_LOCAL = "local"
_REMOTE = "remote"
_STOP = object()


# ---------------------------------------------------------------------------
# Merge step
# ---------------------------------------------------------------------------


class MergeSession:
    """Serializing merge task behind one ``observe_synced`` subscription."""

    def __init__(self, store: NoteStore, title: str, emit: Callable[[Note | None], None]) -> None:
        self.store = store
        self.title = title
        self._emit = emit
        self._local: Note | None = None
        #: Remote versions committed to the store by this session
        self.writes = 0
        self._queue: queue.SimpleQueue[Any] = queue.SimpleQueue()
        self._subs: list[Subscription] = []
        self._closed = threading.Event()
        self._worker: threading.Thread | None = None

    @property
    def local(self) -> Note | None:
        """Last local version seen (or committed) by this session."""
        return self._local

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def handle_local(self, note: Note | None) -> None:
        self._local = note
        try:
            self._emit(note)
        except Exception:  # noqa: BLE001
            logger.exception("observer of %r failed", self.title)

    def handle_remote(self, note: Note | None) -> bool:
        """Commit *note* if it is valid and newer; returns whether it was written."""
        if note is None or not note.is_valid() or note.title != self.title:
            logger.warning("dropping invalid remote note for %r: %r", self.title, note)
            return False
        if not note.is_newer_than(self._local):
            return False
        if not self.store.upsert_if_newer(note):
            # A newer local commit won the race; its event is already queued
            return False
        logger.debug("accepted remote %r at %d", self.title, note.updated_at)
        self._local = note
        self.writes += 1
        return True

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self, local: Stream[Note | None], remote: Stream[Note]) -> None:
        # Local first, so its current value is queued ahead of any remote result
        try:
            self._subs.append(local.subscribe(lambda n: self._queue.put((_LOCAL, n))))
            self._subs.append(remote.subscribe(lambda n: self._queue.put((_REMOTE, n))))
        except BaseException:
            self.cancel()
            raise
        self._worker = threading.Thread(
            target=self._run, name=f"sharednotes-merge:{self.title}", daemon=True
        )
        self._worker.start()

    def cancel(self, timeout: float = 1.0) -> None:
        if self._closed.is_set():
            return
        self._closed.set()
        for sub in self._subs:
            sub.cancel()
        self._queue.put(_STOP)
        worker = self._worker
        if worker is not None and worker is not threading.current_thread():
            worker.join(timeout)

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            if item is _STOP or self._closed.is_set():
                return
            source, note = item
            try:
                if source == _LOCAL:
                    self.handle_local(note)
                else:
                    self.handle_remote(note)
            except Exception:  # noqa: BLE001
                logger.exception("merging %s event for %r failed", source, self.title)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class SyncEngine:
    """Keeps notes consistent between a :class:`NoteStore` and the server."""

    def __init__(self, store: NoteStore, api: "NoteAPI", *, interval: float = DEFAULT_INTERVAL) -> None:
        self.store = store
        self.api = api
        self.pollers = PollerRegistry(api, interval=interval)
        self._sessions: set[MergeSession] = set()
        self._lock = threading.Lock()
        self._owned: list[Any] = []

    @classmethod
    def from_settings(cls, settings: "Settings") -> "SyncEngine":
        """Build an engine that owns (and closes) its store and client."""
        from sharednotes.api import NoteAPI

        store = NoteStore(settings.db_path)
        api = NoteAPI(settings.server_url, timeout=settings.timeout)
        engine = cls(store, api, interval=settings.poll_interval)
        engine._owned = [api, store]
        return engine

    # ------------------------------------------------------------------
    # Synced
    # ------------------------------------------------------------------

    def observe_synced(self, title: str) -> Stream[Note | None]:
        """Stream the newest committed version of *title*, local or remote."""
        if not title:
            raise ValueError("title must be non-empty")

        def produce(emit: Callable[[Note | None], None]) -> Callable[[], None]:
            session = MergeSession(self.store, title, emit)
            with self._lock:
                self._sessions.add(session)
            try:
                session.start(self.observe_local(title), self.observe_remote(title))
            except BaseException:
                with self._lock:
                    self._sessions.discard(session)
                raise

            def release() -> None:
                session.cancel()
                with self._lock:
                    self._sessions.discard(session)

            return release

        return Stream(produce, name=f"synced:{title}")

    def upsert_synced(self, note: Note) -> Note:
        """Commit *note* locally, then push it to the server in the background."""
        saved = self.upsert_local(note)
        self.upsert_remote(saved)
        return saved

    def active_sessions(self) -> int:
        with self._lock:
            return len(self._sessions)

    # ------------------------------------------------------------------
    # Local
    # ------------------------------------------------------------------

    def observe_local(self, title: str) -> Stream[Note | None]:
        return self.store.observe(title)

    def observe_all_local(self) -> Stream[list[Note]]:
        return self.store.observe_all()

    def get_local(self, title: str) -> Note | None:
        return self.store.get(title)

    def upsert_local(self, note: Note) -> Note:
        return self.store.upsert(note)

    def delete_local(self, note: Note) -> None:
        self.store.delete(note)

    def exists_local(self, title: str) -> bool:
        return self.store.exists(title)

    # ------------------------------------------------------------------
    # Remote
    # ------------------------------------------------------------------

    def observe_remote(self, title: str) -> Stream[Note]:
        """Stream every note fetched for *title* by its shared poller."""

        def produce(emit: Callable[[Note], None]) -> Callable[[], None]:
            return self.pollers.attach(title, emit)

        return Stream(produce, name=f"remote:{title}")

    def upsert_remote(self, note: Note) -> "Future[None]":
        return self.api.put_async(note.title, note)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Cancel every live subscription and stop all pollers."""
        with self._lock:
            sessions = list(self._sessions)
            self._sessions.clear()
        for session in sessions:
            session.cancel()
        self.pollers.stop_all()
        for resource in self._owned:
            resource.close()
        self._owned = []

    def __enter__(self) -> "SyncEngine":
        return self

    def __exit__(self, *_: object) -> None:
        self.close()

"""NoteStore: the device-local note table, backed by DuckDB.

One table keyed by title::

    notes(title VARCHAR PRIMARY KEY, content TEXT, updatedAt BIGINT)

Every mutation is atomic with respect to the other store operations and is
followed by a notification to the observers of the affected title (and to
``observe_all`` observers).  Notifications are delivered synchronously on the
thread that performed the write, while the store lock is still held, so
observers see changes in commit order.  Observers must not block.

Usage::

    store = NoteStore("notes.duckdb")
    sub = store.observe("groceries").subscribe(print)
    store.upsert(Note("groceries", "eggs"))     # prints the stamped note
"""

from __future__ import annotations

import threading
import time
from pathlib import Path
from typing import Callable

import duckdb
import polars as pl

from sharednotes.live import Stream
from sharednotes.note import Note

_COLUMNS = "title, content, updatedAt"


def _epoch_seconds() -> int:
    return int(time.time())


class NoteStore:
    """Observable CRUD over notes keyed by title."""

    def __init__(
        self,
        db_path: Path | str = ":memory:",
        *,
        clock: Callable[[], int] = _epoch_seconds,
    ) -> None:
        self._db_path = str(db_path)
        self._clock = clock
        self._lock = threading.RLock()
        self._title_observers: dict[str, list[Callable[[Note | None], None]]] = {}
        self._all_observers: list[Callable[[list[Note]], None]] = []
        self.conn: duckdb.DuckDBPyConnection = duckdb.connect(self._db_path)
        self._create_schema()

    def _create_schema(self) -> None:
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS notes (
                title      VARCHAR PRIMARY KEY,
                content    TEXT    NOT NULL,
                updatedAt  BIGINT  NOT NULL
            )
        """)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, title: str) -> Note | None:
        with self._lock:
            row = self.conn.execute(
                f"SELECT {_COLUMNS} FROM notes WHERE title = ?", [title]
            ).fetchone()
        if row is None:
            return None
        return Note(title=row[0], content=row[1], updated_at=int(row[2]))

    def get_all(self) -> list[Note]:
        with self._lock:
            rows = self.conn.execute(f"SELECT {_COLUMNS} FROM notes ORDER BY title").fetchall()
        return [Note(title=t, content=c, updated_at=int(u)) for t, c, u in rows]

    def exists(self, title: str) -> bool:
        with self._lock:
            row = self.conn.execute("SELECT 1 FROM notes WHERE title = ?", [title]).fetchone()
        return row is not None

    def frame(self) -> pl.DataFrame:
        """Return every note as a Polars DataFrame ordered by title."""
        with self._lock:
            return self.conn.execute(f"SELECT {_COLUMNS} FROM notes ORDER BY title").pl()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def upsert(self, note: Note, *, stamp: bool = True) -> Note:
        """Insert or replace *note* and return the stored version.

        With *stamp* (the default) ``updated_at`` is set to the current time,
        or to one past the stored timestamp when that is not behind us yet.
        A local edit is then strictly newer than any version this device has
        seen, even one stamped by a device whose clock runs ahead.  Without
        *stamp* the note is written verbatim, which is how versions fetched
        from the server are committed.

        Raises :class:`ValueError` for a note without a title or content.
        """
        if not note.is_valid():
            raise ValueError(f"refusing to store invalid note: {note!r}")
        with self._lock:
            if stamp:
                previous = self.get(note.title)
                now = self._clock()
                if previous is not None:
                    now = max(now, previous.updated_at + 1)
                note = Note(title=note.title, content=note.content, updated_at=now)
            self._write(note)
            self._notify(note.title, note)
        return note

    def upsert_if_newer(self, note: Note) -> bool:
        """Write *note* verbatim only if it is strictly newer than the stored row.

        The comparison and the write happen under one lock, so a concurrent
        local commit can never be overwritten by an older version.
        """
        with self._lock:
            if not note.is_newer_than(self.get(note.title)):
                return False
            self._write(note)
            self._notify(note.title, note)
        return True

    def delete(self, note: Note) -> None:
        with self._lock:
            self.conn.execute("DELETE FROM notes WHERE title = ?", [note.title])
            self._notify(note.title, None)

    def _write(self, note: Note) -> None:
        self.conn.execute(
            f"""
            INSERT INTO notes ({_COLUMNS}) VALUES (?, ?, ?)
            ON CONFLICT (title) DO UPDATE SET
                content   = excluded.content,
                updatedAt = excluded.updatedAt;
            """,
            [note.title, note.content, note.updated_at],
        )

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    def observe(self, title: str) -> Stream[Note | None]:
        """Stream the note stored under *title*; ``None`` while it is absent."""

        def produce(emit: Callable[[Note | None], None]) -> Callable[[], None]:
            with self._lock:
                current = self.get(title)
                self._title_observers.setdefault(title, []).append(emit)
                emit(current)

            def release() -> None:
                with self._lock:
                    observers = self._title_observers.get(title, [])
                    if emit in observers:
                        observers.remove(emit)
                    if not observers:
                        self._title_observers.pop(title, None)

            return release

        return Stream(produce, name=f"local:{title}")

    def observe_all(self) -> Stream[list[Note]]:
        """Stream the full, title-ordered list of notes after every change."""

        def produce(emit: Callable[[list[Note]], None]) -> Callable[[], None]:
            with self._lock:
                current = self.get_all()
                self._all_observers.append(emit)
                emit(current)

            def release() -> None:
                with self._lock:
                    if emit in self._all_observers:
                        self._all_observers.remove(emit)

            return release

        return Stream(produce, name="local:*")

    def observer_count(self, title: str | None = None) -> int:
        """Number of live observers for *title*, or of ``observe_all`` when ``None``."""
        with self._lock:
            if title is None:
                return len(self._all_observers)
            return len(self._title_observers.get(title, []))

    def _notify(self, title: str, note: Note | None) -> None:
        for emit in list(self._title_observers.get(title, [])):
            emit(note)
        if self._all_observers:
            notes = self.get_all()
            for emit in list(self._all_observers):
                emit(notes)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        with self._lock:
            self.conn.close()

    def __enter__(self) -> "NoteStore":
        return self

    def __exit__(self, *_: object) -> None:
        self.close()

"""Background polling of the note server.

A :class:`Poller` owns one daemon thread that fetches a single title right
away and then once per interval until stopped.  Each fetched note is handed
to every registered listener; ticks that fail or find nothing emit nothing.
Fetches never overlap because the thread waits for each one to finish.

:class:`PollerRegistry` shares one poller between all listeners interested in
the same title and stops it when the last one detaches.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Protocol

from sharednotes.errors import RemoteError
from sharednotes.note import Note

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 3.0

Listener = Callable[[Note], None]


class NoteFetcher(Protocol):
    def get(self, title: str) -> Note | None: ...


class Poller:
    """Repeatedly fetch *title* from *api* on a fixed cadence."""

    def __init__(self, api: NoteFetcher, title: str, *, interval: float = DEFAULT_INTERVAL) -> None:
        if not title:
            raise ValueError("title must be non-empty")
        self.api = api
        self.title = title
        self.interval = interval
        self.fetch_count = 0
        self._listeners: list[Listener] = []
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def add_listener(self, listener: Listener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> int:
        """Detach *listener* and return how many remain."""
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)
            return len(self._listeners)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and not self._stop.is_set()

    def start(self) -> None:
        if self._thread is not None:
            raise RuntimeError(f"poller for {self.title!r} already started")
        self._thread = threading.Thread(
            target=self._run, name=f"sharednotes-poll:{self.title}", daemon=True
        )
        self._thread.start()

    def stop(self, timeout: float | None = None) -> None:
        """Cancel future ticks.

        An in-flight fetch is left to finish but its result is discarded.
        Pass *timeout* to also wait for the thread to exit.
        """
        self._stop.set()
        thread = self._thread
        if timeout is not None and thread is not None and thread is not threading.current_thread():
            thread.join(timeout)

    def _run(self) -> None:
        logger.debug("polling %r every %.1fs", self.title, self.interval)
        next_tick = time.monotonic()
        while not self._stop.is_set():
            self._tick()
            next_tick += self.interval
            delay = next_tick - time.monotonic()
            if delay < 0:
                # A slow fetch overran its slot; resume the cadence from now
                next_tick = time.monotonic()
                delay = 0
            if self._stop.wait(delay):
                break
        logger.debug("stopped polling %r", self.title)

    def _tick(self) -> None:
        self.fetch_count += 1
        try:
            note = self.api.get(self.title)
        except RemoteError as exc:
            logger.warning("poll of %r failed: %s", self.title, exc)
            return
        except Exception:  # noqa: BLE001
            # Keep polling whatever the client raised
            logger.exception("poll of %r raised unexpectedly", self.title)
            return
        if note is None or self._stop.is_set():
            return
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(note)
            except Exception:  # noqa: BLE001
                logger.exception("listener for %r failed", self.title)


class PollerRegistry:
    """One shared :class:`Poller` per observed title."""

    def __init__(self, api: NoteFetcher, *, interval: float = DEFAULT_INTERVAL) -> None:
        self.api = api
        self.interval = interval
        self._pollers: dict[str, Poller] = {}
        self._lock = threading.Lock()

    def attach(self, title: str, listener: Listener) -> Callable[[], None]:
        """Register *listener* for *title*; returns a callable that detaches it."""
        with self._lock:
            poller = self._pollers.get(title)
            if poller is None:
                poller = Poller(self.api, title, interval=self.interval)
                self._pollers[title] = poller
                poller.add_listener(listener)
                poller.start()
            else:
                poller.add_listener(listener)

        def detach() -> None:
            with self._lock:
                if poller.remove_listener(listener) == 0 and self._pollers.get(title) is poller:
                    del self._pollers[title]
                    poller.stop()

        return detach

    def get(self, title: str) -> Poller | None:
        with self._lock:
            return self._pollers.get(title)

    def active_titles(self) -> list[str]:
        with self._lock:
            return sorted(self._pollers)

    def stop_all(self, timeout: float | None = None) -> None:
        with self._lock:
            pollers = list(self._pollers.values())
            self._pollers.clear()
        for poller in pollers:
            poller.stop(timeout)

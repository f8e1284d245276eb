"""Minimal cancellable observables.

A :class:`Stream` wraps a *producer*: a callable that receives an ``emit``
function, starts delivering values through it, and returns a zero-argument
callable that stops delivery.  Every :meth:`Stream.subscribe` runs the
producer afresh, so a stream is cold and each subscriber owns its resources.

Usage::

    sub = store.observe("groceries").subscribe(print)
    ...
    sub.cancel()          # or: with stream.subscribe(cb): ...
"""

from __future__ import annotations

import threading
from typing import Callable, Generic, TypeVar

T = TypeVar("T")

Observer = Callable[[T], None]
Producer = Callable[[Callable[[T], None]], Callable[[], None]]


class Subscription:
    """Handle returned by :meth:`Stream.subscribe`; cancelling is idempotent."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._cancelled = False
        self._release: Callable[[], None] | None = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def _bind(self, release: Callable[[], None]) -> None:
        with self._lock:
            if not self._cancelled:
                self._release = release
                return
        # Cancelled while the producer was still starting up
        release()

    def cancel(self) -> None:
        with self._lock:
            if self._cancelled:
                return
            self._cancelled = True
            release, self._release = self._release, None
        if release is not None:
            release()

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *_: object) -> None:
        self.cancel()


class Stream(Generic[T]):
    """A cold observable sequence of ``T`` values."""

    def __init__(self, producer: Producer[T], *, name: str = "") -> None:
        self._producer = producer
        self.name = name

    def subscribe(self, observer: Observer[T]) -> Subscription:
        sub = Subscription()

        def emit(value: T) -> None:
            if not sub.cancelled:
                observer(value)

        sub._bind(self._producer(emit))
        return sub

    def __repr__(self) -> str:
        return f"Stream({self.name!r})"

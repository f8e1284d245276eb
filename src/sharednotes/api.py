"""HTTP client for the shared notes server.

Routes
------
GET  /notes/{title}   - fetch a note (404 when the server has none)
PUT  /notes/{title}   - store a note
GET  /echo/{msg}      - returns ``{"message": msg}``; diagnostic only

All bodies are JSON of the form ``{"title": ..., "content": ..., "updatedAt": ...}``.
Path segments are percent-encoded, so titles may contain spaces or slashes.

The blocking methods (``get``, ``put``, ``echo``) must run on a background
thread.  Their ``*_async`` twins submit them to a shared thread pool and
return :class:`concurrent.futures.Future` objects, so requests for different
titles never queue behind each other.

Environment variables (all optional; direct kwargs take precedence):
    SHAREDNOTES_SERVER_URL  - base URL of the server
    SHAREDNOTES_TIMEOUT     - per-request timeout in seconds (default 5)
"""

from __future__ import annotations

import logging
import os
from concurrent.futures import Future, ThreadPoolExecutor
from urllib.parse import quote

import httpx

from sharednotes.errors import MalformedNoteError, RemoteError
from sharednotes.note import Note

logger = logging.getLogger(__name__)

DEFAULT_SERVER_URL = "https://sharednotes.goto.ucsd.edu"
DEFAULT_TIMEOUT = 5.0


def _segment(value: str) -> str:
    return quote(value, safe="")


class NoteAPI:
    """Request/response client for ``/notes`` and ``/echo``."""

    def __init__(
        self,
        base_url: str | None = None,
        *,
        timeout: float | None = None,
        max_workers: int | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        self._base_url = (base_url or os.getenv("SHAREDNOTES_SERVER_URL") or DEFAULT_SERVER_URL).rstrip("/")
        if timeout is None:
            timeout = float(os.getenv("SHAREDNOTES_TIMEOUT", DEFAULT_TIMEOUT))
        self.timeout = timeout
        self._client = client or httpx.Client(
            base_url=self._base_url,
            headers={"Accept": "application/json"},
            timeout=timeout,
        )
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="sharednotes-api")

    @property
    def base_url(self) -> str:
        return self._base_url

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            r = self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as exc:
            raise RemoteError(f"{method} {path} timed out after {self.timeout}s") from exc
        except httpx.HTTPError as exc:
            raise RemoteError(f"{method} {path} failed: {exc}") from exc
        logger.debug("%s %s -> %s", method, path, r.status_code)
        return r

    @staticmethod
    def _check(r: httpx.Response) -> None:
        if not r.is_success:
            raise RemoteError(
                f"{r.request.method} {r.request.url.path} returned {r.status_code}",
                status_code=r.status_code,
            )

    # ------------------------------------------------------------------
    # Notes
    # ------------------------------------------------------------------

    def get(self, title: str) -> Note | None:
        """Fetch *title*; ``None`` when the server does not know it."""
        r = self._request("GET", f"/notes/{_segment(title)}")
        if r.status_code == 404:
            return None
        self._check(r)
        try:
            return Note.from_json(r.content)
        except MalformedNoteError as exc:
            raise MalformedNoteError(f"GET /notes/{title}: {exc}", status_code=r.status_code) from exc

    def put(self, title: str, note: Note) -> None:
        r = self._request(
            "PUT",
            f"/notes/{_segment(title)}",
            content=note.to_json().encode("utf-8"),
            headers={"Content-Type": "application/json; charset=utf-8"},
        )
        self._check(r)

    def echo(self, msg: str) -> str:
        r = self._request("GET", f"/echo/{_segment(msg)}")
        self._check(r)
        try:
            return r.json()["message"]
        except (ValueError, KeyError, TypeError) as exc:
            raise RemoteError(f"unexpected echo body: {r.text!r}", status_code=r.status_code) from exc

    # ------------------------------------------------------------------
    # Async variants
    # ------------------------------------------------------------------

    def get_async(self, title: str) -> "Future[Note | None]":
        return self._executor.submit(self.get, title)

    def put_async(self, title: str, note: Note) -> "Future[None]":
        """Fire-and-forget PUT; a failure is logged and left on the future."""
        future = self._executor.submit(self.put, title, note)
        future.add_done_callback(lambda f: _log_put_failure(title, f))
        return future

    def echo_async(self, msg: str) -> "Future[str]":
        return self._executor.submit(self.echo, msg)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)
        self._client.close()

    def __enter__(self) -> "NoteAPI":
        return self

    def __exit__(self, *_: object) -> None:
        self.close()


def _log_put_failure(title: str, future: Future) -> None:
    if future.cancelled():
        return
    exc = future.exception()
    if exc is not None:
        logger.warning("PUT for note %r failed: %s", title, exc)

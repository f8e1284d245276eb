"""Exception types raised by the sharednotes package."""

from __future__ import annotations


class SharedNotesError(Exception):
    """Base class for every error raised by this package."""


class RemoteError(SharedNotesError):
    """The note server could not be reached or answered with an error."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class MalformedNoteError(RemoteError, ValueError):
    """A payload could not be turned into a valid :class:`~sharednotes.note.Note`."""

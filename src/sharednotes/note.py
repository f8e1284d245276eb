"""Core Note dataclass and its JSON representation."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from sharednotes.errors import MalformedNoteError


@dataclass
class Note:
    """A single shared note, addressed by its title."""

    title: str
    content: str = ""
    #: Epoch seconds of the last local write; only used to order versions
    updated_at: int = 0

    def is_valid(self) -> bool:
        """A note needs a non-empty title and some (possibly empty) content."""
        return isinstance(self.title, str) and bool(self.title) and isinstance(self.content, str)

    def is_newer_than(self, other: "Note | None") -> bool:
        """Strict ordering by ``updated_at``; equal timestamps are *not* newer."""
        return other is None or self.updated_at > other.updated_at

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "content": self.content,
            "updatedAt": self.updated_at,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)

    @classmethod
    def from_dict(cls, data: Any) -> "Note":
        """Build a note from a decoded JSON object.

        Raises :class:`MalformedNoteError` when ``title`` or ``content`` is
        missing or not a string.  A missing ``updatedAt`` reads as ``0`` so the
        note loses against any committed local version.
        """
        if not isinstance(data, dict):
            raise MalformedNoteError(f"expected a JSON object, got {type(data).__name__}")
        title = data.get("title")
        content = data.get("content")
        if not isinstance(title, str) or not title:
            raise MalformedNoteError("note is missing a title")
        if not isinstance(content, str):
            raise MalformedNoteError(f"note {title!r} is missing its content")
        raw_ts = data.get("updatedAt")
        if raw_ts is None:
            raw_ts = 0
        # JSON booleans decode to bool, which int() would happily accept
        if isinstance(raw_ts, bool) or not isinstance(raw_ts, (int, float)):
            raise MalformedNoteError(f"note {title!r} has a bad updatedAt: {raw_ts!r}")
        if isinstance(raw_ts, float) and not raw_ts.is_integer():
            raise MalformedNoteError(f"note {title!r} has a fractional updatedAt: {raw_ts!r}")
        return cls(title=title, content=content, updated_at=int(raw_ts))

    @classmethod
    def from_json(cls, text: str | bytes) -> "Note":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise MalformedNoteError(f"note body is not valid JSON: {exc}") from exc
        return cls.from_dict(data)

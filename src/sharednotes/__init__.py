"""Shared notes: a local note store kept in sync with a note server."""

import logging

from sharednotes.api import NoteAPI
from sharednotes.config import Settings, load_settings
from sharednotes.engine import MergeSession, SyncEngine
from sharednotes.errors import MalformedNoteError, RemoteError, SharedNotesError
from sharednotes.live import Stream, Subscription
from sharednotes.note import Note
from sharednotes.poller import Poller, PollerRegistry
from sharednotes.store import NoteStore

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "Note",
    "NoteStore",
    "NoteAPI",
    "Poller",
    "PollerRegistry",
    "SyncEngine",
    "MergeSession",
    "Stream",
    "Subscription",
    "Settings",
    "load_settings",
    "SharedNotesError",
    "RemoteError",
    "MalformedNoteError",
]

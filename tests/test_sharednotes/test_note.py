"""Unit tests for sharednotes.note.Note."""

import json

import pytest

from sharednotes.errors import MalformedNoteError, RemoteError
from sharednotes.note import Note

# ---------------------------------------------------------------------------
# Validity and ordering
# ---------------------------------------------------------------------------


class TestValidity:
    def test_regular_note_is_valid(self):
        assert Note("A", "x", 100).is_valid()

    def test_empty_content_is_valid(self):
        assert Note("A", "", 100).is_valid()

    def test_empty_title_is_invalid(self):
        assert not Note("", "x", 100).is_valid()

    def test_missing_fields_are_invalid(self):
        assert not Note(None, "x", 100).is_valid()  # type: ignore[arg-type]
        assert not Note("A", None, 100).is_valid()  # type: ignore[arg-type]


class TestOrdering:
    def test_newer_than_nothing(self):
        assert Note("A", "x", 0).is_newer_than(None)

    def test_strictly_greater_wins(self):
        assert Note("A", "y", 200).is_newer_than(Note("A", "x", 100))

    def test_equal_timestamp_is_not_newer(self):
        assert not Note("A", "y", 100).is_newer_than(Note("A", "x", 100))

    def test_older_is_not_newer(self):
        assert not Note("A", "y", 200).is_newer_than(Note("A", "x", 300))


# ---------------------------------------------------------------------------
# JSON
# ---------------------------------------------------------------------------


class TestToJson:
    def test_wire_keys(self):
        assert Note("A", "x", 100).to_dict() == {"title": "A", "content": "x", "updatedAt": 100}

    def test_to_json_is_parseable(self):
        data = json.loads(Note("Shopping list", "eggs ü", 5).to_json())
        assert data["title"] == "Shopping list"
        assert data["content"] == "eggs ü"


class TestFromJson:
    def test_parses_full_body(self):
        note = Note.from_json('{"title": "A", "content": "y", "updatedAt": 200}')
        assert note == Note("A", "y", 200)

    def test_missing_updated_at_reads_as_zero(self):
        assert Note.from_json('{"title": "A", "content": "y"}').updated_at == 0

    def test_integral_float_timestamp_accepted(self):
        assert Note.from_json('{"title": "A", "content": "y", "updatedAt": 200.0}').updated_at == 200

    def test_extra_keys_ignored(self):
        note = Note.from_dict({"title": "A", "content": "", "updatedAt": 1, "version": 3})
        assert note == Note("A", "", 1)

    @pytest.mark.parametrize(
        "body",
        [
            '{"content": "y", "updatedAt": 1}',
            '{"title": "A", "updatedAt": 1}',
            '{"title": null, "content": "y"}',
            '{"title": "A", "content": null}',
            '{"title": "", "content": "y"}',
            '{"title": "A", "content": "y", "updatedAt": "soon"}',
            '{"title": "A", "content": "y", "updatedAt": true}',
            '{"title": "A", "content": "y", "updatedAt": 1.9}',
            '{"title": "A", "content": "y", "updatedAt": "200"}',
            "[1, 2, 3]",
            "not json",
        ],
    )
    def test_malformed_bodies_raise(self, body):
        with pytest.raises(MalformedNoteError):
            Note.from_json(body)

    def test_malformed_is_a_remote_and_value_error(self):
        with pytest.raises(RemoteError):
            Note.from_json("{}")
        with pytest.raises(ValueError):
            Note.from_json("{}")

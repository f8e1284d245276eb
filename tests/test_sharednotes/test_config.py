"""Unit tests for sharednotes.config."""

import textwrap
from pathlib import Path

import pytest
from pydantic import ValidationError

from sharednotes.config import Settings, load_settings

_ENV_KEYS = (
    "SHAREDNOTES_SERVER_URL",
    "SHAREDNOTES_DB_PATH",
    "SHAREDNOTES_POLL_INTERVAL",
    "SHAREDNOTES_TIMEOUT",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def _write(tmp_path: Path, content: str) -> Path:
    path = tmp_path / "sharednotes.yaml"
    path.write_text(textwrap.dedent(content), encoding="utf-8")
    return path


# ---------------------------------------------------------------------------
# Defaults and validation
# ---------------------------------------------------------------------------


class TestDefaults:
    def test_defaults(self):
        s = load_settings()
        assert s == Settings()
        assert s.server_url == "https://sharednotes.goto.ucsd.edu"
        assert s.poll_interval == 3.0
        assert s.db_path == ":memory:"

    @pytest.mark.parametrize("field", ["poll_interval", "timeout"])
    def test_non_positive_durations_rejected(self, field):
        with pytest.raises(ValidationError):
            Settings(**{field: 0})

    def test_frozen(self):
        s = Settings()
        with pytest.raises(ValidationError):
            s.timeout = 1.0

    def test_unknown_override_rejected(self):
        with pytest.raises(ValidationError):
            load_settings(colour="blue")


# ---------------------------------------------------------------------------
# Layering
# ---------------------------------------------------------------------------


class TestLayering:
    def test_file_values(self, tmp_path: Path):
        path = _write(tmp_path, """\
            server_url: https://file.test
            poll_interval: 10
        """)
        s = load_settings(path)
        assert s.server_url == "https://file.test"
        assert s.poll_interval == 10.0
        assert s.timeout == 5.0

    def test_env_beats_file(self, tmp_path: Path, monkeypatch):
        path = _write(tmp_path, "server_url: https://file.test\n")
        monkeypatch.setenv("SHAREDNOTES_SERVER_URL", "https://env.test")
        assert load_settings(path).server_url == "https://env.test"

    def test_overrides_beat_env(self, monkeypatch):
        monkeypatch.setenv("SHAREDNOTES_TIMEOUT", "9")
        assert load_settings(timeout=2).timeout == 2.0

    def test_env_strings_are_coerced(self, monkeypatch):
        monkeypatch.setenv("SHAREDNOTES_POLL_INTERVAL", "0.5")
        assert load_settings().poll_interval == 0.5

    def test_empty_env_values_ignored(self, monkeypatch):
        monkeypatch.setenv("SHAREDNOTES_SERVER_URL", "")
        assert load_settings().server_url == "https://sharednotes.goto.ucsd.edu"

    def test_db_path_user_expanded(self):
        s = load_settings(db_path="~/notes.duckdb")
        assert not s.db_path.startswith("~")

    def test_returns_plain_settings(self, tmp_path: Path):
        path = _write(tmp_path, "timeout: 2\n")
        assert type(load_settings(path)) is Settings


# ---------------------------------------------------------------------------
# Settings file errors
# ---------------------------------------------------------------------------


class TestFileErrors:
    def test_unknown_keys_rejected(self, tmp_path: Path):
        path = _write(tmp_path, "server_url: x\ncolour: blue\n")
        with pytest.raises(ValidationError, match="colour"):
            load_settings(path)

    def test_bad_duration_rejected(self, tmp_path: Path):
        path = _write(tmp_path, "poll_interval: -1\n")
        with pytest.raises(ValidationError):
            load_settings(path)

    def test_empty_file_is_fine(self, tmp_path: Path):
        path = _write(tmp_path, "")
        assert load_settings(path) == Settings()

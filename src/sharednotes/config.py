"""Runtime settings resolved with pydantic-settings.

Values are layered, earlier sources winning:

1. keyword overrides passed to :func:`load_settings` (or to ``Settings``)
2. environment variables ``SHAREDNOTES_SERVER_URL``, ``SHAREDNOTES_DB_PATH``,
   ``SHAREDNOTES_POLL_INTERVAL``, ``SHAREDNOTES_TIMEOUT``
3. an optional YAML file::

       server_url: https://notes.example.org
       db_path: ~/.local/share/sharednotes/notes.duckdb
       poll_interval: 3
       timeout: 5

4. built-in defaults

Unknown keys in the file or the overrides are rejected.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

from sharednotes.api import DEFAULT_SERVER_URL, DEFAULT_TIMEOUT
from sharednotes.poller import DEFAULT_INTERVAL


class Settings(BaseSettings):
    """Where the server lives, where notes are kept, and how often to poll."""

    model_config = SettingsConfigDict(
        env_prefix="SHAREDNOTES_",
        env_ignore_empty=True,
        extra="forbid",
        frozen=True,
    )

    server_url: str = DEFAULT_SERVER_URL
    db_path: str = ":memory:"
    poll_interval: float = Field(default=DEFAULT_INTERVAL, gt=0)
    timeout: float = Field(default=DEFAULT_TIMEOUT, gt=0)

    @field_validator("db_path", mode="before")
    @classmethod
    def _expand_db_path(cls, value: Path | str) -> str:
        value = str(value)
        if value == ":memory:":
            return value
        return str(Path(value).expanduser())

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (init_settings, env_settings, YamlConfigSettingsSource(settings_cls))


def load_settings(path: Path | str | None = None, **overrides: Any) -> Settings:
    """Resolve :class:`Settings`, reading *path* as the YAML layer when given."""
    if path is None:
        return Settings(**overrides)

    class _FileSettings(Settings):
        model_config = SettingsConfigDict(yaml_file=str(path))

    resolved = _FileSettings(**overrides)
    return Settings(**resolved.model_dump())

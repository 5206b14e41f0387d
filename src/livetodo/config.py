"""Application settings for livetodo.

BaseSettings is a pydantic-settings model assembled from the mixins in
livetodo.settings_mixins. Opening a single store from these settings is
done by livetodo.store.configuration.

Sources, strongest first:
    1. Constructor arguments
    2. LIVETODO_* environment variables
    3. ./.livetodo/settings.json
    4. ~/.livetodo/settings.json
    5. .env
    6. Field defaults

The active settings come from SettingsContext when one is entered,
otherwise from a process-wide instance:

    with SettingsContext(BaseSettings(in_memory=True)):
        app = TodoCLIApp()
"""

from contextlib import contextmanager
from contextvars import ContextVar, Token
from pathlib import Path
from typing import Iterator

from pydantic_settings import (
    BaseSettings as PydanticBaseSettings,
    JsonConfigSettingsSource,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from livetodo.settings_mixins import AppSettingsMixin, CLISettingsMixin

__all__ = [
    "BaseSettings",
    "SettingsContext",
    "get_settings",
    "set_settings",
    "set_context_settings",
    "get_context_settings",
    "reload_settings",
]


def settings_files(app_name: str) -> list[Path]:
    """Candidate JSON settings files, project before user."""
    return [
        Path.cwd() / f".{app_name}" / "settings.json",
        Path.home() / f".{app_name}" / "settings.json",
    ]


class BaseSettings(AppSettingsMixin, CLISettingsMixin, PydanticBaseSettings):
    """Settings for the livetodo application."""

    model_config = SettingsConfigDict(
        env_prefix="LIVETODO_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[PydanticBaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Files are resolved against the class default, not an overridden app_name.
        app_name = cls.model_fields["app_name"].default
        json_sources = [
            JsonConfigSettingsSource(settings_cls, json_file=path)
            for path in settings_files(app_name)
            if path.is_file()
        ]
        return (init_settings, env_settings, *json_sources, dotenv_settings)


_context_settings: ContextVar[BaseSettings | None] = ContextVar("livetodo_settings", default=None)
_process_settings: BaseSettings | None = None


def get_settings() -> BaseSettings:
    """Settings for the current context, creating the process-wide instance on first use."""
    global _process_settings
    scoped = _context_settings.get()
    if scoped is not None:
        return scoped
    if _process_settings is None:
        _process_settings = BaseSettings()
    return _process_settings


def set_settings(settings: BaseSettings) -> None:
    global _process_settings
    _process_settings = settings


def set_context_settings(settings: BaseSettings | None) -> Token:
    """Scope settings to the current context; pass None to fall back to the global ones."""
    return _context_settings.set(settings)


def get_context_settings() -> BaseSettings | None:
    return _context_settings.get()


@contextmanager
def SettingsContext(settings: BaseSettings) -> Iterator[BaseSettings]:
    """Use ``settings`` for everything run inside the block."""
    token = _context_settings.set(settings)
    try:
        yield settings
    finally:
        _context_settings.reset(token)


def reload_settings() -> BaseSettings:
    """Drop cached and scoped settings and read them again from their sources."""
    global _process_settings
    _process_settings = None
    _context_settings.set(None)
    return get_settings()

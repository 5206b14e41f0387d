"""Field groups composed into livetodo.config.BaseSettings.

Kept apart from config.py so the store and cli packages can share them
without import cycles.
"""

from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator


class AppSettingsMixin:
    """Where the task store lives."""

    app_name: str = Field(
        default="livetodo",
        title="App Name",
        description="Name used for the config directory and the in-memory store identifier",
    )
    workspace_dir: Path = Field(
        default_factory=lambda: Path.home() / ".livetodo",
        title="Workspace Directory",
        description="Directory holding the store file",
    )
    store_filename: str = Field(
        default="default.store.json",
        title="Store File",
        description="File name of the task store inside the workspace",
    )
    in_memory: bool = Field(
        default=False,
        title="In-Memory Store",
        description="Keep tasks in memory only; nothing is written to disk",
    )

    @field_validator("workspace_dir", mode="before")
    @classmethod
    def _expand_user(cls, value: str | Path) -> Path:
        return Path(value).expanduser()

    @property
    def store_path(self) -> Path:
        return self.workspace_dir / self.store_filename


class CLISettingsMixin:
    """Diagnostics written to stderr."""

    log_level: Literal["debug", "info", "warning", "error"] = Field(
        default="warning",
        title="Log Level",
    )
    log_format: Literal["console", "json"] = Field(
        default="console",
        title="Log Format",
        description="console for reading in a terminal, json for log collection",
    )

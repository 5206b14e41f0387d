"""Fixtures shared by the livetodo tests: isolated settings and open stores."""

import os
import tempfile
from pathlib import Path
from typing import Iterator

import pytest

from livetodo.config import BaseSettings, reload_settings, set_context_settings, set_settings
from livetodo.store import ObjectStore, StoreConfiguration
from livetodo.todo import TodoList

ENV_PREFIX = "LIVETODO_"


class MockContext:
    """Installs throwaway settings rooted in a temporary workspace.

    LIVETODO_* variables are hidden while the context is active and the
    global settings are reloaded on exit.

        with MockContext(in_memory=True) as ctx:
            StoreConfiguration.from_settings(ctx.settings)
    """

    def __init__(self, **overrides) -> None:
        self.overrides = overrides
        self.workspace: tempfile.TemporaryDirectory | None = None
        self.active: BaseSettings | None = None
        self.hidden_env: dict[str, str] = {}

    def __enter__(self) -> "MockContext":
        self.hidden_env = {k: os.environ.pop(k) for k in list(os.environ) if k.startswith(ENV_PREFIX)}
        self.workspace = tempfile.TemporaryDirectory(prefix="livetodo-")
        self.active = BaseSettings(workspace_dir=Path(self.workspace.name), **self.overrides)
        set_settings(self.active)
        return self

    def __exit__(self, *exc_info) -> None:
        set_context_settings(None)
        os.environ.update(self.hidden_env)
        reload_settings()
        if self.workspace is not None:
            self.workspace.cleanup()
            self.workspace = None

    @property
    def settings(self) -> BaseSettings:
        assert self.active is not None, "enter the MockContext first"
        return self.active

    @property
    def workspace_dir(self) -> Path:
        assert self.workspace is not None, "enter the MockContext first"
        return Path(self.workspace.name)


@pytest.fixture
def mock_context() -> Iterator[MockContext]:
    with MockContext() as ctx:
        yield ctx


@pytest.fixture
def temp_workspace(tmp_path: Path) -> Path:
    """An empty directory nothing else writes to."""
    path = tmp_path / "ws"
    path.mkdir()
    return path


@pytest.fixture
def store() -> Iterator[ObjectStore]:
    """An open in-memory store, closed after the test."""
    store = ObjectStore(StoreConfiguration(in_memory_identifier="test"))
    yield store
    store.close()


@pytest.fixture
def store_path(temp_workspace: Path) -> Path:
    return temp_workspace / "tasks.store.json"


@pytest.fixture
def file_store(store_path: Path) -> Iterator[ObjectStore]:
    """An open file-backed store in a temporary workspace."""
    store = ObjectStore(StoreConfiguration(path=store_path))
    yield store
    store.close()


@pytest.fixture
def todos(store: ObjectStore) -> TodoList:
    return TodoList(store)

"""Tests for the interactive task list app."""

import io

import pytest
from prompt_toolkit.document import Document
from rich.console import Console

from livetodo.cli.app import SlashCommandCompleter, TodoCLIApp, create_app
from livetodo.store import ObjectStore, StoreConfiguration, Task
from tests.conftest import MockContext


class ScriptedSession:
    """Stands in for PromptSession, replaying a fixed list of inputs."""

    def __init__(self, inputs: list[str], end: type[BaseException] = EOFError) -> None:
        self._inputs = list(inputs)
        self._end = end
        self.prompts = 0

    async def prompt_async(self, message: str = "") -> str:
        self.prompts += 1
        if not self._inputs:
            raise self._end()
        return self._inputs.pop(0)


@pytest.fixture
def console() -> Console:
    return Console(file=io.StringIO(), record=True, width=100, color_system=None)


@pytest.fixture
def app(store: ObjectStore, console: Console) -> TodoCLIApp:
    app = TodoCLIApp(store=store, console=console)
    yield app
    app.shutdown()


def _titles(app: TodoCLIApp, section: str) -> list[str]:
    return [task.title for task in app.view(section)]


class TestSlashCommandCompleter:
    """Tests for SlashCommandCompleter."""

    def test_completes_slash_commands(self):
        completer = SlashCommandCompleter(["toggle", "t", "help"])

        completions = list(completer.get_completions(Document("/to"), None))

        assert [c.text for c in completions] == ["/toggle"]

    def test_ignores_plain_text(self):
        completer = SlashCommandCompleter(["toggle"])

        assert list(completer.get_completions(Document("to"), None)) == []


class TestProcessInput:
    """Tests for TodoCLIApp.process_input."""

    @pytest.mark.asyncio
    async def test_plain_text_adds_task(self, app: TodoCLIApp):
        await app.process_input("Buy milk")

        assert _titles(app, "active") == ["Buy milk"]

    @pytest.mark.asyncio
    async def test_blank_input_ignored(self, app: TodoCLIApp):
        await app.process_input("   ")

        assert app.store.is_empty

    @pytest.mark.asyncio
    async def test_add_command(self, app: TodoCLIApp):
        await app.process_input("/add Buy milk")
        await app.process_input("/a Walk dog")

        assert _titles(app, "active") == ["Buy milk", "Walk dog"]

    @pytest.mark.asyncio
    async def test_toggle_and_reopen(self, app: TodoCLIApp):
        for title in ("A", "B", "C"):
            await app.process_input(title)

        await app.process_input("/toggle 1 3")
        assert _titles(app, "active") == ["B"]
        assert _titles(app, "completed") == ["A", "C"]

        await app.process_input("/reopen 2")
        assert _titles(app, "active") == ["B", "C"]
        assert _titles(app, "completed") == ["A"]

    @pytest.mark.asyncio
    async def test_repeated_toggle_position_applies_once(self, app: TodoCLIApp):
        await app.process_input("Buy milk")
        version = app.store.version

        await app.process_input("/toggle 1 1")

        assert _titles(app, "active") == []
        assert _titles(app, "completed") == ["Buy milk"]
        assert app.store.version == version + 1

    @pytest.mark.asyncio
    async def test_delete_by_position(self, app: TodoCLIApp):
        for title in ("A", "B", "C"):
            await app.process_input(title)

        await app.process_input("/delete 2")

        assert _titles(app, "active") == ["A", "C"]

    @pytest.mark.asyncio
    async def test_delete_completed(self, app: TodoCLIApp):
        await app.process_input("A")
        await app.process_input("B")
        await app.process_input("/toggle 1")

        await app.process_input("/rm 1 --completed")

        assert _titles(app, "active") == ["B"]
        assert _titles(app, "completed") == []

    @pytest.mark.asyncio
    async def test_errors_are_printed(self, app: TodoCLIApp, console: Console):
        await app.process_input("A")

        await app.process_input("/toggle 7")
        await app.process_input("/delete zero")
        await app.process_input("/add   ")

        output = console.export_text()
        assert "No task at position 6" in output
        assert "Invalid position" in output
        assert "must not be empty" in output
        assert _titles(app, "active") == ["A"]

    @pytest.mark.asyncio
    async def test_unknown_command(self, app: TodoCLIApp, console: Console):
        await app.process_input("/frobnicate")

        output = console.export_text()
        assert "Unknown command: /frobnicate" in output
        assert "/help" in output

    @pytest.mark.asyncio
    async def test_help_lists_commands(self, app: TodoCLIApp, console: Console):
        await app.process_input("/help")

        output = console.export_text()
        for name in ("/add", "/toggle", "/reopen", "/delete", "/where", "/exit"):
            assert name in output

    @pytest.mark.asyncio
    async def test_where(self, app: TodoCLIApp, console: Console):
        await app.process_input("A")

        await app.process_input("/where")

        output = console.export_text()
        assert "memory:test" in output
        assert "1 active" in output

    @pytest.mark.asyncio
    async def test_exit(self, app: TodoCLIApp):
        await app.process_input("/exit")

        assert app.should_exit


class TestRendering:
    """Tests for notification-driven rendering."""

    def test_initial_render(self, app: TodoCLIApp, console: Console):
        app.render()

        output = console.export_text()
        assert "Active Tasks" in output
        assert "Completed Tasks" in output
        assert "nothing here" in output

    @pytest.mark.asyncio
    async def test_renders_only_after_change(self, app: TodoCLIApp, console: Console):
        app.render()
        console.export_text()

        app.render()
        assert console.export_text() == ""

        await app.process_input("Buy milk")
        assert app._needs_render

        app.render()
        assert "Buy milk" in console.export_text()

    def test_external_commit_triggers_render(self, app: TodoCLIApp, store: ObjectStore):
        app.render()

        with store.write() as txn:
            txn.create(Task, title="from elsewhere")

        assert app._needs_render

    @pytest.mark.asyncio
    async def test_list_forces_render(self, app: TodoCLIApp, console: Console):
        app.render()
        console.export_text()

        await app.process_input("/list")

        assert "Active Tasks" in console.export_text()


class TestRun:
    """Tests for the prompt loop."""

    @pytest.mark.asyncio
    async def test_run_until_eof(self, store: ObjectStore, console: Console):
        app = TodoCLIApp(store=store, console=console)
        session = ScriptedSession(["Buy milk", "/toggle 1"])

        await app.run(session=session)

        assert session.prompts == 3
        assert [t.title for t in app.todos.completed_tasks] == ["Buy milk"]
        assert "Goodbye" in console.export_text()
        assert not store.is_closed

    @pytest.mark.asyncio
    async def test_run_until_exit_command(self, store: ObjectStore, console: Console):
        app = TodoCLIApp(store=store, console=console)
        session = ScriptedSession(["A", "/exit", "never read"])

        await app.run(session=session)

        assert session.prompts == 2
        assert _titles(app, "active") == ["A"]

    @pytest.mark.asyncio
    async def test_keyboard_interrupt_ends_loop(self, store: ObjectStore, console: Console):
        app = TodoCLIApp(store=store, console=console)

        await app.run(session=ScriptedSession([], end=KeyboardInterrupt))

        assert "Goodbye" in console.export_text()

    @pytest.mark.asyncio
    async def test_owned_store_closed_on_exit(self, console: Console):
        with MockContext() as ctx:
            app = TodoCLIApp(settings=ctx.settings, console=console)
            await app.run(session=ScriptedSession(["Buy milk"]))

            assert app.store.is_closed
            with ObjectStore(StoreConfiguration(path=ctx.settings.store_path)) as reopened:
                assert [t.title for t in reopened.all(Task)] == ["Buy milk"]


class TestCreateApp:
    """Tests for create_app."""

    def test_create_app_in_memory(self, monkeypatch):
        configured = []
        monkeypatch.setattr("livetodo.cli.app.configure_logging", configured.append)

        with MockContext(in_memory=True) as ctx:
            app = create_app(ctx.settings)
            try:
                assert app.store.config.is_in_memory
                assert app.settings is ctx.settings
                assert configured == [ctx.settings]
            finally:
                app.shutdown()

        assert app.store.is_closed

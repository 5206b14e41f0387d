"""Interactive task list.

The app is a thin collaborator of the store: it reads the two live views
of TodoList, turns user input into add/toggle/delete intents, and
re-renders whenever either view reports a change.
"""

from typing import Any

from prompt_toolkit import PromptSession
from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.document import Document
from prompt_toolkit.history import InMemoryHistory
from rich.console import Console, Group
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from livetodo.cli.builtin_commands import BUILTIN_COMMANDS
from livetodo.cli.commands import CommandRegistry
from livetodo.config import BaseSettings, get_settings
from livetodo.errors import StoreError
from livetodo.logging import Loggers, bind_context, clear_context, configure_logging
from livetodo.store import CollectionChange, ObjectStore, Results
from livetodo.todo import TodoList

logger = Loggers.cli()


class SlashCommandCompleter(Completer):
    """Completes "/name" at the start of the line; plain task titles get nothing."""

    def __init__(self, names: list[str]) -> None:
        self.names = sorted(names)

    def get_completions(self, document: Document, complete_event):
        word = document.text_before_cursor
        if not word.startswith("/") or " " in word:
            return
        prefix = word[1:].lower()
        for name in self.names:
            if name.lower().startswith(prefix):
                yield Completion("/" + name, start_position=-len(word))


class TodoCLIApp:
    """Prompt loop rendering the active and completed sections.

    The app opens the store described by settings unless one is passed
    in, in which case the caller stays responsible for closing it.
    """

    def __init__(
        self,
        settings: BaseSettings | None = None,
        store: ObjectStore | None = None,
        console: Console | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self.console = console or Console()
        self._owns_store = store is None
        self.store = store if store is not None else ObjectStore.from_settings(self._settings)
        self.todos = TodoList(self.store)

        self.command_registry = CommandRegistry(cls() for cls in BUILTIN_COMMANDS)

        self.should_exit = False
        self._needs_render = True
        self._tokens = [
            self.todos.active_tasks.observe(self._on_change),
            self.todos.completed_tasks.observe(self._on_change),
        ]

    @property
    def settings(self) -> BaseSettings:
        return self._settings

    def view(self, section: str) -> Results:
        """The live view behind a section name ("active" or "completed")."""
        if section == "completed":
            return self.todos.completed_tasks
        return self.todos.active_tasks

    def _on_change(self, results: Results, change: CollectionChange) -> None:
        logger.debug(
            "view_changed",
            view=repr(results),
            inserted=len(change.insertions),
            deleted=len(change.deletions),
            modified=len(change.modifications),
        )
        self._needs_render = True

    # ---- rendering ----

    def _section(self, title: str, results: Results, done: bool) -> Panel:
        table = Table(show_header=False, box=None, padding=(0, 1))
        table.add_column("#", style="dim", justify="right", no_wrap=True)
        table.add_column("Task")
        table.add_column("", no_wrap=True)
        for position, task in enumerate(results, start=1):
            if done:
                table.add_row(str(position), f"[grey50]{escape(task.title)}[/grey50]", "[green]✔[/green]")
            else:
                table.add_row(str(position), escape(task.title), "[dim]○[/dim]")
        if not len(results):
            table.add_row("", "[dim]nothing here[/dim]", "")
        return Panel(table, title=f"[bold]{title}[/bold]", title_align="left", border_style="cyan")

    def render(self, force: bool = False) -> None:
        """Print both sections if a view changed since the last render."""
        if not (force or self._needs_render):
            return
        self._needs_render = False
        self.console.print(
            Group(
                self._section("Active Tasks", self.todos.active_tasks, done=False),
                self._section("Completed Tasks", self.todos.completed_tasks, done=True),
            )
        )

    # ---- input handling ----

    async def process_input(self, user_input: str) -> None:
        """Route a line of input: slash commands, otherwise a new task title."""
        user_input = user_input.strip()
        if not user_input:
            return
        try:
            if user_input.startswith("/"):
                await self._handle_command(user_input)
            else:
                self.todos.add_task(user_input)
        except (StoreError, IndexError, ValueError) as e:
            logger.debug("intent_failed", error=str(e), error_type=type(e).__name__)
            self.console.print(f"[red]{escape(str(e))}[/red]")

    async def _handle_command(self, user_input: str) -> None:
        command_name, command, args = self.command_registry.resolve(user_input)
        if command is None:
            self.console.print(f"[red]Unknown command: /{escape(command_name)}[/red]")
            self.console.print("[dim]Type /help to see available commands[/dim]")
            return
        logger.debug("executing_command", command=command.name, args=args)
        await command.execute(args, self)

    def stop(self) -> None:
        """Stop the prompt loop after the current command."""
        self.should_exit = True

    def shutdown(self) -> None:
        """Stop observing and close the store if this app opened it."""
        for token in self._tokens:
            token.invalidate()
        self._tokens = []
        if self._owns_store:
            self.store.close()

    async def run(self, session: Any = None) -> None:
        """Run the main prompt loop until /exit, Ctrl-D or Ctrl-C."""
        bind_context(store=self.store.location)
        logger.info("app_starting")
        self.console.print(f"[dim]Store: {self.store.location}[/dim]")
        session = session or PromptSession(
            history=InMemoryHistory(),
            completer=SlashCommandCompleter(self.command_registry.get_completions()),
        )
        try:
            while not self.should_exit:
                self.render()
                try:
                    text = await session.prompt_async("new task or /command > ")
                except (EOFError, KeyboardInterrupt):
                    break
                await self.process_input(text)
        finally:
            self.shutdown()
            logger.info("app_ending")
            clear_context()
        self.console.print("[dim]Goodbye![/dim]")


def create_app(settings: BaseSettings | None = None) -> TodoCLIApp:
    """Configure logging and build the app from settings."""
    settings = settings or get_settings()
    configure_logging(settings)
    return TodoCLIApp(settings)

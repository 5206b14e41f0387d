"""Built-in slash commands for the task list CLI.

Positions typed by the user are 1-based and refer to the section as it
is currently shown.
"""

from typing import TYPE_CHECKING, Any

from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from livetodo.cli.commands import Command, CommandCategory

if TYPE_CHECKING:
    from livetodo.cli.app import TodoCLIApp


class HelpCommand(Command):
    """Display help information about available commands."""

    def __init__(self) -> None:
        super().__init__(
            name="help",
            description="Show available commands",
            aliases=["?"],
            category=CommandCategory.GENERAL,
        )

    async def execute(self, args: str, app: Any) -> None:
        table = Table(show_header=False, box=None, padding=(0, 2, 0, 0))
        table.add_column("Command", style="bold cyan", no_wrap=True)
        table.add_column("Usage", style="dim", no_wrap=True)
        table.add_column("Description")

        commands = app.command_registry.all_commands()
        for category in CommandCategory:
            members = [c for c in commands if c.category is category]
            if not members:
                continue
            table.add_row(f"[bold]{category.value.title()}[/bold]", "", "")
            for cmd in members:
                name = f"/{cmd.name}"
                if cmd.aliases:
                    name += f" [dim]({escape(', '.join(cmd.aliases))})[/dim]"
                table.add_row(name, escape(cmd.usage), cmd.description)

        app.console.print(
            Panel(table, title="[bold]Commands[/bold]", subtitle="Plain text adds a task", border_style="cyan")
        )


class AddCommand(Command):
    """Add an active task."""

    def __init__(self) -> None:
        super().__init__(
            name="add",
            description="Add a new task",
            aliases=["a"],
            usage="/add <title>",
            examples=["/add Buy milk"],
            category=CommandCategory.TASKS,
        )

    async def execute(self, args: str, app: "TodoCLIApp") -> None:
        app.todos.add_task(args.strip())


class ToggleCommand(Command):
    """Mark active tasks as completed."""

    def __init__(self) -> None:
        super().__init__(
            name="toggle",
            description="Complete the active task(s) at the given position(s)",
            aliases=["t", "check"],
            usage="/toggle <n> [n ...]",
            examples=["/toggle 1", "/toggle 2 3"],
            category=CommandCategory.TASKS,
        )
        self.section = "active"

    async def execute(self, args: str, app: "TodoCLIApp") -> None:
        app.todos.toggle_at(app.view(self.section), self.parse_args(args).positions())


class ReopenCommand(ToggleCommand):
    """Move completed tasks back to the active section."""

    def __init__(self) -> None:
        Command.__init__(
            self,
            name="reopen",
            description="Reopen the completed task(s) at the given position(s)",
            aliases=["undo"],
            usage="/reopen <n> [n ...]",
            examples=["/reopen 1"],
            category=CommandCategory.TASKS,
        )
        self.section = "completed"


class DeleteCommand(Command):
    """Delete tasks by their position in a section."""

    def __init__(self) -> None:
        super().__init__(
            name="delete",
            description="Delete task(s) by position (active section unless --completed)",
            aliases=["rm", "del"],
            usage="/delete <n> [n ...] [--completed]",
            examples=["/delete 2", "/delete 1 3 --completed"],
            category=CommandCategory.TASKS,
        )

    async def execute(self, args: str, app: "TodoCLIApp") -> None:
        parsed = self.parse_args(args)
        section = "completed" if parsed.has_flag("completed") else "active"
        app.todos.delete_at(app.view(section), parsed.positions())


class ListCommand(Command):
    """Show both sections."""

    def __init__(self) -> None:
        super().__init__(
            name="list",
            description="Show active and completed tasks",
            aliases=["ls"],
            category=CommandCategory.TASKS,
        )

    async def execute(self, args: str, app: "TodoCLIApp") -> None:
        app.render(force=True)


class WhereCommand(Command):
    """Print where the store lives."""

    def __init__(self) -> None:
        super().__init__(
            name="where",
            description="Show the store location",
            category=CommandCategory.STORE,
        )

    async def execute(self, args: str, app: "TodoCLIApp") -> None:
        store = app.store
        app.console.print(
            f"[dim]Store:[/dim] {store.location} "
            f"[dim](generation {store.generation}, {len(app.todos.active_tasks)} active, "
            f"{len(app.todos.completed_tasks)} completed)[/dim]"
        )


class ExitCommand(Command):
    """Exit the application."""

    def __init__(self) -> None:
        super().__init__(
            name="exit",
            description="Exit the application",
            aliases=["quit", "q"],
            category=CommandCategory.GENERAL,
        )

    async def execute(self, args: str, app: Any) -> None:
        app.stop()


BUILTIN_COMMANDS: tuple[type[Command], ...] = (
    HelpCommand,
    AddCommand,
    ToggleCommand,
    ReopenCommand,
    DeleteCommand,
    ListCommand,
    WhereCommand,
    ExitCommand,
)

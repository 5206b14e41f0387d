"""Slash commands for the task list prompt.

A command receives everything typed after its name and the running app.
Task commands address rows by their 1-based position in a section, as
printed by the app.

Example:

    class RenameCommand(Command):
        '''Rename an active task.'''

        def __init__(self):
            super().__init__(
                name="rename",
                description="Rename an active task",
                usage="/rename <n> <title>",
                category=CommandCategory.TASKS,
            )

        async def execute(self, args: str, app: Any) -> None:
            position, _, title = args.strip().partition(" ")
            [index] = ParsedArgs(position).positions()
            task = app.todos.task_at(app.todos.active_tasks, index)
            app.todos.rename_task(task.id, title)
"""

import shlex
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable


class CommandCategory(Enum):
    """Groups shown by /help."""

    GENERAL = "general"
    TASKS = "tasks"
    STORE = "store"


@dataclass
class ParsedArgs:
    """Arguments split into positional text and --options."""

    positional: str
    options: dict[str, str] = field(default_factory=dict)

    def has_flag(self, name: str) -> bool:
        return name in self.options

    def get_option(self, name: str, default: str | None = None) -> str | None:
        return self.options.get(name, default)

    def positions(self) -> list[int]:
        """Zero-based indices for 1-based positions like "1 3,4".

        Raises:
            ValueError: No positions, or a token that is not a positive integer.
        """
        indices: list[int] = []
        for token in self.positional.replace(",", " ").split():
            if not token.isdigit() or int(token) < 1:
                raise ValueError(f"Invalid position: {token!r}")
            indices.append(int(token) - 1)
        if not indices:
            raise ValueError("Give at least one task position")
        return indices


class Command(ABC):
    """Base class for slash commands; subclasses implement execute()."""

    def __init__(
        self,
        name: str,
        description: str,
        aliases: list[str] | None = None,
        usage: str | None = None,
        examples: list[str] | None = None,
        category: CommandCategory = CommandCategory.GENERAL,
    ) -> None:
        self.name = name
        self.description = description
        self.aliases = aliases or []
        self.usage = usage or f"/{name}"
        self.examples = examples or []
        self.category = category

    @property
    def names(self) -> list[str]:
        """The command name followed by its aliases."""
        return [self.name, *self.aliases]

    @abstractmethod
    async def execute(self, args: str, app: Any) -> None:
        """Run the command.

        Args:
            args: Text after the command name.
            app: The running TodoCLIApp.
        """

    def parse_args(self, args: str) -> ParsedArgs:
        """Split shell-style arguments into positional text and options.

        Accepts --flag, --key=value and --key value. Quoted text stays
        one token.

        Raises:
            ValueError: Unbalanced quotes.
        """
        tokens = shlex.split(args)
        options: dict[str, str] = {}
        positional: list[str] = []

        while tokens:
            token = tokens.pop(0)
            if not token.startswith("--"):
                positional.append(token)
                continue
            key, sep, value = token[2:].partition("=")
            if sep:
                options[key] = value
            elif tokens and not tokens[0].startswith("-"):
                options[key] = tokens.pop(0)
            else:
                options[key] = "true"

        return ParsedArgs(" ".join(positional), options)


class CommandRegistry:
    """Slash commands addressable by name or alias."""

    def __init__(self, commands: Iterable[Command] = ()) -> None:
        self._commands: dict[str, Command] = {}
        for command in commands:
            self.register(command)

    def register(self, command: Command) -> None:
        """Add a command; a later command with the same name or alias wins."""
        for name in command.names:
            self._commands[name] = command

    def get(self, name: str) -> Command | None:
        return self._commands.get(name)

    def resolve(self, line: str) -> tuple[str, Command | None, str]:
        """Split "/name args" into the name, its command (if any) and the args."""
        name, _, args = line.removeprefix("/").strip().partition(" ")
        return name, self.get(name), args.strip()

    def all_commands(self) -> list[Command]:
        """Registered commands without alias duplicates, in registration order."""
        unique: dict[int, Command] = {}
        for command in self._commands.values():
            unique.setdefault(id(command), command)
        return list(unique.values())

    def get_completions(self) -> list[str]:
        """Every name and alias, for the prompt completer."""
        return list(self._commands)

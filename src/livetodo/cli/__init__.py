"""Terminal UI for livetodo."""

from livetodo.cli.app import SlashCommandCompleter, TodoCLIApp, create_app
from livetodo.cli.commands import Command, CommandCategory, CommandRegistry, ParsedArgs

__all__ = [
    "Command",
    "CommandCategory",
    "CommandRegistry",
    "ParsedArgs",
    "SlashCommandCompleter",
    "TodoCLIApp",
    "create_app",
]

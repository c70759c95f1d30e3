"""CLI commands: 'create <provider>' and 'rm <provider> <id>'."""

from vmctl.commands.dispatch import DISPATCH_TABLE, register_create_command, register_rm_command

__all__ = ["DISPATCH_TABLE", "register_create_command", "register_rm_command"]

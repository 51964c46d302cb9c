"""Adapters — bindings for external processes.

Public re-exports for convenient access.
"""

from create_enfyra_be.adapters.shell.command import CommandResult, run_command

__all__ = [
    "CommandResult",
    "run_command",
]

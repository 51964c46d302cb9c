"""
Shell command adapter — run external commands and capture their output.

The single place where the scaffolder spawns child processes (git,
package managers, version checks).  Never raises for a failed or
missing command: the outcome is captured in a ``CommandResult``.
"""

from __future__ import annotations

import logging
import subprocess
import time
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

# Conventional shell exit codes
EXIT_NOT_FOUND = 127
EXIT_TIMEOUT = 124


@dataclass
class CommandResult:
    """Outcome of one child process."""

    args: list[str]
    returncode: int
    output: str = ""                  # stdout, with stderr merged in
    duration_ms: int = 0
    metadata: dict = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def command(self) -> str:
        return " ".join(self.args)


def run_command(
    args: list[str],
    cwd: Path | str | None = None,
    timeout: float | None = None,
) -> CommandResult:
    """Run ``args`` and capture stdout+stderr as one stream.

    Args:
        args: Command and arguments (no shell).
        cwd: Working directory.
        timeout: Seconds before the process is killed; ``None`` waits
            for the process to exit.

    Returns:
        CommandResult. A missing executable yields exit code 127, a
        timeout exit code 124.
    """
    logger.debug("Executing: %s (cwd=%s)", " ".join(args), cwd)
    start = time.monotonic()

    try:
        proc = subprocess.run(
            args,
            cwd=str(cwd) if cwd else None,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            timeout=timeout,
        )
    except FileNotFoundError:
        return CommandResult(
            args=list(args),
            returncode=EXIT_NOT_FOUND,
            output=f"command not found: {args[0]}",
            duration_ms=int((time.monotonic() - start) * 1000),
        )
    except subprocess.TimeoutExpired as exc:
        partial = exc.output or ""
        if isinstance(partial, bytes):
            partial = partial.decode(errors="replace")
        return CommandResult(
            args=list(args),
            returncode=EXIT_TIMEOUT,
            output=f"{partial}\nCommand timed out after {timeout}s".lstrip(),
            duration_ms=int((time.monotonic() - start) * 1000),
            metadata={"timeout": timeout},
        )

    elapsed_ms = int((time.monotonic() - start) * 1000)
    result = CommandResult(
        args=list(args),
        returncode=proc.returncode,
        output=proc.stdout or "",
        duration_ms=elapsed_ms,
    )
    if not result.ok:
        logger.info("Command failed (%d): %s", proc.returncode, result.command)
    return result

"""Command runner for external tools (openssl)."""

from __future__ import annotations

import subprocess
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from loguru import logger


@dataclass
class CommandResult:
    """Outcome of one external command."""

    success: bool
    stdout: str = ""
    stderr: str = ""
    returncode: int = 0


class CommandRunner:
    """Runs external tools and captures their text output.

    Args:
        cwd: Working directory for every command (None for the current one)
        timeout: Seconds before a command is killed (None to wait forever)
    """

    def __init__(self, cwd: Path | None = None, timeout: float | None = None) -> None:
        self.cwd = cwd
        self.timeout = timeout

    def run(self, cmd: Sequence[str]) -> CommandResult:
        """Run ``cmd`` to completion.

        Raises:
            subprocess.TimeoutExpired: If the command outlives the timeout
            FileNotFoundError: If the executable does not exist
        """
        args = list(cmd)
        logger.debug(f"Running: {' '.join(args)}")
        completed = subprocess.run(
            args,
            cwd=self.cwd,
            capture_output=True,
            text=True,
            check=False,
            timeout=self.timeout,
        )
        if completed.returncode != 0:
            logger.debug(f"{args[0]} exited with {completed.returncode}")
        return CommandResult(
            success=completed.returncode == 0,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
            returncode=completed.returncode,
        )

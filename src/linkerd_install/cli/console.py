"""Console output and error handling for CLI commands.

All human-readable output goes to stderr so stdout carries nothing but the
rendered manifest.
"""

from __future__ import annotations

from collections.abc import Callable
from functools import wraps

import typer
from rich.console import Console, ConsoleRenderable
from rich.panel import Panel

from ..errors import InstallError


class CLIConsole:
    """Rich console wrapper for consistent CLI output."""

    def __init__(self, console: Console | None = None) -> None:
        """Initialize the CLI console (stderr by default)."""
        self.console = console or Console(stderr=True)

    def print(self, msg: ConsoleRenderable | str | None = None) -> None:
        self.console.print(msg)

    def warn(self, msg: str) -> None:
        """Print a warning without interpreting rich markup in ``msg``."""
        self.console.print("⚠️  ", style="yellow", end="")
        self.console.print(msg, markup=False, soft_wrap=True)

    def handle_error(
        self, message: str, details: str | None = None, exit_code: int = 1
    ) -> None:
        """Handle an error by printing a message and exiting.

        Args:
            message: Error message to display
            details: Optional additional details
            exit_code: Exit code to use
        """
        # Diagnostics are printed verbatim, without rich markup
        self.console.print(
            f"\n❌ {message}\n", style="bold red", markup=False, soft_wrap=True
        )
        if details:
            self.console.print(Panel(details, title="Details", border_style="red"))
        raise typer.Exit(exit_code)


def with_error_handling(func: Callable[..., None]) -> Callable[..., None]:
    """Decorator to wrap command functions with standard error handling.

    InstallError is printed as a diagnostic and exits with status 1;
    an interrupt exits with status 130.
    """

    @wraps(func)
    def wrapper(*args: object, **kwargs: object) -> None:
        try:
            func(*args, **kwargs)
        except InstallError as e:
            console.handle_error(e.message, e.details)
        except KeyboardInterrupt:
            console.print("\n[dim]Operation cancelled by user.[/dim]")
            raise typer.Exit(130) from None

    return wrapper


# Shared console instance for consistent output
console = CLIConsole()

"""CLI context and dependency container."""

from __future__ import annotations

from dataclasses import dataclass

import click
import typer

from ..options import InstallOptions
from .console import CLIConsole, console


@dataclass(frozen=True)
class CLIContext:
    """Runtime dependencies for CLI commands."""

    console: CLIConsole
    options: InstallOptions


def build_cli_context(**overrides: object) -> CLIContext:
    """Build a fresh CLIContext from the environment and explicit options."""
    return CLIContext(console=console, options=InstallOptions.from_env(**overrides))


def get_cli_context(ctx: typer.Context | None = None) -> CLIContext:
    """Return the CLIContext from Typer, falling back to a new instance."""
    context = ctx or click.get_current_context(silent=True)
    if context and isinstance(context.obj, CLIContext):
        return context.obj
    return build_cli_context()

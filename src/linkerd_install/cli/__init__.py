"""Main CLI application module.

Command Groups:
- install: render the Linkerd control plane (whole, or by stage)
"""

import sys
from typing import Annotated

import typer
from loguru import logger

from .install import install_app

# Create the main CLI application
app = typer.Typer(
    help="linkerd-install - Render Linkerd control-plane manifests",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def configure_logging(verbose: bool) -> None:
    """Send log records to stderr, at DEBUG when verbose."""
    logger.remove()
    logger.add(
        sys.stderr,
        level="DEBUG" if verbose else "WARNING",
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
    )


@app.callback()
def main_callback(
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Turn on debug logging"),
    ] = False,
) -> None:
    """Render Linkerd installation manifests."""
    configure_logging(verbose)


app.add_typer(install_app, name="install")


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()

"""Shared utilities for CLI commands."""

from pathlib import Path
from typing import NoReturn

import click

from quarkus_rag.utils.exceptions import QuarkusRagError
from quarkus_rag.utils.logger import configure_logging


def load_guide_titles(guides_file: Path) -> list[str]:
    """Load guide titles from a text file (one per line).

    Blank lines and lines starting with ``#`` are ignored.

    Args:
        guides_file: Path to file containing guide titles, e.g. "kafka"

    Returns:
        List of guide title strings

    Raises:
        FileNotFoundError: If file doesn't exist
        ValueError: If file is empty
    """
    if not guides_file.exists():
        raise FileNotFoundError(f"Guides file not found: {guides_file}")

    titles = []
    with guides_file.open("r") as f:
        for line in f:
            stripped_line = line.strip()
            if stripped_line and not stripped_line.startswith("#"):
                titles.append(stripped_line)

    if not titles:
        raise ValueError(f"No guide titles found in file: {guides_file}")

    return titles


def setup_logging(log_level: str, console_logs: bool) -> None:
    configure_logging(log_level, json_output=not console_logs)


def fail(message: str, error: Exception | None = None) -> NoReturn:
    """Report a fatal error and exit non-zero.

    Raises:
        click.exceptions.Exit: Always, with exit code 1
    """
    click.echo(f"  {message}", err=True)
    if isinstance(error, QuarkusRagError) and error.message != message:
        click.echo(f"  Cause: {error.message}", err=True)
    raise click.exceptions.Exit(1)


log_level_option = click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Log level (default: LOG_LEVEL env var or INFO)",
)

console_logs_option = click.option(
    "--console-logs",
    is_flag=True,
    help="Human-readable log output instead of JSON lines",
)

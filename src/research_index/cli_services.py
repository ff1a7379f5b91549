"""CLI service layer for research_index.

Runs async service calls for the typer commands and turns the error taxonomy
into exit codes and messages.
"""
from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import typer
from rich.console import Console
from rich.logging import RichHandler

from research_index.exceptions import (
    ConfigError,
    ResearchIndexError,
    ServiceUnavailableError,
    ValidationError,
)
from research_index.services import ServiceFactory, get_service_factory

T = TypeVar("T")

# Exit codes
EXIT_SUCCESS = 0
EXIT_ERROR = 1
EXIT_INVALID_ARG = 2
EXIT_UNAVAILABLE = 3

console = Console(stderr=False)  # stdout for normal output
error_console = Console(stderr=True)  # stderr for errors


def _escape_rich(text: str) -> str:
    """Escape brackets to prevent Rich markup interpretation."""
    return text.replace("[", "\\[").replace("]", "\\]")


class CLIContext:
    """Invocation-scoped context for CLI state."""

    def __init__(self, verbose: bool = False):
        self.verbose = verbose


def configure_logging(verbose: bool) -> None:
    """Route library logging through rich on stderr."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=error_console, show_path=False)],
        force=True,
    )
    # Third-party HTTP clients are noisy at DEBUG
    for name in ("httpx", "httpcore"):
        logging.getLogger(name).setLevel(logging.WARNING)


def echo_json(data: Any) -> None:
    """Print ``data`` as indented JSON on stdout."""
    typer.echo(json.dumps(data, indent=2, default=str))


def report_error(error: ResearchIndexError, json_output: bool = False) -> None:
    """Print an error in human-readable or machine-readable form."""
    if json_output:
        echo_json(error.to_dict())
        return
    error_console.print(f"[red]Error:[/red] {_escape_rich(error.message)}")
    if isinstance(error, ServiceUnavailableError):
        error_console.print("[dim]The service may be starting up; retry shortly.[/dim]")


def _exit_code_for(error: ResearchIndexError) -> int:
    if isinstance(error, ValidationError):
        return EXIT_INVALID_ARG
    if isinstance(error, ServiceUnavailableError):
        return EXIT_UNAVAILABLE
    return EXIT_ERROR


def run_service_call(
    operation: Callable[[ServiceFactory], Awaitable[T]],
    *,
    json_output: bool = False,
) -> T:
    """Run ``operation`` against a fresh service factory on a new event loop.

    The factory's clients are closed afterwards. Errors from our taxonomy end
    the command with the matching exit code.

    Raises:
        typer.Exit: If the operation fails.
    """
    try:
        factory = get_service_factory()
    except ConfigError as e:
        report_error(e, json_output)
        raise typer.Exit(code=EXIT_ERROR)

    async def _run() -> T:
        try:
            return await operation(factory)
        finally:
            await factory.close()

    try:
        return asyncio.run(_run())
    except ResearchIndexError as e:
        report_error(e, json_output)
        raise typer.Exit(code=_exit_code_for(e))

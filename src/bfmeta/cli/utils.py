"""Shared CLI utilities — Rich console, logging, error handling, tool options."""

from __future__ import annotations

import functools
import logging
import traceback
from typing import Any, Callable

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn

from bfmeta.io.config import DEFAULT_JAVA, DEFAULT_SHOWINF, DEFAULT_TIMEOUT, ToolConfig

console = Console()

# Set by the --verbose flag on the top-level CLI group.
verbose: bool = False

_handler: RichHandler | None = None


def configure_logging(debug: bool = False) -> None:
    """Route ``bfmeta`` log records to the Rich console.

    Warnings (such as skipped files) are always shown; ``debug`` also shows
    info and debug records.
    """
    global _handler

    logger = logging.getLogger("bfmeta")
    if _handler is None:
        _handler = RichHandler(console=console, show_path=False, show_time=False)
        _handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(_handler)
    logger.setLevel(logging.DEBUG if debug else logging.WARNING)


def error_handler(func: Callable[..., Any]) -> Callable[..., Any]:
    """Decorator wrapping CLI commands with standard error handling.

    Catches BfmetaError (exit 1) and unexpected exceptions (exit 2).
    With --verbose, unexpected errors include the full traceback.
    """

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        from bfmeta.core.exceptions import BfmetaError

        try:
            return func(*args, **kwargs)
        except SystemExit:
            raise
        except BfmetaError as e:
            console.print(f"[red]Error:[/red] {e}")
            raise SystemExit(1)
        except Exception as e:
            if verbose:
                console.print(f"[red]Internal error:[/red] {e}")
                console.print(traceback.format_exc())
            else:
                console.print(
                    f"[red]Internal error:[/red] {type(e).__name__}: {e}\n"
                    "[dim]Use --verbose for the full traceback.[/dim]"
                )
            raise SystemExit(2)

    return wrapper


def tool_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Add the Bio-Formats location options and pass a ToolConfig as ``config``."""

    @click.option(
        "--showinf", envvar="BFMETA_SHOWINF", default=DEFAULT_SHOWINF, show_default=True,
        help="showinf executable (env: BFMETA_SHOWINF).",
    )
    @click.option(
        "--jar", envvar=["BFMETA_JAR", "JAR_PATH"], default=None,
        type=click.Path(dir_okay=False),
        help="bioformats_package.jar; runs ImageInfo through java instead of showinf "
             "(env: BFMETA_JAR, JAR_PATH).",
    )
    @click.option(
        "--java", envvar="BFMETA_JAVA", default=DEFAULT_JAVA, show_default=True,
        help="java executable used with --jar (env: BFMETA_JAVA).",
    )
    @click.option(
        "--timeout", envvar="BFMETA_TIMEOUT", type=float, default=DEFAULT_TIMEOUT,
        show_default=True,
        help="Seconds allowed per file; 0 disables (env: BFMETA_TIMEOUT).",
    )
    @functools.wraps(func)
    def wrapper(
        *args: Any,
        showinf: str,
        jar: str | None,
        java: str,
        timeout: float,
        **kwargs: Any,
    ) -> Any:
        try:
            config = ToolConfig(showinf=showinf, jar=jar, java=java, timeout=timeout)
        except ValueError as e:
            raise click.BadParameter(str(e), param_hint="--timeout")
        return func(*args, config=config, **kwargs)

    return wrapper


def make_progress() -> Progress:
    """Create a Rich progress bar for CLI operations."""
    return Progress(
        SpinnerColumn(),
        TextColumn("[bold blue]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        console=console,
    )

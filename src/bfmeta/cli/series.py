"""bfmeta series — summarize the series of one container file."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import click
from rich.table import Table

from bfmeta.cli.utils import console, error_handler, tool_options

if TYPE_CHECKING:
    from bfmeta.io import ToolConfig


@click.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--include-thumbnails", is_flag=True,
    help="Count thumbnail series as well.",
)
@tool_options
@error_handler
def series(path: str, include_thumbnails: bool, config: ToolConfig) -> None:
    """List the series of PATH, grouping runs with identical dimensions."""
    from bfmeta.io import BioFormatsTool, ExtractionEngine

    tool = BioFormatsTool(config)
    tool.check()
    engine = ExtractionEngine(tool, include_thumbnails=include_thumbnails)
    result = engine.summarize_series(Path(path))

    if result.no_series:
        console.print(f"[yellow]No series found in {Path(path).name}[/yellow]")
        return

    table = Table(show_header=True, title=f"Series in {Path(path).name}")
    table.add_column("Series", style="bold")
    table.add_column("T", justify="right")
    table.add_column("C", justify="right")
    table.add_column("Z", justify="right")
    table.add_column("Width", justify="right")
    table.add_column("Height", justify="right")

    for group in result:
        r = group.record
        span = (
            str(group.start_index) if group.count == 1
            else f"{group.start_index}-{group.end_index}"
        )
        table.add_row(
            span, str(r.timepoints), str(r.channels), str(r.z_stacks),
            str(r.width), str(r.height),
        )
    console.print(table)

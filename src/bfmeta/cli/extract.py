"""bfmeta extract — write a metadata YAML document per image."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import click
from rich.table import Table

from bfmeta.cli.utils import console, error_handler, make_progress, tool_options

if TYPE_CHECKING:
    from bfmeta.io import ConfirmGate, ExtractionResult, ToolConfig


@click.command()
@click.argument("path", type=click.Path(exists=True))
@click.option(
    "-e", "--ext", "extension", default=None,
    help="Extension of the images to process when PATH is a directory (e.g. .czi).",
)
@click.option(
    "--mode", type=click.Choice(["xml", "text"]), default="xml", show_default=True,
    help="Read the OME-XML report or the plain text report.",
)
@click.option(
    "--sample-info", "sample_info",
    type=click.Choice(["ask", "use", "defaults"]), default="ask", show_default=True,
    help="ask: wait for the sample info file to be filled in; use: load it "
         "without asking; defaults: discard it and use placeholder values.",
)
@click.option(
    "--include-thumbnails", is_flag=True,
    help="Do not skip thumbnail series and preview images.",
)
@tool_options
@error_handler
def extract(
    path: str,
    extension: str | None,
    mode: str,
    sample_info: str,
    include_thumbnails: bool,
    config: ToolConfig,
) -> None:
    """Extract acquisition metadata from PATH (an image or a directory)."""
    from bfmeta.io import BioFormatsTool, ExtractionEngine, ReportMode

    source = Path(path)
    if source.is_dir() and not extension:
        console.print(
            "[red]Error:[/red] A file extension (--ext) is required when PATH is a directory."
        )
        raise SystemExit(1)

    engine = ExtractionEngine(
        BioFormatsTool(config),
        mode=ReportMode(mode),
        include_thumbnails=include_thumbnails,
    )

    confirm = {
        "ask": _ask_sample_info,
        "use": lambda gate: None if gate.created else True,
        "defaults": lambda gate: False,
    }[sample_info]

    try:
        plan = engine.prepare(source, extension, confirm=confirm)
    except (ValueError, FileNotFoundError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise SystemExit(1)

    with make_progress() as progress:
        task = progress.add_task("Extracting metadata...", total=None)

        def on_progress(current: int, total: int, name: str) -> None:
            progress.update(task, total=total, completed=current,
                            description=f"Reading {name}" if name else "Done")

        result = engine.process(plan, progress_callback=on_progress)

    _show_result(result)


def _ask_sample_info(gate: ConfirmGate) -> bool:
    """Block until the user says whether the sample info file is filled in."""
    if gate.created:
        console.print(
            f"\nSample info file created at [cyan]{gate.path}[/cyan].\n"
            "Please fill in the required values, then answer 'y' to continue, "
            "or 'n' to continue with default values."
        )
    else:
        console.print(f"\nSample info file [cyan]{gate.path}[/cyan] already exists.")
    return click.confirm(
        "Have you completed filling in the sample info file?", default=None,
    )


def _show_result(result: ExtractionResult) -> None:
    """Display one row per processed image."""
    table = Table(show_header=True, title="Metadata extraction")
    table.add_column("Image", style="bold")
    table.add_column("Status")
    table.add_column("Output / reason")

    for outcome in result.outcomes:
        if outcome.ok:
            table.add_row(outcome.path.name, "[green]written[/green]", str(outcome.output_path))
        else:
            table.add_row(outcome.path.name, "[yellow]skipped[/yellow]", outcome.error or "")

    console.print(table)
    console.print("\n[green]Extraction complete![/green]")
    console.print(f"  Documents written: {len(result.written)}")
    if result.skipped:
        console.print(f"  Skipped: {len(result.skipped)}")
    if result.sample_info_path is not None:
        console.print(f"  Sample info: {result.sample_info_path}")
    console.print(f"  Elapsed: {result.elapsed_seconds}s")

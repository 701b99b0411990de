"""bfmeta CLI — top-level Click group."""

from __future__ import annotations

import click


@click.group()
@click.version_option(package_name="bfmeta")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging and full tracebacks.")
def cli(verbose: bool) -> None:
    """bfmeta — Bio-Formats metadata to YAML."""
    from bfmeta.cli import utils

    utils.verbose = verbose
    utils.configure_logging(debug=verbose)


def _register_commands() -> None:
    """Register all subcommands — imports deferred to keep startup light."""
    from bfmeta.cli.extract import extract
    from bfmeta.cli.series import series

    cli.add_command(extract)
    cli.add_command(series)


_register_commands()

# ABOUTME: CLI package for Shelfscan, built on Click.
# ABOUTME: Defines the root command group, logging setup, and registers subcommands.

import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from shelfscan.cli.commands import scan_cmd, serve_cmd


@click.group()
@click.version_option(package_name="shelfscan")
@click.option("-v", "--verbose", is_flag=True, default=False, help="Enable debug logging.")
def cli(verbose: bool) -> None:
    """Shelfscan - recognize the books on a bookshelf photo."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


cli.add_command(scan_cmd.scan)
cli.add_command(serve_cmd.serve)

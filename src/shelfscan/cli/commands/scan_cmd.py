# ABOUTME: The `shelfscan scan` command: run the recognition pipeline on a local photo.
# ABOUTME: Prints recognized books and per-provider diagnostics as a table or JSON.

import asyncio
import json
import logging
import mimetypes
from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from shelfscan.config import ScanSettings
from shelfscan.core.pipeline import ScanPipeline, build_pipeline
from shelfscan.core.service import InvalidScanRequestError, ScanRequest
from shelfscan.recognition.types import Confidence, ScanOutcome

logger = logging.getLogger(__name__)

_CONFIDENCE_STYLES = {
    Confidence.HIGH: "green",
    Confidence.MEDIUM: "yellow",
    Confidence.LOW: "red",
}


def _create_pipeline(validate: bool) -> ScanPipeline:
    """Create the default pipeline from environment settings."""
    return build_pipeline(ScanSettings(), validate=validate)


async def _run_scan(pipeline: ScanPipeline, request: ScanRequest) -> ScanOutcome:
    try:
        return await pipeline.scan(request.image)
    finally:
        await pipeline.aclose()


def _books_table(outcome: ScanOutcome) -> Table:
    table = Table(title=f"{len(outcome.books)} books found")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Title", style="bold")
    table.add_column("Author")
    table.add_column("Confidence")
    table.add_column("Note", style="dim")

    for number, book in enumerate(outcome.books, start=1):
        style = _CONFIDENCE_STYLES[book.confidence]
        note = escape(book.reason or "")
        if not book.is_valid:
            note = f"[red]invalid[/red] {note}".strip()
        table.add_row(
            str(number),
            escape(book.title),
            escape(book.author) or "[dim]unknown[/dim]",
            f"[{style}]{book.confidence.value}[/{style}]",
            note,
        )
    return table


def _print_diagnostics(console: Console, outcome: ScanOutcome) -> None:
    for name, diag in outcome.provider_diagnostics.items():
        if diag.succeeded:
            status = "[green]ok[/green]"
        else:
            status = "[red]failed[/red]"
        line = f"  {name}: {status}, {diag.count} books"
        if diag.model:
            line += f" ({diag.model}, {diag.attempts} attempts)"
        if diag.error:
            line += f" [dim]{escape(diag.error)}[/dim]"
        console.print(line)


@click.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--json",
    "as_json",
    is_flag=True,
    default=False,
    help="Print the scan outcome as JSON.",
)
@click.option(
    "--validate/--no-validate",
    default=True,
    help="Run the correction pass over recognized books (default: --validate).",
)
def scan(path: Path, as_json: bool, validate: bool) -> None:
    """Recognize the books in a bookshelf photo."""
    console = Console()

    mime_type = mimetypes.guess_type(path.name)[0] or "image/jpeg"
    logger.debug("Scanning %s as %s", path, mime_type)
    try:
        request = ScanRequest.from_bytes(path.read_bytes(), mime_type)
    except InvalidScanRequestError as exc:
        raise click.ClickException(str(exc)) from exc

    pipeline = _create_pipeline(validate)
    if not as_json:
        with console.status(f"Scanning {path.name}..."):
            outcome = asyncio.run(_run_scan(pipeline, request))
    else:
        outcome = asyncio.run(_run_scan(pipeline, request))

    if as_json:
        click.echo(json.dumps(outcome.to_dict(), indent=2, ensure_ascii=False))
        return

    if not outcome.books:
        console.print("[yellow]No books recognized.[/yellow]")
    else:
        console.print(_books_table(outcome))

    console.print("\n[bold]Providers[/bold]")
    _print_diagnostics(console, outcome)

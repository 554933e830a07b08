"""Command-line interface for Inkpad."""

import logging
import sys
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from inkpad import __version__
from inkpad.config import get_settings
from inkpad.core.session import EditorSession
from inkpad.core.source import Source, SourceError
from inkpad.formatting.document import StyledDocument
from inkpad.formatting.exporter import ExportIOError, UnbalancedSpan
from inkpad.formatting.importer import MalformedMarkup
from inkpad.resolvers.local import LocalImageResolver

app = typer.Typer(
    name="inkpad",
    help="Import, inspect and normalize Markdown the way the Inkpad editor sees it.",
    add_completion=False,
)
console = Console()
err_console = Console(stderr=True)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"Inkpad v{__version__}")
        raise typer.Exit()


def setup_logging(verbose: bool) -> None:
    """Route log records through rich, at DEBUG when verbose."""
    level = "DEBUG" if verbose else get_settings().log_level.upper()
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def open_document(session: EditorSession, path: Path) -> StyledDocument:
    """Open a Markdown file in the session and return its document."""
    doc_id = session.open_source(Source.from_path(path.resolve()))
    return session.document(doc_id)


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """Inkpad Markdown tools."""


@app.command()
def normalize(
    path: Path = typer.Argument(
        ...,
        help="Markdown file to normalize",
        exists=True,
        dir_okay=False,
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Write the result here instead of stdout",
    ),
    check: bool = typer.Option(
        False,
        "--check",
        "-c",
        help="Fail if re-importing the output changes the document",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose output",
    ),
) -> None:
    """
    Import a Markdown file and export it again in canonical form.

    Examples:

        inkpad normalize notes.md

        inkpad normalize notes.md -o clean.md

        inkpad normalize notes.md --check
    """
    setup_logging(verbose)
    with EditorSession(resolver=LocalImageResolver()) as session:
        try:
            document = open_document(session, path)
            markdown = session.exporter.export(document)
            if check:
                reimported = session.load_document(markdown, Source.from_path(path.resolve()))
                if reimported.snapshot() != document.snapshot():
                    err_console.print(
                        f"[red]Error:[/red] {path.name} does not survive a round trip"
                    )
                    raise typer.Exit(1)
            if output is not None:
                Source.from_path(output.resolve()).write(markdown)
                if verbose:
                    err_console.print(f"[green]Wrote:[/green] {output}")
            else:
                session.exporter.write(document, sys.stdout)
        except (
            SourceError,
            MalformedMarkup,
            UnbalancedSpan,
            ExportIOError,
            OSError,
            UnicodeError,
        ) as e:
            err_console.print(f"[red]Error processing {path.name}:[/red] {e}")
            if verbose:
                err_console.print_exception()
            raise typer.Exit(1)


@app.command()
def inspect(
    path: Path = typer.Argument(
        ...,
        help="Markdown file to inspect",
        exists=True,
        dir_okay=False,
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose output",
    ),
) -> None:
    """Show the plain text and the styles, anchors and links of a document."""
    setup_logging(verbose)
    with EditorSession(resolver=LocalImageResolver()) as session:
        try:
            document = open_document(session, path)
        except (SourceError, MalformedMarkup) as e:
            err_console.print(f"[red]Error processing {path.name}:[/red] {e}")
            raise typer.Exit(1)

    console.rule(f"[bold]{escape(Source.from_path(path.resolve()).title)}[/bold]")
    console.print(document.plain_text, markup=False, highlight=False)
    console.rule()

    spans = Table(title="Spans")
    spans.add_column("Style")
    spans.add_column("Start")
    spans.add_column("End")
    spans.add_column("Text")
    for span in document.spans:
        start = document.offset_of(span.start)
        end = document.offset_of(span.end)
        spans.add_row(
            span.kind.value, str(span.start), str(span.end), repr(document.text[start:end])
        )
    console.print(spans)

    if document.anchors:
        anchors = Table(title="Anchors")
        anchors.add_column("Kind")
        anchors.add_column("Position")
        anchors.add_column("Detail")
        for anchor in document.anchors:
            detail = ""
            if anchor.payload is not None:
                url = document.image_index.get(anchor.payload, "")
                detail = f"{url} ({anchor.payload.width}x{anchor.payload.height})"
            anchors.add_row(anchor.kind.value, str(anchor.position), detail)
        console.print(anchors)

    if document.link_marks:
        links = Table(title="Links")
        links.add_column("Position")
        links.add_column("URL")
        for position, url in sorted(document.link_marks.items()):
            links.add_row(str(position), url)
        console.print(links)


if __name__ == "__main__":
    app()

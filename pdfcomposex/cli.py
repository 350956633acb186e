"""
Command-line interface for pdfcomposex.
"""

import base64
import logging
import os
import sys
from contextlib import contextmanager
from pathlib import Path

import click
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn
from rich.markup import escape
from rich.table import Table

from pdfcomposex import __version__
from pdfcomposex.engine import DocumentEngine
from pdfcomposex.exceptions import ExternalToolUnavailableError, PdfComposeError
from pdfcomposex.types import CompressionPreset, MergeMode
from pdfcomposex.utils import format_file_size, get_logger

console = Console()


class RichProgressSink:
    """Event sink rendering progress on a rich progress bar."""

    def __init__(self, progress, task_id):
        self._progress = progress
        self._task_id = task_id

    def progress(self, channel, update):
        self._progress.update(self._task_id, completed=update.percent, description=update.message)

    def log(self, channel, message):
        self._progress.console.print(f"  [dim]{escape(message)}[/dim]")


@contextmanager
def progress_sink(description):
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        console=console,
    ) as progress:
        task_id = progress.add_task(description, total=100)
        yield RichProgressSink(progress, task_id)


def _fail(exc):
    console.print(f"\n[bold red]✗ Error:[/bold red] {escape(str(exc))}")
    sys.exit(1)


def _save(engine, artifact, output):
    """Persist *artifact* to *output*, discarding it when the copy fails."""
    try:
        return engine.save(artifact, output)
    except PdfComposeError:
        engine.release(artifact)
        raise


def _parse_page_order(value):
    try:
        pages = [int(item.strip()) for item in value.split(",") if item.strip()]
    except ValueError:
        raise click.BadParameter(f"'{value}' is not a comma separated list of page numbers")
    return pages


@click.group()
@click.version_option(version=__version__)
@click.option('--verbose', '-v', is_flag=True, help='Enable debug logging')
@click.pass_context
def cli(ctx, verbose):
    """
    pdfcomposex - Combine, merge, reorder, compress and preview PDF files.
    """
    if verbose:
        get_logger("pdfcomposex").setLevel(logging.DEBUG)
    if ctx.obj is None:
        ctx.obj = DocumentEngine.from_settings()


@cli.command(name="info")
@click.argument('input_pdf', type=click.Path(exists=True))
@click.pass_obj
def show_info(engine, input_pdf):
    """
    Display information about a PDF file.

    Example:

        pdfcomposex info input.pdf
    """
    try:
        descriptor = engine.describe(input_pdf)

        table = Table(title=f"PDF Information: {descriptor.name}")
        table.add_column("Property", style="cyan", no_wrap=True)
        table.add_column("Value", style="green")

        table.add_row("File Path", os.path.abspath(input_pdf))
        table.add_row("File Size", descriptor.size_text)
        table.add_row("Number of Pages", str(descriptor.page_count))
        table.add_row("Identifier", descriptor.id)

        console.print()
        console.print(table)
        console.print()

    except PdfComposeError as e:
        _fail(e)


@cli.command(name="validate")
@click.argument('input_pdf', type=click.Path())
@click.pass_obj
def validate(engine, input_pdf):
    """
    Check that a file is a readable, unencrypted PDF.
    """
    try:
        engine.validate(input_pdf)
        console.print(f"[bold green]✓ Valid PDF:[/bold green] {input_pdf}")
    except PdfComposeError as e:
        _fail(e)


@cli.command(name="compress")
@click.argument('input_pdf', type=click.Path(exists=True))
@click.option(
    '--preset', '-p',
    default=CompressionPreset.DEFAULT.value,
    help='Compression preset',
    type=click.Choice([preset.value for preset in CompressionPreset]),
)
@click.option(
    '--output', '-o',
    help='Output file (default: <name>_compressed.pdf next to the input)',
    type=click.Path(),
)
@click.pass_obj
def compress(engine, input_pdf, preset, output):
    """
    Compress a PDF with Ghostscript.

    Examples:

        pdfcomposex compress input.pdf

        pdfcomposex compress input.pdf --preset screen -o small.pdf
    """
    try:
        with progress_sink("Compressing") as sink:
            result = engine.compress(input_pdf, preset, sink=sink)

        if output is None:
            source = Path(input_pdf)
            output = source.with_name(f"{source.stem}_compressed.pdf")
        saved = _save(engine, result.output_path, output)

        table = Table(title="Compression Result", show_header=False)
        table.add_column("Property", style="cyan")
        table.add_column("Value", style="green")
        table.add_row("Preset", result.preset.value)
        table.add_row("Original", format_file_size(result.original_size))
        table.add_row("Compressed", format_file_size(result.compressed_size))
        table.add_row("Saved", f"{result.savings_percent}%")
        console.print(table)

        console.print(f"\n[bold green]✓ Successfully created:[/bold green] {saved}")
        console.print()

    except PdfComposeError as e:
        _fail(e)


@cli.command(name="combine")
@click.argument('input_pdfs', nargs=-1, required=True, type=click.Path(exists=True))
@click.option(
    '--output', '-o',
    required=True,
    help='Output file',
    type=click.Path(),
)
@click.pass_obj
def combine(engine, input_pdfs, output):
    """
    Combine two or more PDFs, in the order given.

    Example:

        pdfcomposex combine a.pdf b.pdf c.pdf -o combined.pdf
    """
    try:
        with progress_sink("Combining") as sink:
            result = engine.combine(list(input_pdfs), sink=sink)
        saved = _save(engine, result.output_path, output)

        console.print(
            f"\n[bold green]✓ Combined {result.file_count} files "
            f"({result.page_count} pages):[/bold green] {saved}"
        )
        console.print()

    except PdfComposeError as e:
        _fail(e)


@cli.command(name="merge-two")
@click.argument('first_pdf', type=click.Path(exists=True))
@click.argument('second_pdf', type=click.Path(exists=True))
@click.option(
    '--mode', '-m',
    default=MergeMode.APPEND.value,
    help='append: all of FIRST then all of SECOND; interleave: alternate pages',
    type=click.Choice([mode.value for mode in MergeMode]),
)
@click.option(
    '--output', '-o',
    required=True,
    help='Output file',
    type=click.Path(),
)
@click.pass_obj
def merge_two(engine, first_pdf, second_pdf, mode, output):
    """
    Merge two PDFs by appending or interleaving their pages.

    Examples:

        pdfcomposex merge-two front.pdf back.pdf -o merged.pdf

        pdfcomposex merge-two odd.pdf even.pdf --mode interleave -o scan.pdf
    """
    try:
        with progress_sink("Merging") as sink:
            descriptor = engine.merge_two(first_pdf, second_pdf, mode, sink=sink)
        saved = _save(engine, descriptor.path, output)

        console.print(
            f"\n[bold green]✓ Merged ({descriptor.page_count} pages):[/bold green] {saved}"
        )
        console.print()

    except PdfComposeError as e:
        _fail(e)


@cli.command(name="reorder")
@click.argument('input_pdf', type=click.Path(exists=True))
@click.option(
    '--pages', '-p',
    required=True,
    help="New page order, 1-based (e.g., '3,1,2'); pages may repeat or be omitted",
    type=str,
)
@click.option(
    '--output', '-o',
    required=True,
    help='Output file',
    type=click.Path(),
)
@click.pass_obj
def reorder(engine, input_pdf, pages, output):
    """
    Rebuild a PDF with its pages in a new order.

    Example:

        pdfcomposex reorder input.pdf --pages 3,1,2 -o reordered.pdf
    """
    page_order = _parse_page_order(pages)
    try:
        with progress_sink("Reordering") as sink:
            descriptor = engine.reorder(input_pdf, page_order, sink=sink)
        saved = _save(engine, descriptor.path, output)

        console.print(
            f"\n[bold green]✓ Reordered ({descriptor.page_count} pages):[/bold green] {saved}"
        )
        console.print()

    except PdfComposeError as e:
        _fail(e)


@cli.command(name="thumbnails")
@click.argument('input_pdf', type=click.Path(exists=True))
@click.option('--width', '-w', default=None, type=int, help='Thumbnail width in pixels')
@click.option('--height', '-h', default=None, type=int, help='Thumbnail height in pixels')
@click.option('--page', default=None, type=int, help='Render only this page (1-based)')
@click.option(
    '--output-dir', '-o',
    default=None,
    help='Write the PNG files to this directory',
    type=click.Path(),
)
@click.pass_obj
def thumbnails(engine, input_pdf, width, height, page, output_dir):
    """
    Render page thumbnails through the thumbnail cache.

    Examples:

        pdfcomposex thumbnails input.pdf -o thumbs

        pdfcomposex thumbnails input.pdf --page 2 --width 300 --height 400
    """
    try:
        if page is not None:
            results = [engine.thumbnail_one(input_pdf, page - 1, width, height)]
        else:
            with progress_sink("Rendering thumbnails") as sink:
                results = engine.thumbnails_all(input_pdf, width, height, sink=sink)

        table = Table(title="Thumbnails")
        table.add_column("Page", style="cyan")
        table.add_column("Size", style="green")
        table.add_column("Image", style="green")

        directory = Path(output_dir) if output_dir else None
        if directory is not None:
            directory.mkdir(parents=True, exist_ok=True)

        for result in results:
            data = base64.b64decode(result.image_data.split(",", 1)[1])
            location = format_file_size(len(data))
            if directory is not None:
                target = directory / f"page_{result.page_index + 1:03d}.png"
                target.write_bytes(data)
                location = str(target)
            table.add_row(str(result.page_index + 1), f"{result.width}x{result.height}", location)

        console.print(table)
        console.print()

    except PdfComposeError as e:
        _fail(e)


@cli.command(name="evict")
@click.argument('input_pdf', required=False, type=click.Path())
@click.option('--all', 'evict_all', is_flag=True, help='Clear the whole thumbnail cache')
@click.pass_obj
def evict(engine, input_pdf, evict_all):
    """
    Remove cached thumbnails for one PDF, or all of them.
    """
    if not evict_all and input_pdf is None:
        raise click.UsageError("Give a PDF path or --all")
    try:
        if evict_all:
            engine.evict_all_thumbnail_caches()
            console.print("[bold green]✓ Thumbnail cache cleared[/bold green]")
        elif engine.evict_thumbnail_cache(input_pdf):
            console.print(f"[bold green]✓ Evicted thumbnails for:[/bold green] {input_pdf}")
        else:
            console.print(f"[dim]No cached thumbnails for {input_pdf}[/dim]")
    except PdfComposeError as e:
        _fail(e)


@cli.command(name="doctor")
@click.pass_obj
def doctor(engine):
    """
    Check that Ghostscript is installed and runnable.
    """
    try:
        version = engine.ghostscript_version()
    except ExternalToolUnavailableError as e:
        console.print(f"[bold red]✗ Ghostscript unavailable:[/bold red] {e}")
        console.print(engine.install_instructions())
        sys.exit(1)
    except PdfComposeError as e:
        _fail(e)
    console.print(f"[bold green]✓ Ghostscript {version}[/bold green]")


if __name__ == '__main__':
    cli()

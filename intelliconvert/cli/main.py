"""
Command-line interface for IntelliConvert.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from ..core.config import PipelineSettings
from ..core.formats import CANONICAL_FORMATS, IMAGE_FORMATS, detect, detect_image_format
from ..core.utils import configure_logging, format_file_size, resolve_path
from ..tools.converter import ConversionPipeline

console = Console()


def _build_pipeline(offline: bool) -> ConversionPipeline:
    settings = PipelineSettings.from_env()
    return ConversionPipeline(settings=settings.offline() if offline else settings)


@click.group()
@click.version_option(version="0.1.0", prog_name="intelliconvert")
def cli():
    """
    IntelliConvert - convert text, documents and images between formats.
    """
    pass


@cli.command(name="convert")
@click.argument("input_file", type=click.Path(exists=True, dir_okay=False))
@click.argument("target")
@click.option("--output", "-o", type=click.Path(), help="Output file or directory (defaults to the input's directory)")
@click.option("--title", "-t", help="Document title, also used for the output file name")
@click.option("--mime", "mime_type", help="Declared media type of the input")
@click.option("--page", default=1, show_default=True, type=click.IntRange(min=1), help="PDF page to rasterise")
@click.option("--image-format", type=click.Choice(IMAGE_FORMATS), help="Raster encoding for image output")
@click.option("--offline", is_flag=True, help="Skip remote services and external programs")
@click.option("--verbose", "-v", is_flag=True, help="Show backend attempts and debug logging")
def convert(input_file, target, output, title, mime_type, page, image_format, offline, verbose):
    """
    Convert INPUT_FILE to TARGET (text, pdf, doc, docx, html, image, png, jpg, webp).

    Examples:

        intelliconvert convert notes.txt pdf

        intelliconvert convert report.doc png -o previews/

        intelliconvert convert slides.pdf image --page 3 --image-format jpeg
    """
    configure_logging(logging.DEBUG if verbose else logging.WARNING)
    source = resolve_path(input_file)
    pipeline = _build_pipeline(offline)

    with console.status(f"[bold cyan]Converting {source.name} to {target}...[/bold cyan]"):
        result = pipeline.convert(
            source.read_bytes(),
            target,
            declared_mime_type=mime_type,
            filename=source.name,
            title=title,
            image_format=image_format,
            page_number=page,
        )

    if verbose and result.attempts:
        table = Table(title="Backend attempts")
        table.add_column("Backend", style="cyan")
        table.add_column("Segment")
        table.add_column("Outcome")
        table.add_column("Time", justify="right")
        table.add_column("Reason", style="dim")
        for attempt in result.attempts:
            style = "green" if attempt.succeeded else "red"
            table.add_row(
                attempt.backend,
                " -> ".join(attempt.segment),
                f"[{style}]{attempt.status.value}[/{style}]",
                f"{attempt.elapsed:.2f}s",
                attempt.reason or "",
            )
        console.print(table)

    if not result.success:
        console.print(f"[bold red]✗ Error:[/bold red] {result.user_message}")
        sys.exit(1)

    if output:
        destination = resolve_path(output)
        if destination.is_dir():
            destination = destination / result.suggested_file_name
    else:
        destination = source.parent / result.suggested_file_name
    destination.parent.mkdir(parents=True, exist_ok=True)
    destination.write_bytes(result.output_bytes)

    route = result.path.describe() if result.path else "passthrough"
    console.print(f"[bold green]✓ Converted[/bold green] {source.name} ({route})")
    console.print(f"[dim]Output: {destination} ({format_file_size(len(result.output_bytes))})[/dim]")
    if result.degraded:
        console.print("[yellow]No readable text was found; the output holds a placeholder page.[/yellow]")


@cli.command(name="formats")
@click.option("--offline", is_flag=True, help="Skip remote services and external programs")
def show_formats(offline):
    """
    List every source format and the targets it can be converted to.
    """
    pipeline = _build_pipeline(offline)
    table = Table(title="Supported conversions")
    table.add_column("Source", style="cyan", no_wrap=True)
    table.add_column("Direct targets", style="green")
    table.add_column("All targets")
    for source in sorted(CANONICAL_FORMATS, key=lambda tag: tag.value):
        direct = [target.value for target in sorted(CANONICAL_FORMATS, key=lambda tag: tag.value)
                  if target is not source and pipeline.registry.has_pair(source, target)]
        reachable = [target.value for target in pipeline.router.supported_targets(source)]
        table.add_row(source.value, ", ".join(direct) or "-", ", ".join(reachable) or "-")
    console.print(table)


@cli.command(name="detect")
@click.argument("input_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--mime", "mime_type", help="Declared media type of the input")
def detect_format(input_file, mime_type):
    """
    Show the canonical format detected for INPUT_FILE.
    """
    path = Path(input_file)
    data = path.read_bytes()
    tag = detect(data, mime_type, path.name)
    detail = detect_image_format(data)
    label = f"{tag.value} ({detail})" if detail else tag.value
    console.print(f"{path.name}: [bold]{label}[/bold] [dim]{format_file_size(len(data))}[/dim]")


def main() -> None:  # pragma: no cover - console script entry point
    cli()


if __name__ == "__main__":  # pragma: no cover
    main()

"""
Command-Line Interface for warcfolder.
"""
import logging
import os
import shutil
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel

from .config import load_config
from .engine import ArchiveEngine
from .errors import UnexpectedFileError, WarcFolderError
from .formats import strip_archive_extension

app = typer.Typer(
    help="warcfolder: read and write WACZ and WARC files as folders."
)

console = Console()


def setup_logging(verbose: bool = False):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False, markup=False)],
        force=True,
    )


def fail(message: str):
    console.print(f"[bold red]✗ Error:[/bold red] {message}", markup=True, highlight=False)
    raise typer.Exit(code=1)


def has_files(path: str) -> bool:
    """True if the directory has at least one entry."""
    with os.scandir(path) as entries:
        return next(entries, None) is not None


@app.callback()
def main(
    ctx: typer.Context,
    config_path: Optional[str] = typer.Option(
        None, "--config", "-c",
        help="Path to a warcfolder.yaml config file."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v",
        help="Show debug logging."
    ),
):
    setup_logging(verbose)
    try:
        ctx.obj = ArchiveEngine(load_config(config_path))
    except WarcFolderError as e:
        fail(str(e))


@app.command(name="extract", help="Extract a WACZ or WARC file to a directory.")
def run_extract(
    ctx: typer.Context,
    input_file: str = typer.Argument(..., help="Path to the WACZ/WARC file to extract."),
    output_dir: Optional[str] = typer.Argument(
        None, help="Directory to extract into (default: input path without its extension)."
    ),
    delete_existing: bool = typer.Option(
        False, "--delete-existing",
        help="Delete the entire output directory if it exists."
    ),
):
    """
    Unpacks an archive so its captured resources can be edited as files.
    """
    engine: ArchiveEngine = ctx.obj
    if not output_dir:
        output_dir = strip_archive_extension(input_file)

    if os.path.exists(output_dir):
        if os.path.isfile(output_dir):
            fail("Output path is a file rather than a directory.")

        if has_files(output_dir):
            if delete_existing:
                shutil.rmtree(output_dir)
            else:
                fail(
                    f'Output directory "{output_dir}" is not empty. Use --delete-existing '
                    "flag to delete the entire directory and its contents before extraction."
                )

    console.print(
        Panel.fit(
            f"[bold green]Extracting archive[/bold green]\nSource: {input_file}\nTarget: {os.path.abspath(output_dir)}",
            border_style="green"
        )
    )

    try:
        engine.extract(input_file, output_dir)
    except WarcFolderError as e:
        fail(str(e))

    console.print(f"[bold green]✓[/bold green] Successfully extracted {input_file} to {output_dir}")


@app.command(name="create", help="Create a WACZ or WARC file from a directory.")
def run_create(
    ctx: typer.Context,
    input_dir: str = typer.Argument(..., help="Directory containing archive contents."),
    output_file: str = typer.Argument(..., help="Path where the archive file should be created."),
    as_files: bool = typer.Option(
        False, "--as-files",
        help="Treat the directory as ordinary files and store them as file:// resources."
    ),
    archive_format: Optional[str] = typer.Option(
        None, "--format", "-f",
        help="Force the output format: wacz, warc, warc.gz or files."
    ),
    watch: bool = typer.Option(
        False, "--watch", "-w",
        help="Keep running and rebuild the archive when files change."
    ),
):
    """
    Packs an extracted (or ordinary) directory back into an archive.
    """
    engine: ArchiveEngine = ctx.obj

    try:
        if watch:
            from .watch import watch_and_create
            console.print(f"[blue]Building initial archive from {input_dir}...[/blue]")
            watch_and_create(engine, input_dir, output_file, as_files, archive_format)
            return
        engine.create(input_dir, output_file, as_files, archive_format)
    except UnexpectedFileError as e:
        console.print(f"[dim]{e}[/dim]", highlight=False)
        fail(
            "Input directory does not appear to be an unpacked WARC or WACZ file.\n"
            "To create an archive from ordinary files, run the command again with the --as-files flag."
        )
    except WarcFolderError as e:
        fail(str(e))

    console.print(f"[bold green]✓[/bold green] Successfully created {output_file} from {input_dir}")


if __name__ == "__main__":
    app()

"""CLI for blobkit."""

import logging
import sys
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .blob import Blob
from .cache import default_work_dir, sweep_cache
from .config import build_registry, load_config
from .constants import BUFSIZE
from .errors import BlobkitError
from .registry import Registry
from .utils import format_mtime, humanize_size

app = typer.Typer(help="""\
Inspect, copy and move objects across storage backends addressed by URL
(file:///path, or any scheme declared in the storage config).""")

console = Console()

_state = {"config": None}


@app.callback()
def main_options(
    config: Optional[Path] = typer.Option(
        None, "--config", "-c", envvar="BLOBKIT_CONFIG", help="Storage config YAML"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Global options."""
    _state["config"] = config
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")


def require_registry() -> Registry:
    """Build the registry from configuration.

    Raises:
        typer.Exit: If the configuration is invalid
    """
    try:
        return build_registry(load_config(_state["config"]))
    except BlobkitError as e:
        console.print(f"[red]✗[/red] {escape(str(e))}")
        raise typer.Exit(1)


def _fail(e: Exception) -> None:
    console.print(f"[red]✗[/red] {escape(str(e))}")
    raise typer.Exit(1)


@app.command()
def ls(url: str = typer.Argument(..., help="Directory URL")):
    """List directories and objects under a URL."""
    registry = require_registry()
    try:
        blob = registry.resolve(url)
        dirs = blob.driver.dirs(blob.path)
        files = blob.driver.files(blob.path)
    except (BlobkitError, OSError) as e:
        _fail(e)

    table = Table(show_header=True, header_style="bold")
    table.add_column("Type")
    table.add_column("Path")
    for d in dirs:
        table.add_row("[cyan]dir[/cyan]", d + "/")
    for f in files:
        table.add_row("file", f)
    console.print(table)
    if not dirs and not files:
        console.print("[dim]No entries[/dim]")


@app.command()
def info(url: str = typer.Argument(..., help="Object URL")):
    """Show object metadata."""
    registry = require_registry()
    try:
        meta = registry.resolve(url).info()
    except (BlobkitError, OSError) as e:
        _fail(e)

    table = Table(show_header=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_row("Path", meta.path or "")
    table.add_row("Size", f"{humanize_size(meta.size)} ({meta.size} bytes)")
    table.add_row("Modified", format_mtime(meta.mtime))
    table.add_row("Mode", oct(meta.mode))
    table.add_row("Content type", meta.content_type or "-")
    for key, value in sorted(meta.metadata.items()):
        table.add_row(f"meta:{key}", value)
    console.print(table)


@app.command()
def cat(url: str = typer.Argument(..., help="Object URL")):
    """Write object content to stdout."""
    registry = require_registry()
    try:
        with registry.resolve(url) as blob:
            for chunk in blob.chunks():
                sys.stdout.buffer.write(chunk)
            sys.stdout.buffer.flush()
    except (BlobkitError, OSError) as e:
        _fail(e)


@app.command()
def put(
    source: Path = typer.Argument(..., exists=True, dir_okay=False, help="Local file"),
    url: str = typer.Argument(..., help="Destination URL"),
):
    """Upload a local file to a URL."""
    registry = require_registry()

    def pump(w):
        with source.open("rb") as f:
            for chunk in iter(lambda: f.read(BUFSIZE), b""):
                w.write(chunk)

    try:
        with registry.resolve(url) as blob:
            blob.writer(fill=pump)
    except (BlobkitError, OSError) as e:
        _fail(e)
    console.print(f"[green]✓[/green] {source} → {url}")


@app.command()
def cp(
    source: str = typer.Argument(..., help="Source URL"),
    target: str = typer.Argument(..., help="Target URL"),
):
    """Copy an object, possibly across backends."""
    registry = require_registry()
    try:
        src: Blob = registry.resolve(source)
        dst: Blob = registry.resolve(target)
        with src, dst:
            if src.driver is dst.driver:
                src.transfer(dst.path)
            else:
                src.transfer(dst)
    except (BlobkitError, OSError) as e:
        _fail(e)
    console.print(f"[green]✓[/green] {source} → {target}")


@app.command()
def mv(
    url: str = typer.Argument(..., help="Object URL"),
    new_name: str = typer.Argument(..., help="New name in the same directory"),
):
    """Rename an object."""
    registry = require_registry()
    try:
        with registry.resolve(url) as blob:
            blob.rename(new_name)
            new_url = blob.url
    except (BlobkitError, OSError) as e:
        _fail(e)
    console.print(f"[green]✓[/green] {url} → {new_url}")


@app.command()
def rm(url: str = typer.Argument(..., help="Object URL")):
    """Delete an object (missing objects are not an error)."""
    registry = require_registry()
    try:
        with registry.resolve(url) as blob:
            blob.delete()
    except (BlobkitError, OSError) as e:
        _fail(e)
    console.print(f"[green]✓[/green] Deleted {url}")


@app.command()
def drivers():
    """List registered schemes."""
    registry = require_registry()
    table = Table(show_header=True, header_style="bold")
    table.add_column("Scheme", style="cyan")
    table.add_column("Driver")
    table.add_column("Local")
    table.add_column("Work dir")
    for scheme in registry.schemes():
        driver = registry.driver(scheme)
        details = driver.describe()
        table.add_row(scheme, driver.name, details["local"], details["work_dir"])
    console.print(table)


@app.command()
def sweep(
    work_dir: Optional[Path] = typer.Option(None, "--work-dir", help="Cache directory (default: platform cache)"),
    hours: float = typer.Option(24, "--hours", help="Keep files modified within this many hours"),
):
    """Remove abandoned cache files."""
    root = work_dir or default_work_dir()
    removed = sweep_cache(root, keep_recent_hours=hours)
    console.print(f"[green]✓[/green] Removed {removed} cache file(s) from {root}")


def main():
    """Entry point for CLI."""
    app()


if __name__ == "__main__":
    main()

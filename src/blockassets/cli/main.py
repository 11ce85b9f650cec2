"""
CLI for the asset cache.

Commands:
    blockassets get PATH - Print an asset (cache, then bundled copy)
    blockassets remote PATH - Print the remote copy of an asset
    blockassets put PATH FILE - Import a file into the cache
    blockassets update PATH - Fetch, verify and cache one asset
    blockassets update-all - Run one update cycle over a manifest
    blockassets manifest DIR - Build a manifest with digests of local files
    blockassets sync - Run the version-triggered cache purge
    blockassets config - Show current configuration
    blockassets version - Print version
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated, Any, Coroutine, Optional, TypeVar

import typer
from rich.console import Console
from rich.table import Table

from blockassets import __version__
from blockassets.assets.context import AssetContext
from blockassets.assets.updater import update_with_retries
from blockassets.config import Settings, clear_settings_cache, get_settings
from blockassets.exceptions import BlockAssetsError
from blockassets.logging import setup_logging
from blockassets.manifest import DEFAULT_MANIFEST, dump_manifest, load_manifest
from blockassets.types import AssetRecord, RemoteManifestEntry, UpdateSummary
from blockassets.utils.digest import get_hasher

app = typer.Typer(
    name="blockassets",
    help="Filter list asset cache - cached, bundled and verified remote assets",
    no_args_is_help=True,
)

console = Console()
error_console = Console(stderr=True)

T = TypeVar("T")


def _load_settings() -> Settings:
    """Load settings or exit with a readable error."""
    try:
        clear_settings_cache()
        settings = get_settings()
    except Exception as e:
        error_console.print(f"[red]Error:[/red] Configuration is invalid: {e}")
        raise typer.Exit(1) from e
    setup_logging(settings.LOG_LEVEL, settings.LOG_FILE)
    return settings


def _print_record(record: AssetRecord, quiet: bool = False) -> None:
    if not record.ok:
        error_console.print(f"[red]{record.path}:[/red] {record.error}")
        raise typer.Exit(1)
    if quiet:
        console.print(f"[green]OK[/green] {record.path} ({len(record.content)} chars)")
    else:
        console.print(record.content, markup=False, highlight=False, soft_wrap=True, end="")


def _run(coro: Coroutine[Any, Any, T]) -> T:
    """Run a coroutine, turning unrecovered errors into a clean exit."""
    try:
        return asyncio.run(coro)
    except BlockAssetsError as e:
        error_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e


@app.command()
def get(
    path: Annotated[str, typer.Argument(help="Asset path, e.g. assets/ublock/filters.txt")],
) -> None:
    """Print an asset from the cache, falling back to the bundled copy."""
    settings = _load_settings()

    async def _get() -> AssetRecord:
        async with AssetContext.from_settings(settings) as assets:
            return await assets.get(path)

    _print_record(_run(_get()))


@app.command()
def remote(
    path: Annotated[str, typer.Argument(help="Asset path relative to the remote root")],
) -> None:
    """Print the remote copy of an asset without caching it."""
    settings = _load_settings()

    async def _remote() -> AssetRecord:
        async with AssetContext.from_settings(settings) as assets:
            return await assets.get_remote(path)

    _print_record(_run(_remote()))


@app.command()
def put(
    path: Annotated[str, typer.Argument(help="Asset path to write, e.g. assets/user/filters.txt")],
    source: Annotated[
        Path,
        typer.Argument(exists=True, dir_okay=False, readable=True, help="File to import"),
    ],
) -> None:
    """Import a local file into the cache."""
    settings = _load_settings()
    content = source.read_text(encoding="utf-8")

    async def _put() -> AssetRecord:
        async with AssetContext.from_settings(settings) as assets:
            return await assets.put(path, content)

    _print_record(_run(_put()), quiet=True)


@app.command()
def update(
    path: Annotated[str, typer.Argument(help="Asset path to refresh")],
    expected_hash: Annotated[
        Optional[str],
        typer.Option("--hash", help="Expected content digest"),
    ] = None,
    attempts: Annotated[
        int,
        typer.Option("--attempts", "-a", min=1, max=10, help="Attempts on fetch failure"),
    ] = 1,
) -> None:
    """Fetch an asset, verify its digest and store it in the cache."""
    settings = _load_settings()
    entry = RemoteManifestEntry(path=path, expected_hash=expected_hash)

    async def _update() -> AssetRecord:
        async with AssetContext.from_settings(settings) as assets:
            return await update_with_retries(assets.updater, entry, attempts=attempts)

    _print_record(_run(_update()), quiet=True)


@app.command("update-all")
def update_all(
    manifest: Annotated[
        Optional[Path],
        typer.Option("--manifest", "-m", exists=True, dir_okay=False, help="Manifest JSON file"),
    ] = None,
    attempts: Annotated[
        int,
        typer.Option("--attempts", "-a", min=1, max=10, help="Attempts per asset"),
    ] = 1,
) -> None:
    """Run one update cycle over a manifest (default: built-in asset list)."""
    settings = _load_settings()
    try:
        entries = load_manifest(manifest) if manifest else list(DEFAULT_MANIFEST)
    except BlockAssetsError as e:
        error_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    async def _update_all() -> UpdateSummary:
        async with AssetContext.from_settings(settings) as assets:
            return await assets.update_many(entries, attempts=attempts)

    summary = _run(_update_all())

    table = Table(title=f"Update cycle {summary.cycle_id}")
    table.add_column("Asset", style="cyan")
    table.add_column("Result")
    for record in summary.records:
        result = "[green]updated[/green]" if record.ok else f"[red]{record.error}[/red]"
        table.add_row(record.path, result)
    for path in summary.skipped:
        table.add_row(path, "[dim]skipped (user asset)[/dim]")
    console.print(table)
    console.print(
        f"Updated {summary.updated_count}, failed {summary.failed_count}, "
        f"skipped {summary.skipped_count}"
    )
    if summary.failed_count:
        raise typer.Exit(1)


@app.command("manifest")
def build_manifest(
    root: Annotated[
        Path,
        typer.Argument(exists=True, file_okay=False, help="Directory mirroring the remote root"),
    ],
    output: Annotated[
        Optional[Path],
        typer.Option("--output", "-o", help="Write the manifest here instead of stdout"),
    ] = None,
) -> None:
    """Build a manifest with content digests for every file under ROOT."""
    settings = _load_settings()
    hasher = get_hasher(settings.HASH_ALGORITHM)

    entries = [
        RemoteManifestEntry(
            path=file.relative_to(root).as_posix(),
            expected_hash=hasher(file.read_text(encoding="utf-8")),
        )
        for file in sorted(root.rglob("*"))
        if file.is_file()
    ]
    data = dump_manifest(entries)
    if output:
        output.write_bytes(data)
        console.print(f"[green]Wrote[/green] {len(entries)} entries to {output}")
    else:
        console.print(data.decode("utf-8"), markup=False, highlight=False)


@app.command()
def sync() -> None:
    """Purge cached non-user assets if the package version changed."""
    settings = _load_settings()

    async def _sync() -> int:
        assets = AssetContext.from_settings(settings)
        try:
            return await assets.start()
        finally:
            await assets.close()

    purged = _run(_sync())
    console.print(f"Cache synchronized for version {settings.package_version}: purged {purged}")


@app.command()
def config() -> None:
    """Show current configuration."""
    settings = _load_settings()

    table = Table(title="blockassets configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    for key, value in settings.display().items():
        table.add_row(key, "[dim]not set[/dim]" if value is None else str(value))
    console.print(table)


@app.command()
def version() -> None:
    """Print version."""
    console.print(f"blockassets {__version__}")


if __name__ == "__main__":
    app()

"""CLI interface for postsync."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Annotated, Any, Optional

import pydantic
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from postsync.config import PostSyncConfig, load_config, merge_cli_overrides
from postsync.document.models import Post
from postsync.document.validator import validate_post_json
from postsync.errors import PostNotFoundError, PostSyncError
from postsync.sync.factory import build_sync_manager
from postsync.sync.manager import SyncManager

app = typer.Typer(
    name="postsync",
    help="Store, package and synchronize blog posts across storage backends.",
)

console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        from postsync import __version__

        console.print(f"postsync {__version__}")
        raise typer.Exit()


def _configure_logging(verbose: bool) -> None:
    handler = RichHandler(console=Console(stderr=True), show_path=False, rich_tracebacks=True)
    handler.setFormatter(logging.Formatter("%(message)s"))
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if verbose else logging.WARNING)


@app.callback()
def main(
    ctx: typer.Context,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = False,
    config_path: Annotated[
        Optional[Path],
        typer.Option("--config", "-c", help="Path to a .postsync.toml config file."),
    ] = None,
    directory: Annotated[
        Optional[Path],
        typer.Option("--dir", "-d", help="Storage directory (overrides config)."),
    ] = None,
    backend: Annotated[
        Optional[str],
        typer.Option("--backend", help="Extra remote backend: local or github."),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", help="Enable debug logging."),
    ] = False,
) -> None:
    """postsync - persist and sync blog posts."""
    _configure_logging(verbose)
    try:
        config = load_config(config_path)
        ctx.obj = merge_cli_overrides(
            config,
            storage_directory=str(directory) if directory is not None else None,
            backend=backend,
        )
    except pydantic.ValidationError as exc:
        details = "; ".join(
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()
        )
        console.print(f"[red]Error:[/red] Invalid configuration: {details}")
        raise typer.Exit(1) from exc


def _run(ctx: typer.Context, action: Callable[[SyncManager], Awaitable[Any]]) -> Any:
    """Build a manager from the context config, run ``action``, and map errors to exit 1."""
    config: PostSyncConfig = ctx.obj

    async def _main() -> Any:
        manager = build_sync_manager(config)
        try:
            return await action(manager)
        finally:
            for adapter in manager.adapters:
                aclose = getattr(adapter, "aclose", None)
                if aclose is not None:
                    await aclose()

    try:
        return asyncio.run(_main())
    except PostSyncError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(1) from exc


async def _require(manager: SyncManager, post_id: str) -> Post:
    post = await manager.load(post_id)
    if post is None:
        raise PostNotFoundError(post_id)
    return post


@app.command("list")
def list_cmd(ctx: typer.Context) -> None:
    """List posts from every backend, newest first."""
    posts = _run(ctx, lambda m: m.list())

    if not posts:
        console.print("[yellow]No posts found.[/yellow]")
        return

    table = Table(title=f"Posts ({len(posts)})")
    table.add_column("ID", style="dim")
    table.add_column("Title")
    table.add_column("Status")
    table.add_column("Date")
    for post in posts:
        table.add_row(post.id, post.metadata.title, str(post.metadata.status), post.metadata.date)
    console.print(table)


@app.command()
def show(
    ctx: typer.Context,
    post_id: Annotated[str, typer.Argument(help="Post id.")],
) -> None:
    """Print a post as JSON."""
    post = _run(ctx, lambda m: _require(m, post_id))
    console.print_json(post.to_json())


@app.command()
def save(
    ctx: typer.Context,
    source: Annotated[
        Path,
        typer.Argument(help="Post JSON file.", exists=True, dir_okay=False, resolve_path=True),
    ],
) -> None:
    """Validate a post JSON file and save it to every backend."""
    try:
        post = validate_post_json(source.read_text(encoding="utf-8"))
    except PostSyncError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(1) from exc

    post_id = _run(ctx, lambda m: m.save(post))
    console.print(f"[green]Saved post {post_id}[/green]")


@app.command()
def delete(
    ctx: typer.Context,
    post_id: Annotated[str, typer.Argument(help="Post id.")],
) -> None:
    """Delete a post from every backend."""
    result = _run(ctx, lambda m: m.delete(post_id))
    console.print(f"[green]Deleted {post_id} from {len(result.succeeded)} backend(s)[/green]")


@app.command()
def export(
    ctx: typer.Context,
    post_id: Annotated[str, typer.Argument(help="Post id.")],
    dest: Annotated[Path, typer.Argument(help="Destination .ocblog file.")],
) -> None:
    """Export a post and its assets as a portable package."""

    async def _export(manager: SyncManager) -> Path | None:
        post = await _require(manager, post_id)
        return await manager.files.save_package_as(post, dest)  # type: ignore[union-attr]

    written = _run(ctx, _export)
    console.print(f"[green]Exported to {written}[/green]")


@app.command("import")
def import_cmd(
    ctx: typer.Context,
    package: Annotated[
        Path,
        typer.Argument(help="Package file to import.", exists=True, dir_okay=False),
    ],
) -> None:
    """Open a package file and save its post to every backend."""

    async def _import(manager: SyncManager) -> str:
        post = await manager.files.open_package(package)  # type: ignore[union-attr]
        return await manager.save(post)

    post_id = _run(ctx, _import)
    console.print(f"[green]Imported post {post_id}[/green]")


@app.command()
def html(
    ctx: typer.Context,
    post_id: Annotated[str, typer.Argument(help="Post id.")],
    dest: Annotated[Path, typer.Argument(help="Destination .html file.")],
) -> None:
    """Render a post as a standalone HTML page."""

    async def _html(manager: SyncManager) -> Path:
        post = await _require(manager, post_id)
        return await manager.files.export_html(post, dest)  # type: ignore[union-attr]

    written = _run(ctx, _html)
    console.print(f"[green]Wrote {written}[/green]")


@app.command()
def sync(ctx: typer.Context) -> None:
    """Re-save every known post to every backend."""
    count = _run(ctx, lambda m: m.sync())
    console.print(f"[green]Synced {count} post(s)[/green]")


@app.command()
def recent(
    ctx: typer.Context,
    clear: Annotated[
        bool,
        typer.Option("--clear", help="Forget the recent-files list."),
    ] = False,
) -> None:
    """Show recently opened or saved package files."""

    async def _recent(manager: SyncManager):
        files = manager.files
        if clear:
            files.clear_recent_files()  # type: ignore[union-attr]
            return []
        return files.recent_files()  # type: ignore[union-attr]

    entries = _run(ctx, _recent)
    if clear:
        console.print("[green]Recent files cleared.[/green]")
        return
    if not entries:
        console.print("[yellow]No recent files.[/yellow]")
        return

    table = Table(title="Recent files")
    table.add_column("Name")
    table.add_column("Path", style="dim")
    table.add_column("Last opened")
    for entry in entries:
        table.add_row(entry.name, entry.path, entry.last_accessed.strftime("%Y-%m-%d %H:%M"))
    console.print(table)


if __name__ == "__main__":
    app()

"""Sync commands - init, pull, push, diff, upload and watch."""

import difflib
from pathlib import Path

import click
from rich.syntax import Syntax
from rich.table import Table

from owlanter.cli.logging import configure_cli_logging
from owlanter.cli.utils import (
    cli_errors,
    console,
    get_root,
    is_verbose,
    run_async,
    with_orchestrator,
)
from owlanter.errors import OwlanterError, ScriptNotFoundError
from owlanter.scripts.diff import DiffEntry
from owlanter.scripts.models import ScriptVariant
from owlanter.settings import get_default_delay
from owlanter.sites.registry import SiteInfo, SiteRegistry

site_option = click.option(
    "--site", "site_id", type=int, default=None, help="Site ID (default: current site)"
)


def _start(ctx: click.Context, command: str, site_id: int | None) -> Path:
    """Configure logging for ``command`` and return the workspace root."""
    root = get_root(ctx)
    if site_id is None:
        try:
            current = SiteRegistry(root).current()
        except OwlanterError:
            current = None
        site_id = current.site_id if current else None
    configure_cli_logging(command, site_id=site_id, verbose=is_verbose(ctx))
    return root


@click.command()
@click.pass_context
def init(ctx: click.Context) -> None:
    """Create the workspace layout in the current directory."""
    root = get_root(ctx)
    with cli_errors():
        created = SiteRegistry(root).init_workspace()
    if not created:
        console.print(f"[dim]Workspace already initialised at {root}[/dim]")
        return
    for path in created:
        console.print(f"[green]+[/green] {path}")


@click.command()
@site_option
@click.pass_context
def pull(ctx: click.Context, site_id: int | None) -> None:
    """Download every script of a site, replacing local files."""
    root = _start(ctx, "pull", site_id)
    with cli_errors():
        result = run_async(with_orchestrator(root, lambda o: o.pull(site_id)))
    console.print(
        f"[green]Pulled site {result.site_id}[/green] "
        f"(server: {result.server_count}, client: {result.client_count}; "
        f"{len(result.written)} written, {len(result.unchanged)} unchanged, "
        f"{len(result.removed)} removed)"
    )


def _confirm(info: SiteInfo) -> bool:
    return click.confirm(
        f"Push scripts to {info.environment} environment ({info.site_name})?",
        default=False,
    )


@click.command()
@site_option
@click.option("--dry-run", is_flag=True, help="Show the diff instead of pushing")
@click.option("--force", is_flag=True, help="Skip environment confirmation")
@click.pass_context
def push(ctx: click.Context, site_id: int | None, dry_run: bool, force: bool) -> None:
    """Send local scripts (or only the active ones) to the server."""
    root = _start(ctx, "push", site_id)
    with cli_errors():
        result = run_async(
            with_orchestrator(
                root,
                lambda o: o.push(site_id, dry_run=dry_run, force=force, confirm=_confirm),
            )
        )
    if result.dry_run:
        _print_entries(result.entries)
        return
    if result.cancelled:
        console.print("[yellow]Push cancelled[/yellow]")
    elif not result.pushed:
        console.print("[dim]No scripts to push[/dim]")
    else:
        console.print(
            f"[green]Push completed[/green] "
            f"(server: {len(result.server)}, client: {len(result.client)})"
        )


def _print_entries(entries: list[DiffEntry]) -> None:
    if not entries:
        console.print("[dim]No scripts available for diff[/dim]")
        return
    table = Table(title="Scripts")
    table.add_column("Key", style="cyan")
    table.add_column("Title", style="white")
    table.add_column("Status")
    table.add_column("Local file", style="dim")

    styles = {"both": "green", "remote-only": "yellow", "local-only": "magenta"}
    for entry in entries:
        status = entry.status
        if entry.modified:
            status = "modified"
        style = "red" if entry.modified else styles[entry.status]
        table.add_row(
            entry.key,
            entry.title,
            f"[{style}]{status}[/{style}]",
            entry.local_path.name if entry.local_path else "-",
        )
    console.print(table)


def _show_entry(entry: DiffEntry) -> None:
    remote = (entry.remote_content or "").splitlines(keepends=True)
    local = []
    if entry.local_path is not None:
        local = entry.local_path.read_text(encoding="utf-8").splitlines(keepends=True)
    lines = difflib.unified_diff(
        remote,
        local,
        fromfile=f"remote/{entry.key}",
        tofile=str(entry.local_path) if entry.local_path else "local/(missing)",
    )
    text = "".join(lines)
    if not text:
        console.print(f"[dim]{entry.key}: no differences[/dim]")
        return
    console.print(Syntax(text, "diff"))


@click.command()
@site_option
@click.option("--show", "show_key", default=None, help="Print a unified diff for KEY")
@click.pass_context
def diff(ctx: click.Context, site_id: int | None, show_key: str | None) -> None:
    """Compare the server's scripts with local files."""
    root = _start(ctx, "diff", site_id)
    with cli_errors():
        entries = run_async(with_orchestrator(root, lambda o: o.diff(site_id)))
    if show_key is None:
        _print_entries(entries)
        return
    for entry in entries:
        if entry.key == show_key:
            _show_entry(entry)
            return
    variant, _, ident = show_key.partition(":")
    if ident.isdigit():
        with cli_errors():
            raise ScriptNotFoundError(variant, int(ident))
    raise click.ClickException(f"No script with key {show_key}")


@click.command()
@click.argument("paths", nargs=-1, required=True, type=click.Path(dir_okay=False))
@click.option("--server", "variant", flag_value="server", help="Treat files as server scripts")
@click.option("--client", "variant", flag_value="client", help="Treat files as client scripts")
@site_option
@click.pass_context
def upload(
    ctx: click.Context, paths: tuple[str, ...], variant: str | None, site_id: int | None
) -> None:
    """Send arbitrary script files to the server."""
    root = _start(ctx, "upload", site_id)
    target = ScriptVariant(variant) if variant else None
    with cli_errors():
        result = run_async(
            with_orchestrator(
                root, lambda o: o.upload([Path(p) for p in paths], target, site_id)
            )
        )
    for skipped in result.skipped:
        console.print(
            f"[yellow]Skipped {skipped}: use --server or --client[/yellow]"
        )
    if not result.server and not result.client:
        console.print("[dim]No scripts to upload[/dim]")
        return
    console.print(
        f"[green]Uploaded scripts[/green] "
        f"(server: {len(result.server)}, client: {len(result.client)})"
    )


@click.command()
@site_option
@click.option(
    "--delay", type=float, default=None, help="Seconds to wait after the last change"
)
@click.pass_context
def watch(ctx: click.Context, site_id: int | None, delay: float | None) -> None:
    """Push script files of a site whenever they are saved."""
    from owlanter.sync.watch import ScriptWatcher

    root = _start(ctx, "watch", site_id)
    with cli_errors():
        info = SiteRegistry(root).resolve(site_id)
        if delay is None:
            delay = get_default_delay(root)

    def _report(path: Path, record, error: Exception | None) -> None:
        if error is not None:
            console.print(f"[red]✗ {path.name}: {error}[/red]")
        elif record is not None:
            console.print(f"[green]✓[/green] {path.name}")

    async def _run(orchestrator) -> None:
        watcher = ScriptWatcher(orchestrator, info.site_id, delay=delay, on_result=_report)
        await watcher.run()

    console.print(
        f"Watching site [cyan]{info.site_id}[/cyan] {info.site_name} "
        "[dim](Ctrl+C to stop)[/dim]"
    )
    try:
        with cli_errors():
            run_async(with_orchestrator(root, _run))
    except KeyboardInterrupt:
        console.print("[dim]Stopped[/dim]")

"""Script commands - local script listing and the active script set."""

import click
from rich.table import Table

from owlanter.cli.utils import cli_errors, console, get_root
from owlanter.scripts.models import ScriptVariant
from owlanter.scripts.repository import LocalScriptRepository
from owlanter.scripts.snapshot import load_known_scripts
from owlanter.sites.registry import SiteRegistry
from owlanter.sites.state import SiteStateStore, toggle_active_script

site_option = click.option(
    "--site", "site_id", type=int, default=None, help="Site ID (default: current site)"
)
variant_argument = click.argument("variant", type=click.Choice(["server", "client"]))


def _ids(value: str) -> list[int]:
    try:
        return [int(part) for part in value.replace(",", " ").split()]
    except ValueError as e:
        raise click.BadParameter(f"expected comma-separated ids, got {value!r}") from e


@click.group()
def scripts() -> None:
    """Inspect local scripts and choose which ones push sends.

    \b
      owlanter scripts list                   List local scripts
      owlanter scripts show                   Show the active script ids
      owlanter scripts set --server 4,7       Replace the active ids
      owlanter scripts toggle server 4        Add or remove one id
      owlanter scripts clear                  Push everything again
    """
    pass


@scripts.command("list")
@site_option
@click.pass_context
def scripts_list(ctx: click.Context, site_id: int | None) -> None:
    """List the local script files of a site."""
    registry = SiteRegistry(get_root(ctx))
    repository = LocalScriptRepository()
    with cli_errors():
        info = registry.resolve(site_id)
        paths = registry.paths(info)
        known = load_known_scripts(paths.snapshot_path)
        active = SiteStateStore(registry).get_active(info.site_id)
        table = Table(title=f"Scripts of site {info.site_id}")
        table.add_column("", style="green")
        table.add_column("Type", style="cyan")
        table.add_column("ID")
        table.add_column("Title", style="white")
        table.add_column("File", style="dim")
        for variant in ScriptVariant:
            active_ids = active.ids(variant)
            for local in repository.scan(paths.script_dir(variant), variant, known[variant]):
                table.add_row(
                    "*" if local.id in active_ids else "",
                    variant.value,
                    str(local.id) if local.id is not None else "(new)",
                    local.title,
                    local.path.name,
                )
    if table.row_count == 0:
        console.print("[dim]No local scripts. Run 'owlanter pull' first.[/dim]")
    else:
        console.print(table)


@scripts.command("show")
@site_option
@click.pass_context
def scripts_show(ctx: click.Context, site_id: int | None) -> None:
    """Show the active script ids."""
    registry = SiteRegistry(get_root(ctx))
    with cli_errors():
        info = registry.resolve(site_id)
        active = SiteStateStore(registry).get_active(info.site_id)
    if active.is_empty():
        console.print("[dim]No active scripts; push sends every local script[/dim]")
        return
    console.print(f"server: {', '.join(map(str, active.server)) or '-'}")
    console.print(f"client: {', '.join(map(str, active.client)) or '-'}")


@scripts.command("set")
@click.option("--server", "server_ids", default="", help="Comma-separated server script ids")
@click.option("--client", "client_ids", default="", help="Comma-separated client script ids")
@site_option
@click.pass_context
def scripts_set(
    ctx: click.Context, server_ids: str, client_ids: str, site_id: int | None
) -> None:
    """Replace the active script ids."""
    registry = SiteRegistry(get_root(ctx))
    with cli_errors():
        info = registry.resolve(site_id)
        active = SiteStateStore(registry).set_active(
            info.site_id, _ids(server_ids), _ids(client_ids)
        )
    console.print(f"server: {active.server}  client: {active.client}")


@scripts.command("clear")
@site_option
@click.pass_context
def scripts_clear(ctx: click.Context, site_id: int | None) -> None:
    """Clear the active script ids."""
    registry = SiteRegistry(get_root(ctx))
    with cli_errors():
        info = registry.resolve(site_id)
        SiteStateStore(registry).clear_active(info.site_id)
    console.print("[green]Active scripts cleared[/green]")


@scripts.command("toggle")
@variant_argument
@click.argument("script_id", type=int)
@site_option
@click.pass_context
def scripts_toggle(
    ctx: click.Context, variant: str, script_id: int, site_id: int | None
) -> None:
    """Add SCRIPT_ID to the active set, or remove it if already there."""
    registry = SiteRegistry(get_root(ctx))
    with cli_errors():
        info = registry.resolve(site_id)
        now_active = toggle_active_script(
            SiteStateStore(registry), info.site_id, ScriptVariant(variant), script_id
        )
    state = "[green]active[/green]" if now_active else "[dim]inactive[/dim]"
    console.print(f"{variant} script {script_id} is now {state}")

"""Site commands - register, select and remove sites."""

import click
from rich.table import Table

from owlanter.cli.utils import cli_errors, console, get_root
from owlanter.sites.registry import SiteRegistry


@click.group()
def site() -> None:
    """Manage the sites of this workspace.

    \b
      owlanter site list                List registered sites
      owlanter site add 12 Orders       Register site 12
      owlanter site select 12           Make site 12 current
      owlanter site remove 12           Unregister site 12
    """
    pass


@site.command("list")
@click.pass_context
def site_list(ctx: click.Context) -> None:
    """List registered sites."""
    with cli_errors():
        config = SiteRegistry(get_root(ctx)).load()

    table = Table(title="Sites")
    table.add_column("", style="green")
    table.add_column("ID", style="cyan")
    table.add_column("Name", style="white")
    table.add_column("Environment")
    table.add_column("Last sync", style="dim")

    for info in config.sites:
        marker = "*" if info.site_id == config.current_site else ""
        table.add_row(
            marker,
            str(info.site_id),
            info.site_name,
            f"[{info.color}]{info.environment}[/{info.color}]",
            info.last_sync or "-",
        )

    if table.row_count == 0:
        console.print("[dim]No sites registered. Use 'owlanter site add'.[/dim]")
    else:
        console.print(table)


@site.command("add")
@click.argument("site_id", type=int)
@click.argument("name")
@click.option("--description", "-d", default="", help="Free-form description")
@click.option(
    "--environment",
    "-e",
    type=click.Choice(["production", "staging", "development"]),
    default="development",
    show_default=True,
)
@click.pass_context
def site_add(
    ctx: click.Context, site_id: int, name: str, description: str, environment: str
) -> None:
    """Register SITE_ID under NAME and create its directories."""
    registry = SiteRegistry(get_root(ctx))
    with cli_errors():
        info = registry.add(site_id, name, description=description, environment=environment)
        paths = registry.paths(info)
    console.print(f"[green]Added site {info.site_id} ({info.site_name})[/green]")
    console.print(f"[dim]{paths.root}[/dim]")


@site.command("select")
@click.argument("site_id", type=int)
@click.pass_context
def site_select(ctx: click.Context, site_id: int) -> None:
    """Make SITE_ID the current site."""
    with cli_errors():
        info = SiteRegistry(get_root(ctx)).select(site_id)
    console.print(f"Current site: [cyan]{info.site_id}[/cyan] {info.site_name}")


@site.command("remove")
@click.argument("site_id", type=int)
@click.option("--keep-files", is_flag=True, help="Keep the site directory on disk")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def site_remove(ctx: click.Context, site_id: int, keep_files: bool, yes: bool) -> None:
    """Unregister SITE_ID (and delete its directory unless --keep-files)."""
    registry = SiteRegistry(get_root(ctx))
    with cli_errors():
        info = registry.get(site_id)
        if not yes and not click.confirm(
            f"Remove site {info.site_id} ({info.site_name})?", default=False
        ):
            console.print("[yellow]Cancelled[/yellow]")
            return
        registry.remove(site_id, delete_files=not keep_files)
    console.print(f"[green]Removed site {site_id}[/green]")


@site.command("current")
@click.pass_context
def site_current(ctx: click.Context) -> None:
    """Show the current site."""
    with cli_errors():
        info = SiteRegistry(get_root(ctx)).current()
    if info is None:
        console.print("[yellow]No site selected[/yellow]")
        return
    console.print(
        f"[cyan]{info.site_id}[/cyan] {info.site_name} "
        f"([{info.color}]{info.environment}[/{info.color}])"
    )

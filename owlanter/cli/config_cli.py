"""Configuration commands - connection and sync settings in config.json."""

import click
from rich.table import Table

from owlanter.cli.utils import cli_errors, console, get_root, run_async
from owlanter.settings import load_config, save_config

ENVIRONMENTS = ("production", "staging", "development")


def _mask(secret: str) -> str:
    if not secret:
        return "-"
    if len(secret) <= 8:
        return "*" * len(secret)
    return f"{secret[:4]}…{secret[-4:]}"


@click.group()
def config() -> None:
    """Manage connection and sync settings.

    \b
      owlanter config show                         Show current settings
      owlanter config set --domain https://...     Set the server URL
      owlanter config test                         Check the connection
    """
    pass


@config.command("show")
@click.pass_context
def config_show(ctx: click.Context) -> None:
    """Show the workspace configuration (API key masked)."""
    with cli_errors():
        cfg = load_config(get_root(ctx))

    table = Table(title="Configuration", show_header=False)
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="white")
    table.add_row("domain", cfg.domain or "-")
    table.add_row("api-key", _mask(cfg.api_key))
    for env in ENVIRONMENTS:
        required = getattr(cfg.settings.confirmation_required, env)
        table.add_row(f"confirm {env}", "yes" if required else "no")
    table.add_row("default-delay", f"{cfg.settings.default_delay}s")
    table.add_row("max-retries", str(cfg.settings.max_retries))
    table.add_row("auto-backup", "yes" if cfg.settings.auto_backup else "no")
    table.add_row("backup-count", str(cfg.settings.backup_count))
    console.print(table)


@config.command("set")
@click.option("--domain", default=None, help="Server base URL")
@click.option("--api-key", default=None, help="Pleasanter API key")
@click.option("--default-delay", type=float, default=None, help="Watch debounce in seconds")
@click.option("--max-retries", type=int, default=None, help="Transport retries")
@click.option(
    "--confirm",
    "confirm_env",
    type=(click.Choice(ENVIRONMENTS), bool),
    multiple=True,
    help="Confirmation policy, e.g. --confirm staging true",
)
@click.pass_context
def config_set(
    ctx: click.Context,
    domain: str | None,
    api_key: str | None,
    default_delay: float | None,
    max_retries: int | None,
    confirm_env: tuple[tuple[str, bool], ...],
) -> None:
    """Update config.json."""
    root = get_root(ctx)
    with cli_errors():
        cfg = load_config(root)
        if domain is not None:
            cfg.domain = domain.strip()
        if api_key is not None:
            cfg.api_key = api_key.strip()
        if default_delay is not None:
            cfg.settings.default_delay = default_delay
        if max_retries is not None:
            cfg.settings.max_retries = max_retries
        for env, required in confirm_env:
            setattr(cfg.settings.confirmation_required, env, required)
        path = save_config(cfg, root)
    console.print(f"[green]Saved {path}[/green]")


@config.command("test")
@click.pass_context
def config_test(ctx: click.Context) -> None:
    """Check that the server answers with the configured API key."""
    from owlanter.remote.client import create_client

    root = get_root(ctx)

    async def _test() -> bool:
        async with create_client(root) as client:
            return await client.test_connection()

    with cli_errors():
        ok = run_async(_test())
    if not ok:
        raise click.ClickException("Connection failed")
    console.print("[green]Connection OK[/green]")

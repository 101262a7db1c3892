"""CLI interface for owlanter.

Modular CLI structure with command groups split by functionality.
"""

import logging

import click
from dotenv import load_dotenv

from owlanter import __version__

# Load environment variables from .env file
load_dotenv()

logger = logging.getLogger(__name__)


@click.group(invoke_without_command=True)
@click.option(
    "--version",
    is_flag=True,
    help="Show the owlanter version and exit.",
)
@click.option(
    "--workspace",
    "-w",
    type=click.Path(file_okay=False),
    envvar="OWLANTER_WORKSPACE",
    help="Workspace root (the directory holding _config/).",
)
@click.option("--verbose", "-v", is_flag=True, help="Show progress logging.")
@click.pass_context
def main(ctx: click.Context, version: bool, workspace: str | None, verbose: bool) -> None:
    """Owlanter - sync Pleasanter server and client scripts with local files.

    \b
      owlanter init                 Create the workspace layout
      owlanter site add 12 Orders   Register a site
      owlanter pull                 Download scripts of the current site
      owlanter diff                 Compare local files with the server
      owlanter push                 Send local scripts to the server
      owlanter watch                Push files as they are saved
    """
    if version:
        click.echo(__version__)
        ctx.exit()

    ctx.ensure_object(dict)
    ctx.obj["workspace"] = workspace
    ctx.obj["verbose"] = verbose

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


def register_commands() -> None:
    """Register all command groups with the main CLI."""
    from owlanter.cli.config_cli import config
    from owlanter.cli.scripts import scripts
    from owlanter.cli.sites import site
    from owlanter.cli.sync import diff, init, pull, push, upload, watch

    main.add_command(init)
    main.add_command(site)
    main.add_command(pull)
    main.add_command(push)
    main.add_command(diff)
    main.add_command(upload)
    main.add_command(watch)
    main.add_command(scripts)
    main.add_command(config)


# Register commands at import time
register_commands()

__all__ = ["main"]

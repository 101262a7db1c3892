"""CLI utilities and shared helpers."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any, TypeVar

import click
from rich.console import Console

from owlanter.errors import OwlanterError
from owlanter.settings import get_workspace_root

console = Console()

T = TypeVar("T")


def run_async(coro: Awaitable[T]) -> T:
    """Run a coroutine from a synchronous click command."""
    return asyncio.run(coro)


def get_root(ctx: click.Context) -> Path:
    """Workspace root from ``--workspace`` or discovery."""
    obj = ctx.find_root().obj or {}
    workspace = obj.get("workspace")
    return Path(workspace).resolve() if workspace else get_workspace_root()


def is_verbose(ctx: click.Context) -> bool:
    return bool((ctx.find_root().obj or {}).get("verbose"))


@contextmanager
def cli_errors() -> Iterator[None]:
    """Report engine errors as click errors (exit code 1)."""
    try:
        yield
    except OwlanterError as exc:
        raise click.ClickException(str(exc)) from exc


async def with_orchestrator(root: Path, fn: Callable[[Any], Awaitable[T]]) -> T:
    """Run ``fn(orchestrator)`` with a connected client that is closed afterwards."""
    from owlanter.remote.client import create_client
    from owlanter.sites.registry import SiteRegistry
    from owlanter.sites.state import SiteStateStore
    from owlanter.sync.orchestrator import SyncOrchestrator

    registry = SiteRegistry(root)
    async with create_client(root) as client:
        orchestrator = SyncOrchestrator(registry, SiteStateStore(registry), client)
        return await fn(orchestrator)

"""Pull, push, diff, upload and incremental push for one workspace.

Every operation targets one site (``site_id=None`` means the currently
selected site) and runs to completion before returning; callers are
responsible for not overlapping operations on the same site.  Failures
surface as :class:`~owlanter.errors.SyncError` carrying the operation name
and site id, chained to the underlying error.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable, Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path

from owlanter.errors import OwlanterError, ScriptValidationError, SyncError
from owlanter.remote.client import RemoteScriptStore
from owlanter.scripts.codec import MetadataCodec
from owlanter.scripts.diff import DiffEntry, DiffReconciler
from owlanter.scripts.models import ScriptRecord, ScriptVariant
from owlanter.scripts.repository import (
    LocalScriptFile,
    LocalScriptRepository,
    is_script_file,
    list_script_files,
    script_filename,
    shadow_duplicates,
)
from owlanter.scripts.snapshot import SiteSnapshot, load_known_scripts, write_snapshot
from owlanter.settings import is_confirmation_required
from owlanter.sites.registry import SiteInfo, SitePaths, SiteRegistry, utc_now
from owlanter.sites.state import SiteStateStore, SiteSyncState

logger = logging.getLogger(__name__)

ConfirmCallback = Callable[[SiteInfo], bool]


# ─── Results ────────────────────────────────────────────────────────────────


@dataclass
class PullResult:
    site_id: int
    written: list[Path] = field(default_factory=list)
    unchanged: list[Path] = field(default_factory=list)
    removed: list[Path] = field(default_factory=list)
    server_count: int = 0
    client_count: int = 0


@dataclass
class PushResult:
    """What a push sent, or why it did not send anything.

    A dry run sends nothing and carries the diff entries instead.
    """

    site_id: int
    server: list[ScriptRecord] = field(default_factory=list)
    client: list[ScriptRecord] = field(default_factory=list)
    dry_run: bool = False
    cancelled: bool = False
    entries: list[DiffEntry] = field(default_factory=list)

    @property
    def pushed(self) -> bool:
        return not (self.dry_run or self.cancelled) and bool(self.server or self.client)


@dataclass
class UploadResult:
    site_id: int
    server: list[ScriptRecord] = field(default_factory=list)
    client: list[ScriptRecord] = field(default_factory=list)
    skipped: list[Path] = field(default_factory=list)


# ─── Helpers ────────────────────────────────────────────────────────────────


@contextmanager
def _operation(name: str, site_id: int | None) -> Iterator[None]:
    """Re-raise engine and filesystem errors as :class:`SyncError`."""
    try:
        yield
    except SyncError:
        raise
    except (OwlanterError, OSError) as exc:
        logger.debug("%s failed for site %s", name, site_id, exc_info=True)
        raise SyncError(name, site_id, str(exc)) from exc


def filter_active(
    files: Iterable[LocalScriptFile], active_ids: Sequence[int]
) -> list[LocalScriptFile]:
    """Keep files whose id is active; an empty active list keeps everything."""
    files = list(files)
    if not active_ids:
        return files
    wanted = set(active_ids)
    return [local for local in files if local.id is not None and local.id in wanted]


def infer_variant(path: Path) -> ScriptVariant | None:
    """Variant named by a ``server-script``/``client-script`` path segment."""
    for variant in ScriptVariant:
        if any(variant.directory_name in part for part in Path(path).parts):
            return variant
    return None


# ─── Orchestrator ───────────────────────────────────────────────────────────


class SyncOrchestrator:
    """Composes the registry, state store, repository and remote store."""

    def __init__(
        self,
        registry: SiteRegistry,
        states: SiteStateStore,
        store: RemoteScriptStore,
        codec: MetadataCodec | None = None,
    ):
        self.registry = registry
        self.states = states
        self.store = store
        self.codec = codec or MetadataCodec()
        self.repository = LocalScriptRepository(self.codec)
        self.reconciler = DiffReconciler(self.codec)

    def _resolve(self, operation: str, site_id: int | None) -> SiteInfo:
        with _operation(operation, site_id):
            return self.registry.resolve(site_id)

    async def _collect_local(
        self, paths: SitePaths
    ) -> tuple[list[LocalScriptFile], list[LocalScriptFile]]:
        known = await asyncio.to_thread(load_known_scripts, paths.snapshot_path)
        server, client = await asyncio.gather(
            asyncio.to_thread(
                self.repository.scan,
                paths.server_dir,
                ScriptVariant.server,
                known[ScriptVariant.server],
            ),
            asyncio.to_thread(
                self.repository.scan,
                paths.client_dir,
                ScriptVariant.client,
                known[ScriptVariant.client],
            ),
        )
        return server, client

    async def _mark_pushed(self, site_id: int) -> None:
        def _apply(state: SiteSyncState) -> SiteSyncState:
            state.last_pushed = utc_now()
            return state

        await asyncio.to_thread(self.states.transact, site_id, _apply)
        await asyncio.to_thread(self.registry.touch_last_sync, site_id)

    # ── Pull ────────────────────────────────────────────────────────────

    def _write_pull(self, paths: SitePaths, snapshot: SiteSnapshot) -> PullResult:
        result = PullResult(site_id=0)
        write_snapshot(paths.snapshot_path, snapshot)

        keep: dict[ScriptVariant, set[Path]] = {}
        for variant in ScriptVariant:
            directory = paths.script_dir(variant)
            directory.mkdir(parents=True, exist_ok=True)
            keep[variant] = set()
            for record in snapshot.scripts(variant):
                target = directory / script_filename(record)
                content = self.codec.encode(record).encode("utf-8")
                if target.is_file() and target.read_bytes() == content:
                    result.unchanged.append(target)
                else:
                    target.write_bytes(content)
                    result.written.append(target)
                keep[variant].add(target)

        # Orphans are only removed once every write above has succeeded.
        for variant in ScriptVariant:
            for path in list_script_files(paths.script_dir(variant)):
                if path not in keep[variant]:
                    path.unlink()
                    result.removed.append(path)
        return result

    async def pull(self, site_id: int | None = None) -> PullResult:
        """Overwrite the local scripts of a site with the remote ones.

        Nothing is written or deleted if the fetch fails.
        """
        site = self._resolve("pull", site_id)
        with _operation("pull", site.site_id):
            snapshot = await self.store.fetch_site(site.site_id)
            paths = self.registry.ensure_site_dirs(site)
            result = await asyncio.to_thread(self._write_pull, paths, snapshot)
            result.site_id = site.site_id
            result.server_count = len(snapshot.server_scripts)
            result.client_count = len(snapshot.client_scripts)

            def _apply(state: SiteSyncState) -> SiteSyncState:
                state.site_name = site.site_name
                state.title = snapshot.title or state.title
                state.reference_type = snapshot.reference_type or state.reference_type
                state.scripts_count.server_scripts = result.server_count
                state.scripts_count.client_scripts = result.client_count
                state.last_pulled = utc_now()
                return state

            await asyncio.to_thread(self.states.transact, site.site_id, _apply)
            await asyncio.to_thread(self.registry.touch_last_sync, site.site_id)

        logger.info(
            "Pulled site %s: %d written, %d unchanged, %d removed",
            site.site_id,
            len(result.written),
            len(result.unchanged),
            len(result.removed),
        )
        return result

    # ── Diff ────────────────────────────────────────────────────────────

    async def diff(self, site_id: int | None = None) -> list[DiffEntry]:
        """Compare the live remote scripts with the local files.  Read-only."""
        site = self._resolve("diff", site_id)
        with _operation("diff", site.site_id):
            paths = self.registry.paths(site)
            snapshot, (local_server, local_client) = await asyncio.gather(
                self.store.fetch_site(site.site_id), self._collect_local(paths)
            )
            return self.reconciler.reconcile(
                snapshot.server_scripts,
                snapshot.client_scripts,
                shadow_duplicates(local_server),
                shadow_duplicates(local_client),
            )

    # ── Push ────────────────────────────────────────────────────────────

    async def push(
        self,
        site_id: int | None = None,
        *,
        dry_run: bool = False,
        force: bool = False,
        confirm: ConfirmCallback | None = None,
    ) -> PushResult:
        """Send local scripts to the server in one batched update.

        When a variant has active script ids, only those files of that
        variant are sent.  If the site's environment requires confirmation
        and ``force`` is not set, ``confirm`` is asked; without a callback,
        or when it declines, the push is cancelled.
        """
        site = self._resolve("push", site_id)
        if dry_run:
            entries = await self.diff(site.site_id)
            return PushResult(site_id=site.site_id, dry_run=True, entries=entries)

        with _operation("push", site.site_id):
            local_server, local_client = await self._collect_local(self.registry.paths(site))
            active = self.states.get_active(site.site_id)
            server = filter_active(shadow_duplicates(local_server), active.server)
            client = filter_active(shadow_duplicates(local_client), active.client)
            result = PushResult(
                site_id=site.site_id,
                server=[local.record for local in server],
                client=[local.record for local in client],
            )
            if not result.server and not result.client:
                logger.info("No scripts to push for site %s", site.site_id)
                return result

            if not force and is_confirmation_required(site.environment, self.registry.root):
                if confirm is None or not confirm(site):
                    logger.info("Push to %s site %s cancelled", site.environment, site.site_id)
                    result.cancelled = True
                    return result

            await self.store.batch_update(
                site.site_id,
                client_scripts=[record.to_api() for record in result.client],
                server_scripts=[record.to_api() for record in result.server],
            )
            await self._mark_pushed(site.site_id)

        logger.info(
            "Pushed site %s (server: %d, client: %d)",
            site.site_id,
            len(result.server),
            len(result.client),
        )
        return result

    # ── Upload ──────────────────────────────────────────────────────────

    async def upload(
        self,
        paths: Iterable[Path | str],
        variant: ScriptVariant | None = None,
        site_id: int | None = None,
    ) -> UploadResult:
        """Send arbitrary script files, wherever they live.

        Without ``variant`` each path must contain a ``server-script`` or
        ``client-script`` segment; other paths are skipped.
        """
        site = self._resolve("upload", site_id)
        result = UploadResult(site_id=site.site_id)
        with _operation("upload", site.site_id):
            for raw_path in paths:
                path = Path(raw_path)
                target = variant or infer_variant(path)
                if target is None:
                    logger.warning("Cannot tell whether %s is a server or client script", path)
                    result.skipped.append(path)
                    continue
                if not is_script_file(path):
                    raise ScriptValidationError(f"{path} is not a .js script file")
                local = await asyncio.to_thread(self.repository.read, path, target)
                if target is ScriptVariant.server:
                    result.server.append(local.record)
                else:
                    result.client.append(local.record)

            if not result.server and not result.client:
                logger.info("No scripts to upload")
                return result

            await self.store.batch_update(
                site.site_id,
                client_scripts=[record.to_api() for record in result.client],
                server_scripts=[record.to_api() for record in result.server],
            )
            await self._mark_pushed(site.site_id)
        return result

    # ── Incremental push ────────────────────────────────────────────────

    async def incremental_push(
        self, site_id: int | None, path: Path | str
    ) -> ScriptRecord | None:
        """Push one changed file, ignoring the active script set.

        Returns the pushed record, or None when the path is not a script
        file inside the site's managed directories or no longer exists.
        """
        site = self._resolve("incremental push", site_id)
        path = Path(path)
        with _operation("incremental push", site.site_id):
            paths = self.registry.paths(site)
            variant = paths.variant_of(path)
            if variant is None or not is_script_file(path):
                logger.debug("Ignoring %s: not a managed script file", path)
                return None
            if not path.is_file():
                logger.debug("Ignoring %s: file no longer exists", path)
                return None

            known = await asyncio.to_thread(load_known_scripts, paths.snapshot_path)
            local = await asyncio.to_thread(
                self.repository.read, path, variant, known[variant]
            )
            await self.store.update_script(site.site_id, local.record)
            await self._mark_pushed(site.site_id)

        logger.info("Uploaded changes for %s", path.name)
        return local.record


__all__ = [
    "PullResult",
    "PushResult",
    "SyncOrchestrator",
    "UploadResult",
    "filter_active",
    "infer_variant",
]

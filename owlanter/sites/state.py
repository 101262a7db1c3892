"""Per-site sync state and the active script set.

Each site directory holds ``site-info.json``::

    {
      "site-id": 12,
      "site-name": "Orders",
      "last-pulled": "2026-01-01T00:00:00+00:00",
      "scripts-count": {"server-scripts": 3, "client-scripts": 1},
      "active-scripts": {"server": [4, 7], "client": []},
      ...
    }

All writes go through :meth:`SiteStateStore.transact`, which reads the
current document, applies a function returning the new state and replaces
the file atomically.  Transactions are serialised within one process only;
two processes writing the same site can still lose an update.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from collections.abc import Callable, Iterable
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from owlanter.errors import ConfigurationError
from owlanter.scripts.models import ScriptVariant
from owlanter.sites.registry import SiteRegistry, utc_now

logger = logging.getLogger(__name__)

STATE_VERSION = "1.0.0"


def normalize_ids(ids: Iterable[int]) -> list[int]:
    """Deduplicate and sort ascending.

    >>> normalize_ids([3, 1, 3])
    [1, 3]
    """
    return sorted({int(script_id) for script_id in ids})


class ScriptCounts(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    server_scripts: int = Field(default=0, alias="server-scripts")
    client_scripts: int = Field(default=0, alias="client-scripts")


class ActiveScripts(BaseModel):
    """Script ids designated active, per variant.

    Ids may reference scripts that no longer exist; such ids are inert.
    """

    server: list[int] = Field(default_factory=list)
    client: list[int] = Field(default_factory=list)

    @field_validator("server", "client", mode="before")
    @classmethod
    def _normalize(cls, value: object) -> list[int]:
        if value is None:
            return []
        if not isinstance(value, (list, tuple, set)):
            raise ValueError("active script ids must be a list")
        return normalize_ids(value)

    def ids(self, variant: ScriptVariant) -> list[int]:
        return list(self.server if variant is ScriptVariant.server else self.client)

    def is_empty(self) -> bool:
        return not self.server and not self.client


class SiteSyncState(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    site_id: int = Field(alias="site-id")
    site_name: str = Field(default="", alias="site-name")
    title: str = ""
    reference_type: str = Field(default="", alias="reference-type")
    tenant_id: int | None = Field(default=None, alias="tenant-id")
    environment: str = "development"
    created_at: str = Field(default_factory=utc_now, alias="created-at")
    last_pulled: str | None = Field(default=None, alias="last-pulled")
    last_pushed: str | None = Field(default=None, alias="last-pushed")
    version: str = STATE_VERSION
    scripts_count: ScriptCounts = Field(default_factory=ScriptCounts, alias="scripts-count")
    active_scripts: ActiveScripts = Field(
        default_factory=ActiveScripts, alias="active-scripts"
    )
    folder_name: str | None = Field(default=None, alias="folder-name")


def _atomic_write(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(content)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


class SiteStateStore:
    """Reads and transactionally updates ``site-info.json`` for each site."""

    def __init__(self, registry: SiteRegistry):
        self.registry = registry
        self._lock = threading.Lock()

    def _path(self, site_id: int) -> Path:
        return self.registry.paths(site_id).info_path

    def _default_state(self, site_id: int) -> SiteSyncState:
        site = self.registry.get(site_id)
        return SiteSyncState(
            site_id=site.site_id,
            site_name=site.site_name,
            environment=site.environment,
            folder_name=site.folder_name,
        )

    def get_info(self, site_id: int) -> SiteSyncState:
        """Current state of a site; a missing file yields a fresh state.

        Raises:
            SiteNotFoundError: If the site is not registered.
            ConfigurationError: If ``site-info.json`` is malformed.
        """
        path = self._path(site_id)
        try:
            content = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return self._default_state(site_id)
        try:
            return SiteSyncState.model_validate(json.loads(content))
        except (json.JSONDecodeError, ValidationError) as exc:
            raise ConfigurationError(f"Failed to load {path}: {exc}") from exc

    def transact(
        self, site_id: int, fn: Callable[[SiteSyncState], SiteSyncState]
    ) -> SiteSyncState:
        """Apply ``fn`` to the current state and persist the result atomically."""
        with self._lock:
            current = self.get_info(site_id)
            updated = fn(current.model_copy(deep=True))
            document = json.dumps(
                updated.model_dump(by_alias=True), indent=2, ensure_ascii=False
            )
            _atomic_write(self._path(site_id), document)
            return updated

    # ── Active script set ───────────────────────────────────────────────

    def get_active(self, site_id: int) -> ActiveScripts:
        return self.get_info(site_id).active_scripts

    def set_active(
        self, site_id: int, server: Iterable[int], client: Iterable[int]
    ) -> ActiveScripts:
        """Replace both active lists."""
        active = ActiveScripts(server=list(server), client=list(client))

        def _apply(state: SiteSyncState) -> SiteSyncState:
            state.active_scripts = active
            return state

        return self.transact(site_id, _apply).active_scripts

    def clear_active(self, site_id: int) -> ActiveScripts:
        return self.set_active(site_id, [], [])


def toggle_active_script(
    store: SiteStateStore, site_id: int, variant: ScriptVariant, script_id: int
) -> bool:
    """Add ``script_id`` to the active set if absent, remove it if present.

    Built from get + set, so a concurrent writer between the two can lose an
    update.

    Returns:
        True if the script is active afterwards.
    """
    active = store.get_active(site_id)
    server, client = active.server, active.client
    ids = server if variant is ScriptVariant.server else client
    now_active = script_id not in ids
    if now_active:
        ids.append(script_id)
    else:
        ids.remove(script_id)
    store.set_active(site_id, server, client)
    return now_active


__all__ = [
    "ActiveScripts",
    "STATE_VERSION",
    "ScriptCounts",
    "SiteStateStore",
    "SiteSyncState",
    "normalize_ids",
    "toggle_active_script",
]

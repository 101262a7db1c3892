"""Shared fixtures: an isolated workspace and an in-memory script store."""

import copy
from typing import Any

import pytest

from owlanter.errors import RemoteConnectionError
from owlanter.scripts.models import ScriptVariant
from owlanter.scripts.snapshot import SiteSnapshot
from owlanter.sites.registry import SiteRegistry
from owlanter.sites.state import SiteStateStore
from owlanter.sync.orchestrator import SyncOrchestrator

SITE_ID = 12

_ENV_VARS = (
    "OWLANTER_WORKSPACE",
    "OWLANTER_DOMAIN",
    "OWLANTER_API_KEY",
    "OWLANTER_TIMEOUT",
    "OWLANTER_MAX_RETRIES",
    "OWLANTER_CONFIRM_PUSH",
)


class FakeScriptStore:
    """In-memory stand-in for the Pleasanter site-settings API.

    Updates are applied the way the server does: objects with a known
    ``Id`` replace the script, ``Delete: 1`` removes it, objects without an
    id are created with the next free id.
    """

    def __init__(self) -> None:
        self.sites: dict[int, dict[str, Any]] = {}
        self.calls: list[tuple[int, list[dict], list[dict]]] = []
        self.fail_with: Exception | None = None
        self.updated: list[tuple[int, Any]] = []

    def add_site(
        self,
        site_id: int,
        title: str = "Orders",
        server: list[dict] | None = None,
        client: list[dict] | None = None,
    ) -> None:
        self.sites[site_id] = {
            "SiteId": site_id,
            "Title": title,
            "ReferenceType": "Issues",
            "SiteSettings": {
                "ServerScripts": list(server or []),
                "Scripts": list(client or []),
            },
        }

    async def fetch_site(self, site_id: int) -> SiteSnapshot:
        if self.fail_with is not None:
            raise self.fail_with
        return SiteSnapshot.from_payload(copy.deepcopy(self.sites[site_id]))

    async def batch_update(self, site_id, client_scripts=None, server_scripts=None):
        if self.fail_with is not None:
            raise self.fail_with
        client_scripts = list(client_scripts or [])
        server_scripts = list(server_scripts or [])
        self.calls.append((site_id, client_scripts, server_scripts))
        settings = self.sites[site_id]["SiteSettings"]
        self._apply(settings["Scripts"], client_scripts)
        self._apply(settings["ServerScripts"], server_scripts)
        return {"StatusCode": 200, "Message": "Updated"}

    async def update_script(self, site_id, record):
        self.updated.append((site_id, record))
        if record.variant is ScriptVariant.server:
            return await self.batch_update(site_id, server_scripts=[record.to_api()])
        return await self.batch_update(site_id, client_scripts=[record.to_api()])

    @staticmethod
    def _apply(existing: list[dict], updates: list[dict]) -> None:
        for update in updates:
            script_id = update.get("Id")
            index = next(
                (i for i, item in enumerate(existing) if item.get("Id") == script_id),
                None,
            )
            if update.get("Delete") == 1:
                if index is not None:
                    existing.pop(index)
                continue
            if script_id is None or index is None:
                next_id = max((item.get("Id", 0) for item in existing), default=0) + 1
                existing.append({**update, "Id": script_id if script_id is not None else next_id})
            else:
                existing[index] = dict(update)


@pytest.fixture
def workspace(tmp_path, monkeypatch):
    """An empty workspace root with no OWLANTER_* overrides."""
    for var in _ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("OWLANTER_LOG_DIR", str(tmp_path / "logs"))
    root = tmp_path / "workspace"
    root.mkdir()
    return root


@pytest.fixture
def registry(workspace):
    """Workspace with one development site (id 12) selected."""
    registry = SiteRegistry(workspace)
    registry.init_workspace()
    registry.add(SITE_ID, "Orders")
    return registry


@pytest.fixture
def states(registry):
    return SiteStateStore(registry)


@pytest.fixture
def store():
    store = FakeScriptStore()
    store.add_site(
        SITE_ID,
        server=[
            {
                "Id": 1,
                "Title": "Validate",
                "Name": "Validate",
                "Body": "context.Log('validate');",
                "ServerScriptBeforeCreate": True,
            },
            {
                "Id": 2,
                "Title": "Notify",
                "Name": "Notify",
                "Body": "context.Log('notify');",
                "ServerScriptAfterUpdate": True,
                "Shared": "true",
            },
        ],
        client=[
            {"Id": 5, "Title": "Banner", "Body": "$p.log('banner');", "ScriptAll": True},
        ],
    )
    return store


@pytest.fixture
def orchestrator(registry, states, store):
    return SyncOrchestrator(registry, states, store)


@pytest.fixture
def connection_failure():
    return RemoteConnectionError("Cannot connect to https://pleasanter.example")

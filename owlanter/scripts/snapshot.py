"""Site snapshots: the script lists of one site as returned by the server.

The raw payload of the last pull is written to ``site-setting.json`` in the
site directory.  It is never treated as a source of truth; the local
repository only uses it to recover fields (mostly flags) that a hand-edited
file does not declare.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from owlanter.errors import SnapshotError
from owlanter.scripts.models import (
    ClientScript,
    ScriptRecord,
    ScriptVariant,
    ServerScript,
)

logger = logging.getLogger(__name__)

SNAPSHOT_FILENAME = "site-setting.json"


def unwrap_payload(payload: Mapping[str, Any]) -> Mapping[str, Any]:
    """Return the site object from an API envelope or a bare payload."""
    response = payload.get("Response")
    if isinstance(response, Mapping) and isinstance(response.get("Data"), Mapping):
        return response["Data"]
    return payload


@dataclass
class SiteSnapshot:
    """Parsed site payload with both script lists normalised."""

    title: str = ""
    reference_type: str = ""
    server_scripts: list[ServerScript] = field(default_factory=list)
    client_scripts: list[ClientScript] = field(default_factory=list)
    raw: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> SiteSnapshot:
        data = unwrap_payload(payload)
        settings = data.get("SiteSettings") or {}
        if not isinstance(settings, Mapping):
            raise SnapshotError("SiteSettings is not an object")

        def _items(key: str) -> list[Mapping[str, Any]]:
            items = settings.get(key) or []
            if not isinstance(items, list):
                raise SnapshotError(f"SiteSettings.{key} is not a list")
            return [item for item in items if isinstance(item, Mapping)]

        return cls(
            title=str(data.get("Title") or ""),
            reference_type=str(data.get("ReferenceType") or ""),
            server_scripts=[ServerScript.from_api(i) for i in _items("ServerScripts")],
            client_scripts=[ClientScript.from_api(i) for i in _items("Scripts")],
            raw=dict(data),
        )

    def scripts(self, variant: ScriptVariant) -> list[ScriptRecord]:
        if variant is ScriptVariant.server:
            return list(self.server_scripts)
        return list(self.client_scripts)

    def by_id(self, variant: ScriptVariant) -> dict[int, ScriptRecord]:
        """Index one variant's scripts by id; id-less scripts are skipped."""
        return {
            script.id: script for script in self.scripts(variant) if script.id is not None
        }


def write_snapshot(path: Path, snapshot: SiteSnapshot) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(snapshot.raw, indent=2, ensure_ascii=False), encoding="utf-8")


def read_snapshot(path: Path) -> SiteSnapshot:
    """Read a persisted snapshot.

    Raises:
        SnapshotError: If the file is missing or not valid JSON.
    """
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise SnapshotError(f"No snapshot at {path}") from exc
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise SnapshotError(f"Malformed snapshot {path}: {exc}") from exc
    if not isinstance(payload, Mapping):
        raise SnapshotError(f"Malformed snapshot {path}: not an object")
    return SiteSnapshot.from_payload(payload)


def load_known_scripts(path: Path) -> dict[ScriptVariant, dict[int, ScriptRecord]]:
    """Index the last-pulled scripts by variant and id.

    The snapshot is an optimisation, so any failure yields empty maps.
    """
    try:
        snapshot = read_snapshot(path)
    except SnapshotError as exc:
        logger.debug("Ignoring snapshot: %s", exc)
        return {variant: {} for variant in ScriptVariant}
    return {variant: snapshot.by_id(variant) for variant in ScriptVariant}


__all__ = [
    "SNAPSHOT_FILENAME",
    "SiteSnapshot",
    "load_known_scripts",
    "read_snapshot",
    "unwrap_payload",
    "write_snapshot",
]

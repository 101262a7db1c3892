"""Reconcile remote scripts and local files into one identity-keyed view.

Entries are keyed ``{variant}:{id or title}``.  Remote scripts seed the
view; local files are overlaid, attaching their path to the matching
remote entry or creating a local-only entry.  No line-level diff is
computed here, the entries only put both sides next to each other.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from owlanter.scripts.codec import MetadataCodec
from owlanter.scripts.models import ScriptRecord, ScriptVariant
from owlanter.scripts.repository import LocalScriptFile

_VARIANT_ORDER = {ScriptVariant.server: 0, ScriptVariant.client: 1}


def entry_key(variant: ScriptVariant, script_id: int | None, title: str) -> str:
    return f"{variant.value}:{script_id if script_id is not None else title}"


@dataclass
class DiffEntry:
    """One script as seen from both sides.  Built fresh per reconciliation."""

    variant: ScriptVariant
    id: int | None
    title: str
    local_path: Path | None = None
    remote_content: str | None = None
    local: ScriptRecord | None = None
    remote: ScriptRecord | None = None

    @property
    def key(self) -> str:
        return entry_key(self.variant, self.id, self.title)

    @property
    def status(self) -> str:
        if self.local_path is not None and self.remote_content is not None:
            return "both"
        if self.remote_content is not None:
            return "remote-only"
        return "local-only"

    @property
    def modified(self) -> bool:
        """True when both sides exist and their content differs."""
        if self.local is None or self.remote is None:
            return False
        return not self.local.same_content(self.remote)


def _sort_key(entry: DiffEntry) -> tuple[int, int, int, str]:
    missing_id = entry.id is None
    return (
        _VARIANT_ORDER[entry.variant],
        int(missing_id),
        entry.id if entry.id is not None else 0,
        entry.title,
    )


class DiffReconciler:
    """Builds the ordered list of :class:`DiffEntry` for display."""

    def __init__(self, codec: MetadataCodec | None = None):
        self.codec = codec or MetadataCodec()

    def reconcile(
        self,
        remote_server: Sequence[ScriptRecord],
        remote_client: Sequence[ScriptRecord],
        local_server: Sequence[LocalScriptFile],
        local_client: Sequence[LocalScriptFile],
    ) -> list[DiffEntry]:
        entries: dict[str, DiffEntry] = {}

        for remote in (*remote_server, *remote_client):
            entry = DiffEntry(
                variant=remote.variant,
                id=remote.id,
                title=remote.label,
                remote_content=self.codec.encode(remote),
                remote=remote,
            )
            entries[entry.key] = entry

        for local in (*local_server, *local_client):
            key = entry_key(local.variant, local.id, local.title)
            existing = entries.get(key)
            if existing is not None:
                existing.local_path = local.path
                existing.title = local.title
                existing.local = local.record
            else:
                entries[key] = DiffEntry(
                    variant=local.variant,
                    id=local.id,
                    title=local.title,
                    local_path=local.path,
                    local=local.record,
                )

        return sorted(entries.values(), key=_sort_key)


__all__ = ["DiffEntry", "DiffReconciler", "entry_key"]

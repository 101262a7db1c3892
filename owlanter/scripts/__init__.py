"""Script records, the file header codec, local files and reconciliation."""

from owlanter.scripts.codec import MetadataCodec
from owlanter.scripts.diff import DiffEntry, DiffReconciler
from owlanter.scripts.models import (
    ClientScript,
    ScriptRecord,
    ScriptVariant,
    ServerScript,
)
from owlanter.scripts.repository import LocalScriptFile, LocalScriptRepository
from owlanter.scripts.snapshot import SiteSnapshot

__all__ = [
    "ClientScript",
    "DiffEntry",
    "DiffReconciler",
    "LocalScriptFile",
    "LocalScriptRepository",
    "MetadataCodec",
    "ScriptRecord",
    "ScriptVariant",
    "ServerScript",
    "SiteSnapshot",
]

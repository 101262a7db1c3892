"""Local script repository: script files on disk as records.

Each managed directory holds one ``.js`` file per script, named
``{id}_{title}.js`` (or ``new_{title}.js`` for scripts not yet created on
the server).  Identity is reconstructed from three sources, in priority
order:

1. ``metadata`` - the ``@pleasanter-id`` header field
2. ``filename`` - the numeric prefix of the file name
3. ``snapshot`` - a unique title match against the last-pulled snapshot,
   only for files that are not explicitly named ``new_*``

When the resolved id is known from the snapshot, the decoded file is
layered over the snapshot record, so flags a user did not re-declare in a
hand-edited file are kept.
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from owlanter.scripts.codec import MetadataCodec
from owlanter.scripts.models import ScriptRecord, ScriptVariant, ServerScript

logger = logging.getLogger(__name__)

SCRIPT_EXTENSION = ".js"
MAX_TITLE_LENGTH = 60
NEW_SCRIPT_MARKER = "new"

_FILENAME_RE = re.compile(r"^(\d+|new)_(.*)$")
_HOSTILE_CHARS_RE = re.compile(r'[\\/:*?"<>|]')


# ─── File naming ────────────────────────────────────────────────────────────


def sanitize_title(value: str) -> str:
    """Make a script title safe to use in a file name."""
    cleaned = _HOSTILE_CHARS_RE.sub("_", value)
    cleaned = re.sub(r"\s+", "_", cleaned)
    cleaned = re.sub(r"_+", "_", cleaned).strip("_")
    return cleaned[:MAX_TITLE_LENGTH] or "script"


def script_filename(record: ScriptRecord) -> str:
    """File name for a record: ``{id|new}_{sanitized title}.js``."""
    prefix = str(record.id) if record.id is not None else NEW_SCRIPT_MARKER
    title = record.title
    if not title and isinstance(record, ServerScript):
        title = record.name
    return f"{prefix}_{sanitize_title(title or record.default_title)}{SCRIPT_EXTENSION}"


def is_script_file(path: Path) -> bool:
    return path.suffix.lower() == SCRIPT_EXTENSION and not path.name.startswith(".")


def list_script_files(directory: Path) -> list[Path]:
    """Script files directly inside ``directory``, sorted by name.

    A missing directory yields an empty list.
    """
    try:
        entries = list(directory.iterdir())
    except FileNotFoundError:
        return []
    return sorted(
        (entry for entry in entries if entry.is_file() and is_script_file(entry)),
        key=lambda entry: entry.name,
    )


@dataclass(frozen=True)
class FilenameIdentity:
    """What the file name alone says about a script."""

    id: int | None
    title: str
    explicit_new: bool = False


def infer_identity(path: Path | str) -> FilenameIdentity:
    """Infer id and title from a file name.

    >>> infer_identity("42_MyScript.js")
    FilenameIdentity(id=42, title='MyScript', explicit_new=False)
    >>> infer_identity("new_Draft.js")
    FilenameIdentity(id=None, title='Draft', explicit_new=True)
    """
    stem = Path(path).stem
    match = _FILENAME_RE.match(stem)
    if match is None:
        return FilenameIdentity(id=None, title=stem)
    prefix, title = match.groups()
    if prefix == NEW_SCRIPT_MARKER:
        return FilenameIdentity(id=None, title=title, explicit_new=True)
    return FilenameIdentity(id=int(prefix), title=title)


# ─── Identity resolution ────────────────────────────────────────────────────


class IdentitySource(str, Enum):
    metadata = "metadata"
    filename = "filename"
    snapshot = "snapshot"


def resolve_identity(
    candidates: Iterable[tuple[IdentitySource, int | None]],
) -> tuple[int | None, IdentitySource | None]:
    """Return the first present id and the source it came from."""
    for source, value in candidates:
        if value is not None:
            return value, source
    return None, None


def match_unique_title(known: Mapping[int, ScriptRecord], title: str) -> int | None:
    """Id of the only snapshot record with exactly this title, if any."""
    if not title:
        return None
    counts = Counter(record.title for record in known.values())
    if counts[title] != 1:
        return None
    return next(script_id for script_id, record in known.items() if record.title == title)


# ─── Repository ─────────────────────────────────────────────────────────────


@dataclass
class LocalScriptFile:
    """A script file on disk paired with the record decoded from it."""

    path: Path
    record: ScriptRecord
    id_source: IdentitySource | None = None

    @property
    def id(self) -> int | None:
        return self.record.id

    @property
    def title(self) -> str:
        return self.record.label

    @property
    def variant(self) -> ScriptVariant:
        return self.record.variant


class LocalScriptRepository:
    """Reads script files from managed directories."""

    def __init__(self, codec: MetadataCodec | None = None):
        self.codec = codec or MetadataCodec()

    def read(
        self,
        path: Path,
        variant: ScriptVariant,
        known: Mapping[int, ScriptRecord] | None = None,
    ) -> LocalScriptFile:
        """Decode one script file.

        Raises:
            OSError: If the file cannot be read.
            MetadataDecodeError: If the content cannot be decoded.
        """
        path = Path(path)
        known = known or {}
        decoded = self.codec.decode(path.read_bytes())
        inferred = infer_identity(path)

        metadata_id = decoded.id
        if (
            metadata_id is not None
            and inferred.id is not None
            and metadata_id != inferred.id
        ):
            logger.warning(
                "%s: header id %s disagrees with file name id %s; using header",
                path.name,
                metadata_id,
                inferred.id,
            )

        snapshot_id = None
        if metadata_id is None and inferred.id is None and not inferred.explicit_new:
            snapshot_id = match_unique_title(
                known, decoded.text("title") or inferred.title
            )

        resolved, source = resolve_identity(
            [
                (IdentitySource.metadata, metadata_id),
                (IdentitySource.filename, inferred.id),
                (IdentitySource.snapshot, snapshot_id),
            ]
        )
        base = known.get(resolved) if resolved is not None else None
        record = self.codec.to_record(decoded, variant, base)
        record.id = resolved
        if not record.title:
            record.title = inferred.title
        if isinstance(record, ServerScript) and not record.name:
            record.name = record.title
        return LocalScriptFile(path=path, record=record, id_source=source)

    def scan(
        self,
        directory: Path,
        variant: ScriptVariant,
        known: Mapping[int, ScriptRecord] | None = None,
    ) -> list[LocalScriptFile]:
        """Decode every script file directly inside ``directory``.

        Files are visited in file-name order.  Duplicate ids are passed
        through; see :func:`shadow_duplicates`.
        """
        files = [
            self.read(path, variant, known) for path in list_script_files(Path(directory))
        ]
        logger.debug("Scanned %d %s scripts in %s", len(files), variant.value, directory)
        return files


def shadow_duplicates(files: Iterable[LocalScriptFile]) -> list[LocalScriptFile]:
    """Keep one file per id: a later file shadows an earlier one.

    Files without an id are all kept.  Order of first appearance is
    preserved.
    """
    kept: dict[object, LocalScriptFile] = {}
    for index, local in enumerate(files):
        key: object = local.id if local.id is not None else ("no-id", index)
        if key in kept:
            logger.warning(
                "%s shadows %s (both resolve to %s id %s)",
                local.path.name,
                kept[key].path.name,
                local.variant.value,
                local.id,
            )
        kept[key] = local
    return list(kept.values())


__all__ = [
    "MAX_TITLE_LENGTH",
    "SCRIPT_EXTENSION",
    "FilenameIdentity",
    "IdentitySource",
    "LocalScriptFile",
    "LocalScriptRepository",
    "infer_identity",
    "is_script_file",
    "list_script_files",
    "match_unique_title",
    "resolve_identity",
    "sanitize_title",
    "script_filename",
    "shadow_duplicates",
]

"""Script record models shared by the remote and local sides.

A script is either a *server script* (runs on the Pleasanter backend,
gated by lifecycle trigger flags) or a *client script* (runs in the
browser, gated by page-scope flags).  Both are normalised into a
:class:`ScriptRecord` whose ``flags`` mapping is keyed by the metadata
header names used in local files (``before-create``, ``all``, ...), always
ordered by the variant's flag schema.

The API field names differ between Pleasanter versions (``ServerScriptShared``
vs ``Shared``), so every :class:`FlagSpec` lists the aliases accepted when
reading remote payloads.  Writing always uses the canonical field.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, ClassVar


class ScriptVariant(str, Enum):
    """Which side of the application a script runs on."""

    server = "server"
    client = "client"

    @property
    def directory_name(self) -> str:
        """Name of the workspace directory holding scripts of this variant."""
        return f"{self.value}-script"

    @property
    def api_collection(self) -> str:
        """Key of the script list in the site-settings payload."""
        return "ServerScripts" if self is ScriptVariant.server else "Scripts"


@dataclass(frozen=True)
class FlagSpec:
    """One boolean flag: its header key, API field and accepted aliases."""

    key: str
    api_field: str
    aliases: tuple[str, ...] = ()

    @property
    def api_names(self) -> tuple[str, ...]:
        return (self.api_field, *self.aliases)


def _server_flag(key: str, suffix: str, short: str | None = None) -> FlagSpec:
    return FlagSpec(key, f"ServerScript{suffix}", (short or suffix,))


SERVER_FLAGS: tuple[FlagSpec, ...] = (
    _server_flag(
        "when-loading-site-settings",
        "WhenloadingSiteSettings",
        "WhenLoadingSiteSettings",
    ),
    _server_flag("when-view-processing", "WhenViewProcessing"),
    _server_flag("when-loading-record", "WhenloadingRecord", "WhenLoadingRecord"),
    _server_flag("before-formula", "BeforeFormula"),
    _server_flag("after-formula", "AfterFormula"),
    _server_flag("before-create", "BeforeCreate"),
    _server_flag("after-create", "AfterCreate"),
    _server_flag("before-update", "BeforeUpdate"),
    _server_flag("after-update", "AfterUpdate"),
    _server_flag("before-delete", "BeforeDelete"),
    _server_flag("after-delete", "AfterDelete"),
    _server_flag("before-bulk-delete", "BeforeBulkDelete"),
    _server_flag("after-bulk-delete", "AfterBulkDelete"),
    _server_flag("before-opening-page", "BeforeOpeningPage"),
    _server_flag("before-opening-row", "BeforeOpeningRow"),
    _server_flag("shared", "Shared"),
    FlagSpec("functionalize", "Functionalize"),
    FlagSpec("try-catch", "TryCatch", ("Trycatch",)),
)

CLIENT_FLAGS: tuple[FlagSpec, ...] = (
    FlagSpec("all", "ScriptAll", ("All",)),
    FlagSpec("new", "ScriptNew", ("New",)),
    FlagSpec("edit", "ScriptEdit", ("Edit",)),
    FlagSpec("index", "ScriptIndex", ("Index",)),
    FlagSpec("disabled", "Disabled"),
)


# ─── Value coercion ─────────────────────────────────────────────────────────


def to_int_or_none(value: Any) -> int | None:
    """Coerce an API or header value to an integer id, or ``None``.

    ``None``, empty strings, booleans and non-numeric values are treated as
    "no id".  Note that ``0`` is a valid script id.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) and value.is_integer() else None
    text = str(value).strip()
    if not text:
        return None
    try:
        number = float(text)
    except ValueError:
        return None
    if not math.isfinite(number) or not number.is_integer():
        return None
    return int(number)


def to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return bool(value)


def _lookup(raw: Mapping[str, Any], names: tuple[str, ...]) -> tuple[bool, Any]:
    for name in names:
        if name in raw:
            return True, raw[name]
    return False, None


# ─── Records ────────────────────────────────────────────────────────────────


@dataclass
class ScriptRecord:
    """Normalised script, independent of where it came from.

    ``flags`` is always complete: every flag of the variant's schema is
    present (missing ones default to ``False``) and ordered by the schema.
    ``extra`` keeps header fields whose names are not part of the schema;
    they are carried along but never validated or sent to the server.
    """

    variant: ClassVar[ScriptVariant]
    flag_specs: ClassVar[tuple[FlagSpec, ...]]
    default_title: ClassVar[str]

    id: int | None = None
    title: str = ""
    body: str = ""
    flags: dict[str, bool] = field(default_factory=dict)
    extra: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        given = dict(self.flags)
        ordered = {spec.key: bool(given.pop(spec.key, False)) for spec in self.flag_specs}
        ordered.update({key: bool(value) for key, value in given.items()})
        self.flags = ordered

    @classmethod
    def flag_keys(cls) -> tuple[str, ...]:
        return tuple(spec.key for spec in cls.flag_specs)

    @property
    def label(self) -> str:
        return self.title or self.default_title

    def copy(self) -> ScriptRecord:
        return replace(self, flags=dict(self.flags), extra=dict(self.extra))

    def same_content(self, other: ScriptRecord) -> bool:
        """True when both records would produce the same remote state.

        Bodies are compared trimmed, the way script files store them.
        """
        return (
            self.variant is other.variant
            and self.id == other.id
            and self.title == other.title
            and self.body.strip() == other.body.strip()
            and self.flags == other.flags
        )

    # ── API conversion ──────────────────────────────────────────────────

    @classmethod
    def from_api(cls, raw: Mapping[str, Any]) -> ScriptRecord:
        """Build a record from a site-settings script object."""
        found_id, raw_id = _lookup(raw, ("Id", "ID"))
        flags = {}
        for spec in cls.flag_specs:
            present, value = _lookup(raw, spec.api_names)
            flags[spec.key] = to_bool(value) if present else False
        return cls(
            id=to_int_or_none(raw_id) if found_id else None,
            title=str(raw.get("Title") or ""),
            body=str(raw.get("Body") or ""),
            flags=flags,
        )

    def to_api(self) -> dict[str, Any]:
        """Serialise to the payload shape accepted by ``updatesitesettings``."""
        payload: dict[str, Any] = {}
        if self.id is not None:
            payload["Id"] = self.id
        payload["Title"] = self.title
        payload["Body"] = self.body
        for spec in self.flag_specs:
            payload[spec.api_field] = self.flags.get(spec.key, False)
        return payload


@dataclass
class ServerScript(ScriptRecord):
    variant: ClassVar[ScriptVariant] = ScriptVariant.server
    flag_specs: ClassVar[tuple[FlagSpec, ...]] = SERVER_FLAGS
    default_title: ClassVar[str] = "server-script"

    name: str = ""

    def __post_init__(self) -> None:
        super().__post_init__()
        if not self.name:
            self.name = self.title

    def same_content(self, other: ScriptRecord) -> bool:
        return super().same_content(other) and self.name == getattr(other, "name", None)

    @classmethod
    def from_api(cls, raw: Mapping[str, Any]) -> ServerScript:
        record = super().from_api(raw)
        assert isinstance(record, ServerScript)
        raw_name = str(raw.get("Name") or "")
        if not record.title:
            record.title = raw_name
        record.name = raw_name or record.title
        return record

    def to_api(self) -> dict[str, Any]:
        payload = super().to_api()
        payload["Name"] = self.name or self.title
        return payload


@dataclass
class ClientScript(ScriptRecord):
    variant: ClassVar[ScriptVariant] = ScriptVariant.client
    flag_specs: ClassVar[tuple[FlagSpec, ...]] = CLIENT_FLAGS
    default_title: ClassVar[str] = "client-script"


RECORD_TYPES: dict[ScriptVariant, type[ScriptRecord]] = {
    ScriptVariant.server: ServerScript,
    ScriptVariant.client: ClientScript,
}


def record_type(variant: ScriptVariant | str) -> type[ScriptRecord]:
    """Return the record class for a variant (``"server"`` or ``"client"``)."""
    return RECORD_TYPES[ScriptVariant(variant)]


def delete_request(script_id: int) -> dict[str, int]:
    """API object asking the server to delete the script with this id."""
    return {"Id": script_id, "Delete": 1}


__all__ = [
    "CLIENT_FLAGS",
    "RECORD_TYPES",
    "SERVER_FLAGS",
    "ClientScript",
    "FlagSpec",
    "ScriptRecord",
    "ScriptVariant",
    "ServerScript",
    "delete_request",
    "record_type",
    "to_bool",
    "to_int_or_none",
]

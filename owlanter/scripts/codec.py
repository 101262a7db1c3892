"""Metadata header codec for local script files.

A script file is two sections: a header region of comment fields, then the
body.  Grammar (one rule per line of input)::

    document      := header-region body
    header-region := ( blank-line | field-line )*
    field-line    := WS* "//" WS* "@" NAMESPACE "-" KEY WS* ":" WS* VALUE WS*
    body          := the first line that is neither blank nor field-shaped,
                     followed by every remaining line

Example::

    // @pleasanter-id: 12
    // @pleasanter-title: Validate order
    // @pleasanter-before-create: true

    context.Log('hello');

A field-shaped line with an empty value stays in the header region but
contributes nothing.  Values are coerced: ``true``/``false`` become
booleans, integer and decimal literals become numbers, anything else is a
string.  The body is trimmed.

Encoding is deterministic: ``id`` (when set), ``title``, ``name`` (server
scripts only), then each flag in schema order, a blank line and the body.
Whether false flags are written is an explicit per-variant
:class:`EncodePolicy`: existing server-script files only list flags that
are on, client-script files list every flag.
Line breaks in text fields are written as spaces.

Known limitation: a body whose first line is itself field-shaped (for
example ``// @pleasanter-note: keep``) is read back as header, so that
line does not survive a pull followed by a push.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

from owlanter.errors import MetadataDecodeError
from owlanter.scripts.models import (
    ScriptRecord,
    ScriptVariant,
    ServerScript,
    record_type,
    to_int_or_none,
)


DEFAULT_NAMESPACE = "pleasanter"

_INT_RE = re.compile(r"[+-]?\d+")
_DECIMAL_RE = re.compile(r"[+-]?(?:\d+\.\d*|\.\d+|\d+)(?:[eE][+-]?\d+)?")

# Fields every variant understands, handled outside the flag schema.
_TEXT_FIELDS = ("title", "name")


@dataclass(frozen=True)
class EncodePolicy:
    """Per-variant choices for :meth:`MetadataCodec.encode`."""

    emit_false_flags: bool
    emit_name: bool


ENCODE_POLICIES: dict[ScriptVariant, EncodePolicy] = {
    ScriptVariant.server: EncodePolicy(emit_false_flags=False, emit_name=True),
    ScriptVariant.client: EncodePolicy(emit_false_flags=True, emit_name=False),
}


@dataclass
class DecodedScript:
    """Result of decoding a file: header fields and body.

    ``fields`` holds coerced values, ``raw`` the same fields as written so
    text fields such as a numeric-looking title keep their exact spelling.
    """

    fields: dict[str, Any] = field(default_factory=dict)
    body: str = ""
    raw: dict[str, str] = field(default_factory=dict)

    def text(self, key: str) -> str | None:
        return self.raw.get(key)

    @property
    def id(self) -> int | None:
        return to_int_or_none(self.fields.get("id"))


def coerce_value(value: str) -> Any:
    """Coerce a header value to bool, int, float or leave it as a string."""
    if value == "true":
        return True
    if value == "false":
        return False
    if _INT_RE.fullmatch(value):
        return int(value)
    if _DECIMAL_RE.fullmatch(value):
        return float(value)
    return value


class MetadataCodec:
    """Encode and decode script files for one header namespace."""

    def __init__(self, namespace: str = DEFAULT_NAMESPACE):
        self.namespace = namespace
        self._prefix = f"@{namespace}-"
        self._field_re = re.compile(
            r"//\s*@" + re.escape(namespace) + r"-([^:\s][^:]*?)\s*:\s*(.*)"
        )

    # ── Decoding ────────────────────────────────────────────────────────

    def _match_field(self, stripped: str) -> tuple[bool, str | None, str | None]:
        """Classify a stripped line as (field-shaped, key, value)."""
        if not stripped.startswith("//"):
            return False, None, None
        if not stripped[2:].lstrip().startswith(self._prefix):
            return False, None, None
        match = self._field_re.fullmatch(stripped)
        if match is None:
            return True, None, None
        key, value = match.group(1).strip(), match.group(2).strip()
        if not value:
            return True, None, None
        return True, key, value

    def decode(self, text: str | bytes) -> DecodedScript:
        """Split file content into header fields and body."""
        if isinstance(text, bytes):
            try:
                text = text.decode("utf-8-sig")
            except UnicodeDecodeError as exc:
                raise MetadataDecodeError(f"Script file is not valid UTF-8: {exc}") from exc
        elif text.startswith("\ufeff"):
            text = text[1:]

        decoded = DecodedScript()
        lines = text.split("\n")
        body_start = len(lines)
        for index, line in enumerate(lines):
            stripped = line.strip()
            if not stripped:
                continue
            is_field, key, value = self._match_field(stripped)
            if not is_field:
                body_start = index
                break
            if key is not None and value is not None:
                decoded.raw[key] = value
                decoded.fields[key] = coerce_value(value)

        decoded.body = "\n".join(lines[body_start:]).strip()
        return decoded

    def to_record(
        self,
        decoded: DecodedScript,
        variant: ScriptVariant,
        base: ScriptRecord | None = None,
    ) -> ScriptRecord:
        """Overlay decoded fields onto ``base`` (or an empty record).

        Declared header fields and the body win; anything the header does
        not declare keeps the value from ``base``.
        """
        cls = record_type(variant)
        record = base.copy() if base is not None else cls()
        record.body = decoded.body
        if "id" in decoded.fields:
            record.id = decoded.id
        if (title := decoded.text("title")) is not None:
            record.title = title
        if isinstance(record, ServerScript):
            if (name := decoded.text("name")) is not None:
                record.name = name
            elif not record.name:
                record.name = record.title

        known = set(cls.flag_keys())
        for key, value in decoded.fields.items():
            if key in known:
                record.flags[key] = bool(value)
            elif key != "id" and key not in _TEXT_FIELDS:
                record.extra[key] = value
        return record

    # ── Encoding ────────────────────────────────────────────────────────

    def _line(self, key: str, value: Any) -> str:
        if isinstance(value, bool):
            value = "true" if value else "false"
        elif isinstance(value, str):
            # A header field is one line
            value = " ".join(value.splitlines())
        return f"// {self._prefix}{key}: {value}"

    def header_lines(self, record: ScriptRecord) -> list[str]:
        policy = ENCODE_POLICIES[record.variant]
        lines = []
        if record.id is not None:
            lines.append(self._line("id", record.id))
        lines.append(self._line("title", record.title))
        if policy.emit_name and isinstance(record, ServerScript):
            lines.append(self._line("name", record.name))
        for key in record.flag_keys():
            value = record.flags.get(key, False)
            if value or policy.emit_false_flags:
                lines.append(self._line(key, value))
        return lines

    def encode(self, record: ScriptRecord) -> str:
        """Render a record as file content.

        Fields in ``record.extra`` are not written back.
        """
        return "\n".join(self.header_lines(record)) + "\n\n" + record.body


_default_codec = MetadataCodec()


def decode(text: str | bytes) -> DecodedScript:
    return _default_codec.decode(text)


def encode(record: ScriptRecord) -> str:
    return _default_codec.encode(record)


__all__ = [
    "DEFAULT_NAMESPACE",
    "ENCODE_POLICIES",
    "DecodedScript",
    "EncodePolicy",
    "MetadataCodec",
    "coerce_value",
    "decode",
    "encode",
]

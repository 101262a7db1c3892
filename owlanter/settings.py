"""Workspace settings loaded from ``_config/config.json``.

The workspace root is the directory holding ``_config/``::

    <workspace>/_config/config.json   connection + sync settings
    <workspace>/_config/site.json     site registry
    <workspace>/_config/SITES/        one directory per site

``config.json`` may start with ``//`` comment lines; they are ignored on
read and a single explanatory comment is written back on save.

All settings support environment variable overrides (OWLANTER_* prefix):
  OWLANTER_WORKSPACE     workspace root
  OWLANTER_DOMAIN        server base URL
  OWLANTER_API_KEY       API key
  OWLANTER_TIMEOUT       request timeout in seconds
  OWLANTER_MAX_RETRIES   transport retries
  OWLANTER_CONFIRM_PUSH  force (or skip) push confirmation for every site
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from owlanter.errors import ConfigurationError

logger = logging.getLogger(__name__)

CONFIG_DIRNAME = "_config"
CONFIG_FILENAME = "config.json"
SITES_DIRNAME = "SITES"
CONFIG_COMMENT = "// OWLANTER_* environment variables override the values in this file"

DEFAULT_TIMEOUT = 30.0


# ─── Config document ────────────────────────────────────────────────────────


class ConfirmationPolicy(BaseModel):
    """Whether a push to each environment needs explicit confirmation."""

    production: bool = True
    staging: bool = False
    development: bool = False


class SyncSettings(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    auto_backup: bool = Field(default=True, alias="auto-backup")
    backup_count: int = Field(default=5, alias="backup-count")
    confirmation_required: ConfirmationPolicy = Field(
        default_factory=ConfirmationPolicy, alias="confirmation-required"
    )
    default_delay: float = Field(default=1.5, alias="default-delay")
    max_retries: int = Field(default=3, alias="max-retries")


class WorkspaceConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    domain: str = Field(default="", alias="owlanter-domain")
    api_key: str = Field(default="", alias="owlanter-api")
    settings: SyncSettings = Field(default_factory=SyncSettings)

    @model_validator(mode="before")
    @classmethod
    def _migrate_legacy_keys(cls, data: Any) -> Any:
        """Accept ``pleasanter-domain``/``pleasanter-api`` from older files."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for legacy, current in (
            ("pleasanter-domain", "owlanter-domain"),
            ("pleasanter-api", "owlanter-api"),
        ):
            legacy_value = data.pop(legacy, None)
            if not data.get(current) and legacy_value:
                data[current] = legacy_value
        for key in ("owlanter-domain", "owlanter-api"):
            if isinstance(data.get(key), str):
                data[key] = data[key].strip()
        return data

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


# ─── Workspace paths ────────────────────────────────────────────────────────


def get_workspace_root(start: Path | None = None) -> Path:
    """Locate the workspace root.

    Priority: OWLANTER_WORKSPACE env → nearest ancestor of ``start`` (or the
    current directory) containing ``_config/`` → ``start`` itself.
    """
    if env := os.getenv("OWLANTER_WORKSPACE"):
        return Path(env).expanduser().resolve()
    origin = (start or Path.cwd()).resolve()
    for candidate in (origin, *origin.parents):
        if (candidate / CONFIG_DIRNAME).is_dir():
            return candidate
    return origin


def get_config_dir(root: Path | None = None) -> Path:
    return (root or get_workspace_root()) / CONFIG_DIRNAME


def get_config_path(root: Path | None = None) -> Path:
    return get_config_dir(root) / CONFIG_FILENAME


def get_sites_root(root: Path | None = None) -> Path:
    return get_config_dir(root) / SITES_DIRNAME


# ─── Load / save ────────────────────────────────────────────────────────────


def _strip_comments(content: str) -> str:
    return "\n".join(
        line for line in content.splitlines() if not line.strip().startswith("//")
    ).strip()


def load_config(root: Path | None = None) -> WorkspaceConfig:
    """Load ``config.json``; a missing file yields the defaults.

    Raises:
        ConfigurationError: If the file exists but cannot be parsed.
    """
    path = get_config_path(root)
    try:
        content = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return WorkspaceConfig()
    except OSError as exc:
        raise ConfigurationError(f"Failed to read {path}: {exc}") from exc

    sanitized = _strip_comments(content)
    if not sanitized:
        raise ConfigurationError(f"{path} is empty")
    try:
        return WorkspaceConfig.model_validate(json.loads(sanitized))
    except (json.JSONDecodeError, ValidationError) as exc:
        raise ConfigurationError(f"Failed to load {path}: {exc}") from exc


def save_config(config: WorkspaceConfig, root: Path | None = None) -> Path:
    path = get_config_path(root)
    path.parent.mkdir(parents=True, exist_ok=True)
    serialized = json.dumps(config.to_document(), indent=2, ensure_ascii=False)
    path.write_text(f"{CONFIG_COMMENT}\n{serialized}\n", encoding="utf-8")
    return path


# ─── Accessors ──────────────────────────────────────────────────────────────


def _parse_bool(value: str | bool) -> bool:
    """Parse a boolean value from string or bool."""
    if isinstance(value, bool):
        return value
    return value.lower() in ("true", "1", "yes")


def get_domain(root: Path | None = None) -> str:
    """Server base URL.  Priority: OWLANTER_DOMAIN env → config → ''."""
    if env := os.getenv("OWLANTER_DOMAIN"):
        return env.strip()
    return load_config(root).domain


def get_api_key(root: Path | None = None) -> str:
    """API key.  Priority: OWLANTER_API_KEY env → config → ''."""
    if env := os.getenv("OWLANTER_API_KEY"):
        return env.strip()
    return load_config(root).api_key


def get_request_timeout() -> float:
    """Request timeout in seconds.  Priority: OWLANTER_TIMEOUT env → 30."""
    if env := os.getenv("OWLANTER_TIMEOUT"):
        return float(env)
    return DEFAULT_TIMEOUT


def get_max_retries(root: Path | None = None) -> int:
    """Transport retries.  Priority: OWLANTER_MAX_RETRIES env → config → 3."""
    if env := os.getenv("OWLANTER_MAX_RETRIES"):
        return int(env)
    return load_config(root).settings.max_retries


def get_default_delay(root: Path | None = None) -> float:
    """Debounce delay for watch mode, in seconds."""
    return load_config(root).settings.default_delay


def is_confirmation_required(environment: str, root: Path | None = None) -> bool:
    """Whether pushing to ``environment`` needs explicit confirmation.

    Priority: OWLANTER_CONFIRM_PUSH env → config → True.  An unreadable
    config requires confirmation.
    """
    if env := os.getenv("OWLANTER_CONFIRM_PUSH"):
        return _parse_bool(env)
    try:
        policy = load_config(root).settings.confirmation_required
    except ConfigurationError as exc:
        logger.warning("Requiring confirmation, config unreadable: %s", exc)
        return True
    return bool(getattr(policy, environment, True))


def resolve_connection(root: Path | None = None) -> tuple[str, str]:
    """Return ``(domain, api_key)`` or fail if either is missing.

    Raises:
        ConfigurationError: If the domain or API key is not configured.
    """
    domain, api_key = get_domain(root), get_api_key(root)
    if not domain or not api_key:
        raise ConfigurationError(
            "Connection information is incomplete. Set OWLANTER_DOMAIN and "
            "OWLANTER_API_KEY or run 'owlanter config set'."
        )
    return domain, api_key


__all__ = [
    "ConfirmationPolicy",
    "SyncSettings",
    "WorkspaceConfig",
    "get_api_key",
    "get_config_dir",
    "get_config_path",
    "get_default_delay",
    "get_domain",
    "get_max_retries",
    "get_request_timeout",
    "get_sites_root",
    "get_workspace_root",
    "is_confirmation_required",
    "load_config",
    "resolve_connection",
    "save_config",
]

"""Site registry - the list of known sites and which one is selected.

Stored in ``_config/site.json``::

    {
      "sites": [{"site-id": 12, "site-name": "Orders", "folder-name": "12_Orders", ...}],
      "current-site": 12,
      "default-site": 12
    }

``current-site == 0`` means no site is selected.  Each site owns a
directory ``_config/SITES/<folder-name>/`` with ``server-script/`` and
``client-script/`` subdirectories.
"""

from __future__ import annotations

import json
import logging
import re
import shutil
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from owlanter.errors import ConfigurationError, NoSiteSelectedError, SiteNotFoundError
from owlanter.scripts.models import ScriptVariant
from owlanter.scripts.snapshot import SNAPSHOT_FILENAME
from owlanter.settings import (
    get_config_dir,
    get_config_path,
    get_sites_root,
    get_workspace_root,
    load_config,
    save_config,
)

logger = logging.getLogger(__name__)

SITES_FILENAME = "site.json"
SITE_INFO_FILENAME = "site-info.json"
NO_SITE = 0

Environment = Literal["production", "staging", "development"]

ENVIRONMENT_COLORS: dict[str, str] = {
    "production": "red",
    "staging": "yellow",
    "development": "blue",
}


def utc_now() -> str:
    return datetime.now(UTC).isoformat()


class SiteInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    site_id: int = Field(alias="site-id")
    site_name: str = Field(alias="site-name")
    folder_name: str | None = Field(default=None, alias="folder-name")
    description: str = ""
    environment: Environment = "development"
    last_sync: str = Field(default="", alias="last-sync")
    active: bool = False
    color: str = "blue"


class SitesConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    sites: list[SiteInfo] = Field(default_factory=list)
    current_site: int = Field(default=NO_SITE, alias="current-site")
    default_site: int = Field(default=NO_SITE, alias="default-site")

    def find(self, site_id: int) -> SiteInfo | None:
        return next((site for site in self.sites if site.site_id == site_id), None)


def site_folder_name(site_id: int, site_name: str) -> str:
    """Directory name for a site: ``{id}_{name}`` with unsafe characters replaced."""
    sanitized = re.sub(r'[<>:"/\\|?*\x00-\x1f]', "_", (site_name or "").strip())
    sanitized = re.sub(r"\s+", " ", sanitized)
    sanitized = re.sub(r"\.+$", "", sanitized).strip()
    safe_name = sanitized[:80].strip() or f"site_{site_id}"
    return f"{site_id}_{safe_name}"


@dataclass(frozen=True)
class SitePaths:
    """Filesystem locations owned by one site."""

    root: Path

    @property
    def server_dir(self) -> Path:
        return self.root / ScriptVariant.server.directory_name

    @property
    def client_dir(self) -> Path:
        return self.root / ScriptVariant.client.directory_name

    @property
    def snapshot_path(self) -> Path:
        return self.root / SNAPSHOT_FILENAME

    @property
    def info_path(self) -> Path:
        return self.root / SITE_INFO_FILENAME

    def script_dir(self, variant: ScriptVariant) -> Path:
        return self.server_dir if variant is ScriptVariant.server else self.client_dir

    def variant_of(self, path: Path) -> ScriptVariant | None:
        """Which managed directory ``path`` lies under, if any."""
        resolved = path.resolve()
        for variant in ScriptVariant:
            if resolved.is_relative_to(self.script_dir(variant).resolve()):
                return variant
        return None


class SiteRegistry:
    """Reads and writes the site registry of one workspace."""

    def __init__(self, root: Path | None = None):
        self.root = root or get_workspace_root()

    @property
    def config_dir(self) -> Path:
        return get_config_dir(self.root)

    @property
    def sites_file(self) -> Path:
        return self.config_dir / SITES_FILENAME

    @property
    def sites_root(self) -> Path:
        return get_sites_root(self.root)

    # ── Persistence ─────────────────────────────────────────────────────

    def load(self) -> SitesConfig:
        """Load ``site.json``; a missing file yields an empty registry.

        Raises:
            ConfigurationError: If the file cannot be parsed.
        """
        try:
            content = self.sites_file.read_text(encoding="utf-8")
        except FileNotFoundError:
            return SitesConfig()
        except OSError as exc:
            raise ConfigurationError(f"Failed to read {self.sites_file}: {exc}") from exc
        try:
            config = SitesConfig.model_validate(json.loads(content))
        except (json.JSONDecodeError, ValidationError) as exc:
            raise ConfigurationError(f"Failed to load {self.sites_file}: {exc}") from exc
        for site in config.sites:
            if not site.folder_name:
                site.folder_name = site_folder_name(site.site_id, site.site_name)
        return config

    def save(self, config: SitesConfig) -> None:
        self.sites_file.parent.mkdir(parents=True, exist_ok=True)
        self.sites_file.write_text(
            json.dumps(config.model_dump(by_alias=True), indent=2, ensure_ascii=False),
            encoding="utf-8",
        )

    # ── Queries ─────────────────────────────────────────────────────────

    def list(self) -> list[SiteInfo]:
        return self.load().sites

    def get(self, site_id: int) -> SiteInfo:
        site = self.load().find(site_id)
        if site is None:
            raise SiteNotFoundError(site_id)
        return site

    def current(self) -> SiteInfo | None:
        config = self.load()
        if config.current_site == NO_SITE:
            return None
        return config.find(config.current_site)

    def resolve(self, site_id: int | None = None) -> SiteInfo:
        """Return the given site, or the current one when ``site_id`` is None."""
        if site_id is not None:
            return self.get(site_id)
        site = self.current()
        if site is None:
            raise NoSiteSelectedError()
        return site

    def paths(self, site: SiteInfo | int) -> SitePaths:
        if isinstance(site, int):
            site = self.get(site)
        folder = site.folder_name or site_folder_name(site.site_id, site.site_name)
        return SitePaths(self.sites_root / folder)

    # ── Mutations ───────────────────────────────────────────────────────

    def ensure_site_dirs(self, site: SiteInfo | int) -> SitePaths:
        paths = self.paths(site)
        for directory in (paths.server_dir, paths.client_dir):
            directory.mkdir(parents=True, exist_ok=True)
        return paths

    def add(
        self,
        site_id: int,
        site_name: str,
        description: str = "",
        environment: Environment = "development",
    ) -> SiteInfo:
        """Register a site and create its directories.

        The first site added becomes both the current and the default site.
        """
        if site_id <= NO_SITE:
            raise ConfigurationError("Site ID must be a positive integer")
        config = self.load()
        if config.find(site_id) is not None:
            raise ConfigurationError(f"Site ID {site_id} already exists")

        site = SiteInfo(
            site_id=site_id,
            site_name=site_name,
            folder_name=site_folder_name(site_id, site_name),
            description=description,
            environment=environment,
            last_sync=utc_now(),
            color=ENVIRONMENT_COLORS[environment],
        )
        config.sites.append(site)
        if len(config.sites) == 1:
            config.current_site = site_id
            config.default_site = site_id
            site.active = True
        self.save(config)
        self.ensure_site_dirs(site)
        logger.info("Added site %s (%s)", site_id, site_name)
        return site

    def select(self, site_id: int) -> SiteInfo:
        config = self.load()
        site = config.find(site_id)
        if site is None:
            raise SiteNotFoundError(site_id)
        for candidate in config.sites:
            candidate.active = candidate.site_id == site_id
        config.current_site = site_id
        self.save(config)
        return site

    def remove(self, site_id: int, delete_files: bool = True) -> SiteInfo:
        """Unregister a site; the current/default site falls back to the first one left."""
        config = self.load()
        site = config.find(site_id)
        if site is None:
            raise SiteNotFoundError(site_id)
        site_dir = self.paths(site).root

        config.sites = [s for s in config.sites if s.site_id != site_id]
        fallback = config.sites[0].site_id if config.sites else NO_SITE
        if config.current_site == site_id or not config.sites:
            config.current_site = fallback
        if config.default_site == site_id or not config.sites:
            config.default_site = fallback
        for candidate in config.sites:
            candidate.active = candidate.site_id == config.current_site
        self.save(config)

        if delete_files and site_dir.exists():
            shutil.rmtree(site_dir)
            logger.info("Removed %s", site_dir)
        return site

    def touch_last_sync(self, site_id: int) -> None:
        config = self.load()
        site = config.find(site_id)
        if site is None:
            return
        site.last_sync = utc_now()
        self.save(config)

    def init_workspace(self) -> list[Path]:
        """Create the configuration tree and every registered site's directories.

        Returns:
            Paths that did not exist before.
        """
        created: list[Path] = []

        def _ensure_dir(directory: Path) -> None:
            if not directory.is_dir():
                directory.mkdir(parents=True, exist_ok=True)
                created.append(directory)

        _ensure_dir(self.config_dir)
        _ensure_dir(self.sites_root)
        if not self.sites_file.exists():
            self.save(SitesConfig())
            created.append(self.sites_file)
        for site in self.list():
            paths = self.paths(site)
            _ensure_dir(paths.server_dir)
            _ensure_dir(paths.client_dir)
        config_path = get_config_path(self.root)
        if not config_path.exists():
            save_config(load_config(self.root), self.root)
            created.append(config_path)
        return created


__all__ = [
    "ENVIRONMENT_COLORS",
    "NO_SITE",
    "Environment",
    "SiteInfo",
    "SitePaths",
    "SiteRegistry",
    "SitesConfig",
    "site_folder_name",
    "utc_now",
]

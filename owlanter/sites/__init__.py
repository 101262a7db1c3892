"""Site registry and per-site sync state."""

from owlanter.sites.registry import SiteInfo, SitePaths, SiteRegistry, SitesConfig
from owlanter.sites.state import (
    ActiveScripts,
    SiteStateStore,
    SiteSyncState,
    toggle_active_script,
)

__all__ = [
    "ActiveScripts",
    "SiteInfo",
    "SitePaths",
    "SiteRegistry",
    "SiteStateStore",
    "SiteSyncState",
    "SitesConfig",
    "toggle_active_script",
]

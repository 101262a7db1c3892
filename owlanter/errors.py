"""Exception hierarchy for owlanter.

All errors raised by the engine derive from :class:`OwlanterError` so the
CLI can report them uniformly.  The groups mirror how failures are handled:

- *not found*: an unknown site or script was targeted
- *validation*: local input (files, snapshot, config) is unusable
- *remote*: the script store rejected or never answered a request
- :class:`SyncError`: any of the above surfacing from a sync operation,
  tagged with the operation name and site id
"""

from __future__ import annotations


class OwlanterError(Exception):
    """Base class for all owlanter errors."""


# ─── Not found ──────────────────────────────────────────────────────────────


class NotFoundError(OwlanterError):
    """A specific site or script was required but does not exist."""


class SiteNotFoundError(NotFoundError):
    def __init__(self, site_id: int):
        self.site_id = site_id
        super().__init__(f"Site ID {site_id} not found")


class NoSiteSelectedError(NotFoundError):
    def __init__(self) -> None:
        super().__init__("No site selected. Please select a site first.")


class ScriptNotFoundError(NotFoundError):
    def __init__(self, variant: str, script_id: int):
        self.variant = variant
        self.script_id = script_id
        super().__init__(f"{variant} script {script_id} not found")


# ─── Validation ─────────────────────────────────────────────────────────────


class ValidationFailure(OwlanterError):
    """Local input could not be used as given."""


class ScriptValidationError(ValidationFailure):
    """A script file or path is not usable for the requested operation."""


class MetadataDecodeError(ValidationFailure):
    """A script file could not be decoded."""


class SnapshotError(ValidationFailure):
    """The persisted site snapshot is missing or malformed."""


class ConfigurationError(ValidationFailure):
    """Workspace configuration is missing or malformed."""


# ─── Remote ─────────────────────────────────────────────────────────────────


class RemoteError(OwlanterError):
    """The remote script store failed to serve a request."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class RemotePermissionError(RemoteError):
    """API key is invalid or lacks permission (HTTP 403)."""


class RemoteNotFoundError(RemoteError):
    """The remote site does not exist (HTTP 404)."""


class RemoteServerError(RemoteError):
    """Any other error status returned by the server."""


class RemoteConnectionError(RemoteError):
    """The server could not be reached or timed out."""


# ─── Orchestration ──────────────────────────────────────────────────────────


class SyncError(OwlanterError):
    """A sync operation failed.

    Carries enough context for a human to diagnose the failure without
    reading logs: the operation name, the site id (when known) and the
    underlying message.  The wrapped exception is chained as
    ``__cause__``.
    """

    def __init__(self, operation: str, site_id: int | None, message: str):
        self.operation = operation
        self.site_id = site_id
        self.message = message
        site = f"site {site_id}" if site_id is not None else "no site"
        super().__init__(f"{operation} failed ({site}): {message}")


__all__ = [
    "ConfigurationError",
    "MetadataDecodeError",
    "NoSiteSelectedError",
    "NotFoundError",
    "OwlanterError",
    "RemoteConnectionError",
    "RemoteError",
    "RemoteNotFoundError",
    "RemotePermissionError",
    "RemoteServerError",
    "ScriptNotFoundError",
    "ScriptValidationError",
    "SiteNotFoundError",
    "SnapshotError",
    "SyncError",
    "ValidationFailure",
]

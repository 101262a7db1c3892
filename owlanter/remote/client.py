"""Async client for the Pleasanter site-settings API.

Only three calls are needed:

    POST /api/items/{site_id}/getsite             read a site and its scripts
    POST /api/items/{site_id}/updatesitesettings  create, update or delete scripts
    GET  /api/version                             connection check

Every POST body carries ``{"ApiVersion": "1.1", "ApiKey": ...}``.

Usage:
    async with ScriptStoreClient("https://pleasanter.example", api_key) as client:
        snapshot = await client.fetch_site(12)
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Any, Protocol

import httpx

from owlanter.errors import (
    RemoteConnectionError,
    RemoteError,
    RemoteNotFoundError,
    RemotePermissionError,
    RemoteServerError,
)
from owlanter.scripts.models import ScriptRecord, ScriptVariant, delete_request
from owlanter.scripts.snapshot import SiteSnapshot
from owlanter.settings import get_max_retries, get_request_timeout, resolve_connection

logger = logging.getLogger(__name__)

API_VERSION = "1.1"
# Connection timeout (seconds)
CONNECT_TIMEOUT = 10.0
# Base delay between transport retries (seconds), doubled per attempt
RETRY_DELAY = 1.0


class RemoteScriptStore(Protocol):
    """What the sync engine needs from the server."""

    async def fetch_site(self, site_id: int) -> SiteSnapshot: ...

    async def batch_update(
        self,
        site_id: int,
        client_scripts: Sequence[dict[str, Any]] | None = None,
        server_scripts: Sequence[dict[str, Any]] | None = None,
    ) -> dict[str, Any]: ...

    async def update_script(self, site_id: int, record: ScriptRecord) -> dict[str, Any]: ...


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        data = None
    if isinstance(data, dict) and data.get("Message"):
        return str(data["Message"])
    return f"HTTP {response.status_code} {response.reason_phrase}".strip()


def raise_for_status(response: httpx.Response) -> None:
    """Map an error response onto the remote error hierarchy."""
    status = response.status_code
    if status < 400:
        return
    if status == 403:
        raise RemotePermissionError(
            "API key is invalid or insufficient permissions", status_code=status
        )
    if status == 404:
        raise RemoteNotFoundError("Site not found", status_code=status)
    raise RemoteServerError(f"API error: {_error_message(response)}", status_code=status)


class ScriptStoreClient:
    """Talks to one Pleasanter server with one API key.

    Transport failures (connection errors and timeouts) are retried with
    exponential backoff; error responses are not.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 30.0,
        max_retries: int = 3,
        retry_delay: float = RETRY_DELAY,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize client.

        Args:
            base_url: Server root, e.g. ``https://pleasanter.example``
            api_key: Pleasanter API key
            timeout: Request timeout in seconds
            max_retries: Attempts per request for transport failures
            retry_delay: Base backoff delay in seconds
            transport: Optional httpx transport (tests use ``MockTransport``)
        """
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.retry_delay = retry_delay
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers={"Content-Type": "application/json"},
                timeout=httpx.Timeout(self.timeout, connect=CONNECT_TIMEOUT),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> ScriptStoreClient:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()

    def _envelope(self, **payload: Any) -> dict[str, Any]:
        return {"ApiVersion": API_VERSION, "ApiKey": self.api_key, **payload}

    async def _request(
        self, method: str, path: str, json: dict[str, Any] | None = None, **kwargs: Any
    ) -> httpx.Response:
        client = self._get_client()
        last_error: RemoteError | None = None

        for attempt in range(self.max_retries):
            try:
                response = await client.request(method, path, json=json, **kwargs)
            except httpx.TimeoutException as e:
                last_error = RemoteConnectionError(f"Request to {path} timed out: {e}")
            except httpx.TransportError as e:
                last_error = RemoteConnectionError(
                    f"Cannot connect to {self.base_url}. Check your network connection."
                )
                logger.debug(f"Transport error on {path}: {e}")
            else:
                raise_for_status(response)
                return response

            if attempt < self.max_retries - 1:
                delay = self.retry_delay * 2**attempt
                logger.debug(
                    f"{last_error} (attempt {attempt + 1}/{self.max_retries}), "
                    f"retrying in {delay}s..."
                )
                await asyncio.sleep(delay)

        raise last_error or RemoteConnectionError(f"Request to {path} failed")

    @staticmethod
    def _json(response: httpx.Response) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError as e:
            raise RemoteServerError(
                "Server returned a non-JSON response", status_code=response.status_code
            ) from e
        if not isinstance(data, dict):
            raise RemoteServerError(
                "Server returned an unexpected response", status_code=response.status_code
            )
        return data

    # ── Remote Script Store ─────────────────────────────────────────────

    async def fetch_site(self, site_id: int) -> SiteSnapshot:
        """Read a site's settings, including both script lists."""
        response = await self._request(
            "POST", f"/api/items/{site_id}/getsite", json=self._envelope()
        )
        payload = self._json(response)
        data = (payload.get("Response") or {}).get("Data")
        if not isinstance(data, dict):
            raise RemoteServerError("API did not return site data")
        snapshot = SiteSnapshot.from_payload(data)
        logger.info(
            "Fetched site %s: %d server, %d client scripts",
            site_id,
            len(snapshot.server_scripts),
            len(snapshot.client_scripts),
        )
        return snapshot

    async def batch_update(
        self,
        site_id: int,
        client_scripts: Sequence[dict[str, Any]] | None = None,
        server_scripts: Sequence[dict[str, Any]] | None = None,
    ) -> dict[str, Any]:
        """Send script objects in one ``updatesitesettings`` call.

        Empty lists are omitted from the request.
        """
        payload: dict[str, Any] = {}
        if client_scripts:
            payload["Scripts"] = list(client_scripts)
        if server_scripts:
            payload["ServerScripts"] = list(server_scripts)
        response = await self._request(
            "POST",
            f"/api/items/{site_id}/updatesitesettings",
            json=self._envelope(**payload),
        )
        logger.info(
            "Updated site %s: %d server, %d client scripts",
            site_id,
            len(server_scripts or ()),
            len(client_scripts or ()),
        )
        return self._json(response)

    # ── Single-record helpers ───────────────────────────────────────────

    async def update_script(self, site_id: int, record: ScriptRecord) -> dict[str, Any]:
        """Create or update one script."""
        if record.variant is ScriptVariant.server:
            return await self.batch_update(site_id, server_scripts=[record.to_api()])
        return await self.batch_update(site_id, client_scripts=[record.to_api()])

    async def delete_script(
        self, site_id: int, variant: ScriptVariant, script_id: int
    ) -> dict[str, Any]:
        request = [delete_request(script_id)]
        if variant is ScriptVariant.server:
            return await self.batch_update(site_id, server_scripts=request)
        return await self.batch_update(site_id, client_scripts=request)

    async def test_connection(self) -> bool:
        """True when the server answers ``/api/version`` with 200."""
        try:
            response = await self._request(
                "GET", "/api/version", params={"ApiKey": self.api_key}
            )
        except RemoteError as e:
            logger.debug(f"Connection test failed: {e}")
            return False
        return response.status_code == 200


def create_client(root: Path | None = None) -> ScriptStoreClient:
    """Build a client from workspace settings.

    Raises:
        ConfigurationError: If the domain or API key is not configured.
    """
    domain, api_key = resolve_connection(root)
    return ScriptStoreClient(
        domain,
        api_key,
        timeout=get_request_timeout(),
        max_retries=get_max_retries(root),
    )


__all__ = [
    "API_VERSION",
    "RemoteScriptStore",
    "ScriptStoreClient",
    "create_client",
    "raise_for_status",
]

"""NPM registry client: packument metadata over aiohttp."""

from __future__ import annotations

import asyncio
import json
import logging
import urllib.parse
from typing import Any, Dict, Optional

import aiohttp

from ..common.logging_utils import Timer, extra_context, is_debug_enabled, safe_url
from ..constants import Constants
from ..errors import PermanentFetchError, TransientFetchError
from ..versioning.models import RegistryMetadata

logger = logging.getLogger(__name__)


class NpmRegistryClient:
    """Fetches ``dist-tags.latest`` and the published version set of npm packages."""

    def __init__(
        self,
        registry_url: str = Constants.REGISTRY_URL_NPM,
        timeout: int = Constants.REQUEST_TIMEOUT,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        """Initialize the registry client.

        Args:
            registry_url: Registry base URL.
            timeout: Total request timeout in seconds.
            session: Externally owned session; the client will not close it.
        """
        self._registry_url = registry_url.rstrip("/") + "/"
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session
        self._owns_session = session is None

    async def start(self) -> None:
        """Start the HTTP session."""
        if self._session is None:
            self._session = aiohttp.ClientSession(
                timeout=self._timeout,
                headers={"User-Agent": Constants.USER_AGENT},
            )
            self._owns_session = True

    async def stop(self) -> None:
        """Stop the HTTP session if this client created it."""
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> "NpmRegistryClient":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.stop()

    def package_url(self, package_name: str) -> str:
        """Packument URL; the slash of a scoped name is encoded (``@scope%2Fname``)."""
        return self._registry_url + urllib.parse.quote(package_name, safe="@")

    async def fetch_registry_metadata(self, package_name: str) -> RegistryMetadata:
        """Fetch registry metadata for ``package_name``.

        Raises:
            TransientFetchError: HTTP 429, connection failure or timeout.
            PermanentFetchError: Any other non-200 status or a malformed payload.
        """
        if self._session is None:
            await self.start()
        assert self._session is not None

        url = self.package_url(package_name)
        target = safe_url(url)
        headers = {
            "Accept": "application/vnd.npm.install-v1+json; q=1.0, application/json; q=0.8, */*"
        }
        if is_debug_enabled(logger):
            logger.debug(
                "HTTP request",
                extra=extra_context(event="http_request", component="npm_client", action="GET", target=target),
            )

        with Timer() as timer:
            try:
                async with self._session.get(url, headers=headers) as response:
                    status = response.status
                    body = await response.text()
            except asyncio.TimeoutError as exc:
                raise TransientFetchError(
                    f"Timed out fetching {package_name}", package_name=package_name
                ) from exc
            except aiohttp.ClientConnectionError as exc:
                raise TransientFetchError(
                    f"Connection error fetching {package_name}: {exc}", package_name=package_name
                ) from exc
            except aiohttp.ClientError as exc:
                raise PermanentFetchError(
                    f"HTTP error fetching {package_name}: {exc}", package_name=package_name
                ) from exc

        if is_debug_enabled(logger):
            logger.debug(
                "HTTP response",
                extra=extra_context(
                    event="http_response",
                    component="npm_client",
                    action="GET",
                    status_code=status,
                    duration_ms=timer.duration_ms(),
                    target=target,
                ),
            )

        if status == 429:
            raise TransientFetchError(
                f"Rate limited fetching {package_name}", package_name=package_name, status=status
            )
        if status != 200:
            raise PermanentFetchError(
                f"Registry returned HTTP {status} for {package_name}",
                package_name=package_name,
                status=status,
            )
        return self._parse_packument(package_name, body, status)

    @staticmethod
    def _parse_packument(package_name: str, body: str, status: int) -> RegistryMetadata:
        try:
            data: Dict[str, Any] = json.loads(body)
        except json.JSONDecodeError as exc:
            raise PermanentFetchError(
                f"Malformed registry payload for {package_name}",
                package_name=package_name,
                status=status,
            ) from exc

        dist_tags = data.get("dist-tags") if isinstance(data, dict) else None
        versions = data.get("versions") if isinstance(data, dict) else None
        latest = dist_tags.get("latest") if isinstance(dist_tags, dict) else None
        if not isinstance(latest, str) or not isinstance(versions, dict):
            raise PermanentFetchError(
                f"Registry payload for {package_name} lacks dist-tags.latest or versions",
                package_name=package_name,
                status=status,
            )
        return RegistryMetadata(latest_tag=latest, published_versions=frozenset(versions))

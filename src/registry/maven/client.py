"""Maven registry API client.

Fetches POM descriptors and ``maven-metadata.xml`` listings from one
registry and keeps every successful response body in memory for the life of
the client. The response cache can be exported and imported wholesale; see
``resolution.cache`` for the on-disk format.
"""
from __future__ import annotations

import logging
import threading
import xml.etree.ElementTree as ET
from typing import Dict, Mapping, Optional

import aiohttp

from constants import Constants
from common import http_client
from common.errors import MalformedResponseError, OfflineModeError
from common.logging_utils import extra_context, is_debug_enabled, safe_url
from .pom import Metadata, Project, parse_metadata, parse_project

logger = logging.getLogger(__name__)


def artifact_base_url(registry_url: str, group_id: str, artifact_id: str) -> str:
    """Directory URL of an artifact: ``{registry}/{group/as/path}/{artifact}``."""
    group_path = group_id.replace(".", "/")
    return f"{registry_url.rstrip('/')}/{group_path}/{artifact_id}"


def pom_url(registry_url: str, group_id: str, artifact_id: str, version: str) -> str:
    """URL of the POM for ``group:artifact:version``."""
    base = artifact_base_url(registry_url, group_id, artifact_id)
    return f"{base}/{version}/{artifact_id}-{version}.pom"


def metadata_url(registry_url: str, group_id: str, artifact_id: str) -> str:
    """URL of the ``maven-metadata.xml`` listing for ``group:artifact``."""
    return f"{artifact_base_url(registry_url, group_id, artifact_id)}/{Constants.MAVEN_METADATA_FILE}"


class MavenRegistryAPIClient:
    """Read-only client for one Maven registry.

    Safe to share between concurrent tasks: cache reads and writes are
    guarded, and two tasks missing the same key may both fetch it. Cache
    export/import must not run while requests are in flight.
    """

    def __init__(
        self,
        registry_url: str = Constants.REGISTRY_URL_MAVEN,
        *,
        offline: bool = False,
        timeout: Optional[float] = None,
        max_connections: int = Constants.HTTP_MAX_CONNECTIONS,
        user_agent: str = Constants.USER_AGENT,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        """Initialize the API client.

        Args:
            registry_url: Base URL of the Maven repository layout.
            offline: Serve only cached responses; a cache miss raises OfflineModeError.
            timeout: Optional total request timeout in seconds.
            max_connections: Connection pool limit for the owned session.
            user_agent: User-Agent header sent with every request.
            session: Externally managed session; not closed by ``stop``.
        """
        self._registry_url = registry_url.rstrip("/")
        self._offline = offline
        self._timeout = timeout
        self._max_connections = max_connections
        self._headers = {"User-Agent": user_agent, "Accept": "application/xml, text/xml, */*"}
        self._session = session
        self._owns_session = session is None
        self._responses: Dict[str, str] = {}
        self._lock = threading.Lock()

    @property
    def registry_url(self) -> str:
        return self._registry_url

    @property
    def offline(self) -> bool:
        return self._offline

    async def start(self) -> None:
        """Start the HTTP session."""
        if self._session is None:
            self._session = http_client.build_session(
                timeout=self._timeout,
                max_connections=self._max_connections,
            )
            self._owns_session = True

    async def stop(self) -> None:
        """Stop the HTTP session if this client created it."""
        if self._session is not None and self._owns_session:
            await self._session.close()
            self._session = None

    async def get_project(self, group_id: str, artifact_id: str, version: str) -> Project:
        """Fetch and parse the POM of ``group:artifact:version``."""
        url = pom_url(self._registry_url, group_id, artifact_id, version)
        body = await self._get(url)
        try:
            return parse_project(body)
        except (ET.ParseError, ValueError) as exc:
            raise MalformedResponseError(url, f"invalid POM ({exc})") from exc

    async def get_artifact_metadata(self, group_id: str, artifact_id: str) -> Metadata:
        """Fetch and parse ``maven-metadata.xml`` of ``group:artifact``."""
        url = metadata_url(self._registry_url, group_id, artifact_id)
        body = await self._get(url)
        try:
            return parse_metadata(body)
        except ET.ParseError as exc:
            raise MalformedResponseError(url, f"invalid metadata ({exc})") from exc

    async def _get(self, url: str) -> str:
        with self._lock:
            cached = self._responses.get(url)
        if cached is not None:
            if is_debug_enabled(logger):
                logger.debug(
                    "Registry cache hit",
                    extra=extra_context(
                        event="cache_hit", component="maven_api", target=safe_url(url),
                        package_manager="maven",
                    ),
                )
            return cached

        if self._offline:
            raise OfflineModeError(f"offline mode: {safe_url(url)} is not cached")

        if self._session is None:
            await self.start()
        assert self._session is not None
        body = await http_client.fetch_text(self._session, url, context="maven", headers=self._headers)
        with self._lock:
            self._responses[url] = body
        return body

    def export_cache(self) -> Dict[str, str]:
        """Return a snapshot of the cached responses keyed by request URL."""
        with self._lock:
            return dict(self._responses)

    def import_cache(self, entries: Mapping[str, str]) -> None:
        """Replace the cached responses with ``entries``."""
        responses = dict(entries)
        with self._lock:
            self._responses = responses

    async def __aenter__(self) -> "MavenRegistryAPIClient":
        """Async context manager entry."""
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.stop()

"""On-disk persistence of a registry client's response cache.

The file is a JSON document::

    {
      "format": "depresolve-maven-registry-cache",
      "version": 1,
      "registry": "https://repo.maven.apache.org/maven2",
      "entries": {"<request url>": "<response body>", ...}
    }

Loading validates the whole document before touching the client, so a
rejected file leaves the in-memory cache as it was. Neither operation may run
while the client has requests in flight.
"""
from __future__ import annotations

import json
import logging
from typing import Dict

from constants import Constants
from common.errors import CacheIOError
from common.logging_utils import extra_context
from registry.maven.client import MavenRegistryAPIClient

logger = logging.getLogger(__name__)


def cache_path(path: str) -> str:
    """Return the cache file name for the caller-supplied ``path``."""
    return path + Constants.MAVEN_REGISTRY_CACHE_EXT


def write_cache(api: MavenRegistryAPIClient, path: str) -> None:
    """Serialize the API client's response cache to ``path`` plus the cache suffix.

    Raises:
        CacheIOError: the file cannot be created or written.
    """
    target = cache_path(path)
    entries = api.export_cache()
    document = {
        "format": Constants.MAVEN_CACHE_FORMAT,
        "version": Constants.MAVEN_CACHE_FORMAT_VERSION,
        "registry": api.registry_url,
        "entries": entries,
    }
    try:
        with open(target, "w", encoding="utf-8") as f:
            json.dump(document, f)
    except (OSError, TypeError, ValueError) as exc:
        raise CacheIOError(f"failed to write cache {target}: {exc}") from exc
    logger.info(
        "Wrote registry cache",
        extra=extra_context(event="cache_write", component="cache", target=target, count=len(entries)),
    )


def _validate(document, target: str, registry_url: str) -> Dict[str, str]:
    if not isinstance(document, dict):
        raise CacheIOError(f"{target} is not a registry cache file")
    if document.get("format") != Constants.MAVEN_CACHE_FORMAT:
        raise CacheIOError(f"{target} is not a registry cache file")
    if document.get("version") != Constants.MAVEN_CACHE_FORMAT_VERSION:
        raise CacheIOError(
            f"{target} has cache format version {document.get('version')!r}, "
            f"expected {Constants.MAVEN_CACHE_FORMAT_VERSION}"
        )
    if document.get("registry") != registry_url:
        raise CacheIOError(
            f"{target} was written for registry {document.get('registry')!r}, not {registry_url!r}"
        )
    entries = document.get("entries")
    if not isinstance(entries, dict):
        raise CacheIOError(f"{target} has no cache entries mapping")
    for key, value in entries.items():
        if not isinstance(key, str) or not isinstance(value, str):
            raise CacheIOError(f"{target} contains a malformed cache entry")
    return entries


def load_cache(api: MavenRegistryAPIClient, path: str) -> None:
    """Replace the API client's response cache with the contents of ``path`` plus the cache suffix.

    Raises:
        CacheIOError: the file is missing, unreadable or not a compatible cache.
    """
    target = cache_path(path)
    try:
        with open(target, "r", encoding="utf-8") as f:
            document = json.load(f)
    except (OSError, UnicodeDecodeError, ValueError) as exc:
        raise CacheIOError(f"failed to read cache {target}: {exc}") from exc

    entries = _validate(document, target, api.registry_url)
    api.import_cache(entries)
    logger.info(
        "Loaded registry cache",
        extra=extra_context(event="cache_load", component="cache", target=target, count=len(entries)),
    )

"""Shared HTTP helpers used by registry clients.

Encapsulates request error handling so registry modules avoid duplicating
try/except blocks, and maps transport failures onto the resolution error
types. Nothing here retries; retry policy belongs to the caller.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Dict, Optional

import aiohttp

from common.errors import (
    ArtifactNotFoundError,
    MalformedResponseError,
    RegistryFetchError,
    RegistryUnavailableError,
)
from common.logging_utils import extra_context, is_debug_enabled, safe_url, Timer

logger = logging.getLogger(__name__)

NOT_FOUND_STATUSES = (404, 410)
UNAVAILABLE_STATUSES = (408, 429)


def build_session(
    *,
    timeout: Optional[float] = None,
    max_connections: int = 100,
    headers: Optional[Dict[str, str]] = None,
) -> aiohttp.ClientSession:
    """Create a client session; ``timeout=None`` leaves deadlines to the caller."""
    connector = aiohttp.TCPConnector(limit=max_connections)
    return aiohttp.ClientSession(
        timeout=aiohttp.ClientTimeout(total=timeout),
        connector=connector,
        headers=headers,
    )


async def fetch_text(
    session: aiohttp.ClientSession,
    url: str,
    *,
    context: str,
    headers: Optional[Dict[str, str]] = None,
) -> str:
    """GET ``url`` and return the decoded body of a 200 response.

    Raises:
        ArtifactNotFoundError: the server answered 404 or 410.
        RegistryUnavailableError: connection failure, timeout, 5xx, 408 or 429.
        RegistryFetchError: any other non-200 status.
    """
    safe_target = safe_url(url)
    with Timer() as t:
        if is_debug_enabled(logger):
            logger.debug(
                "HTTP request",
                extra=extra_context(
                    event="http_request",
                    component="http_client",
                    action="GET",
                    target=safe_target,
                    context=context,
                ),
            )
        try:
            response = await session.request("GET", url, headers=headers)
        except aiohttp.ClientError as exc:
            logger.warning("%s connection error for %s: %s", context, safe_target, exc)
            raise RegistryUnavailableError(url, f"connection error ({exc})") from exc
        except asyncio.TimeoutError as exc:
            logger.warning("%s request timed out for %s", context, safe_target)
            raise RegistryUnavailableError(url, "request timed out") from exc

        try:
            status = response.status
            if status != 200:
                logger.debug(
                    "HTTP non-2xx",
                    extra=extra_context(
                        event="http_response",
                        component="http_client",
                        action="GET",
                        outcome="handled_non_2xx",
                        status_code=status,
                        duration_ms=t.duration_ms(),
                        target=safe_target,
                        context=context,
                    ),
                )
                if status in NOT_FOUND_STATUSES:
                    raise ArtifactNotFoundError(url, "not found", status=status)
                if status >= 500 or status in UNAVAILABLE_STATUSES:
                    raise RegistryUnavailableError(url, status=status)
                raise RegistryFetchError(url, status=status)
            try:
                body = await response.text()
            except aiohttp.ClientError as exc:
                raise RegistryUnavailableError(url, f"error reading body ({exc})", status=status) from exc
            except asyncio.TimeoutError as exc:
                raise RegistryUnavailableError(url, "timed out reading body", status=status) from exc
            except UnicodeDecodeError as exc:
                raise MalformedResponseError(url, "undecodable body", status=status) from exc
        finally:
            response.release()

        if is_debug_enabled(logger):
            logger.debug(
                "HTTP response ok",
                extra=extra_context(
                    event="http_response",
                    component="http_client",
                    action="GET",
                    outcome="success",
                    status_code=status,
                    duration_ms=t.duration_ms(),
                    target=safe_target,
                    context=context,
                ),
            )
        return body

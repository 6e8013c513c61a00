"""Exception hierarchy shared by the registry client and the resolution layer.

Callers distinguish three families: caller mistakes (``MalformedInputError``),
registry problems (``RegistryFetchError`` and subclasses) and resolution
limits (``ResolutionDepthError``). Cancellation is never wrapped; an
``asyncio.CancelledError`` always reaches the caller as-is.
"""
from __future__ import annotations

from typing import Optional


class ResolutionError(Exception):
    """Base class for all resolution-layer errors."""


class MalformedInputError(ResolutionError, ValueError):
    """Input the caller can fix: bad coordinate, bad requirement, bad config."""


class EcosystemMismatchError(MalformedInputError):
    """A key from another ecosystem was passed to an ecosystem-bound client."""


class RegistryFetchError(ResolutionError):
    """A registry request did not produce a usable response."""

    def __init__(self, url: str, message: str = "", status: Optional[int] = None):
        self.url = url
        self.status = status
        detail = message or (f"HTTP {status}" if status is not None else "request failed")
        super().__init__(f"{detail}: {url}")


class RegistryUnavailableError(RegistryFetchError):
    """Network failure, server error or throttling; the artifact may exist."""


class ArtifactNotFoundError(RegistryFetchError):
    """The registry answered that the requested document does not exist."""


class MalformedResponseError(RegistryFetchError):
    """The registry answered with a body that is not a valid descriptor."""


class ResolutionDepthError(ResolutionError):
    """The parent chain of a descriptor exceeded the configured depth."""


class ParentCycleError(ResolutionDepthError):
    """The parent chain of a descriptor refers back to one of its members."""


class CacheIOError(ResolutionError):
    """The response cache could not be written or loaded."""


class OfflineModeError(ResolutionError):
    """A network request was required while the client is offline."""

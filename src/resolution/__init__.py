"""Maven dependency resolution client."""

from .client import MavenRegistryClient
from .config import ResolverConfig

__all__ = ["MavenRegistryClient", "ResolverConfig"]

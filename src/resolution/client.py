"""Maven resolution client for an external version-resolution engine.

The engine asks for version listings, single versions, requirement lists and
requirement matches; this client answers from a Maven registry. It does no
graph-wide resolution itself.
"""
from __future__ import annotations

import logging
from typing import List, Optional, Union

from common.errors import EcosystemMismatchError
from common.logging_utils import extra_context, is_debug_enabled, Timer
from registry.maven.client import MavenRegistryAPIClient
from registry.maven.pom import Dependency, Project
from versioning.constraint import parse_constraint
from versioning.maven_version import MavenVersion
from versioning.models import (
    AttrKey,
    AttrSet,
    Coordinate,
    DependencyType,
    Ecosystem,
    PackageKey,
    RequirementVersion,
    Version,
    VersionKey,
    VersionType,
)
from . import cache
from .config import ResolverConfig
from .merge import DescriptorMerger

logger = logging.getLogger(__name__)

REGISTRY_PREFIX = "dep:"
REGISTRY_SEPARATOR = "|"


def _requirement(dep: Dependency) -> RequirementVersion:
    return RequirementVersion(
        version_key=VersionKey(
            package_key=PackageKey(Ecosystem.MAVEN, dep.name()),
            version=dep.version,
            version_type=VersionType.REQUIREMENT,
        ),
        type=DependencyType(
            scope=dep.scope,
            optional=dep.optional.strip().lower() == "true",
            artifact_type=dep.type,
            classifier=dep.classifier,
            exclusions=tuple(str(ex) for ex in dep.exclusions),
        ),
    )


def _registries(project: Project) -> AttrSet:
    urls = [REGISTRY_PREFIX + repo.url for repo in project.repositories if repo.url]
    if not urls:
        return AttrSet()
    return AttrSet().with_attr(AttrKey.REGISTRIES, REGISTRY_SEPARATOR.join(urls))


class MavenRegistryClient:
    """Resolution client backed by one Maven registry.

    Operations are coroutines and may run concurrently on one instance.
    Cancelling a call cancels its outstanding registry request.
    """

    def __init__(
        self,
        config: Optional[ResolverConfig] = None,
        *,
        api: Optional[MavenRegistryAPIClient] = None,
    ):
        self.config = config or ResolverConfig()
        self.api = api or MavenRegistryAPIClient(
            self.config.registry_url,
            offline=self.config.offline,
            timeout=self.config.request_timeout,
            max_connections=self.config.max_connections,
            user_agent=self.config.user_agent,
        )
        self._merger = DescriptorMerger(self.api, max_parent_depth=self.config.max_parent_depth)

    @classmethod
    def for_registry(cls, registry_url: str, **settings) -> "MavenRegistryClient":
        """Shortcut for a client on ``registry_url`` with optional config overrides."""
        return cls(ResolverConfig.from_mapping({"registry_url": registry_url, **settings}))

    @staticmethod
    def _coordinate(key: Union[PackageKey, VersionKey]) -> Coordinate:
        if key.ecosystem != Ecosystem.MAVEN:
            raise EcosystemMismatchError(f"wrong system: {key.ecosystem.value}")
        return Coordinate.parse(key.name)

    async def version(self, vk: VersionKey) -> Version:
        """Return ``vk`` with the registries its descriptor declares."""
        coord = self._coordinate(vk)
        project = await self.api.get_project(coord.group_id, coord.artifact_id, vk.version)
        return Version(version_key=vk, attrs=_registries(project))

    async def versions(self, pk: PackageKey) -> List[Version]:
        """List the published versions of ``pk`` in ascending Maven order.

        Only versions present in ``maven-metadata.xml`` are returned; artifacts
        published without being listed there are not discovered.
        """
        coord = self._coordinate(pk)
        metadata = await self.api.get_artifact_metadata(coord.group_id, coord.artifact_id)
        listed = sorted(metadata.versions, key=MavenVersion)
        return [
            Version(version_key=VersionKey(package_key=pk, version=v, version_type=VersionType.CONCRETE))
            for v in listed
        ]

    async def requirements(self, vk: VersionKey) -> List[RequirementVersion]:
        """Return the dependencies of ``vk`` after full descriptor merging, in declaration order."""
        coord = self._coordinate(vk)
        with Timer() as t:
            project = await self.api.get_project(coord.group_id, coord.artifact_id, vk.version)
            effective = await self._merger.effective(project)
        reqs = [_requirement(dep) for dep in effective.dependencies]
        if is_debug_enabled(logger):
            logger.debug(
                "Resolved requirements",
                extra=extra_context(
                    event="function_exit", component="client", action="requirements",
                    target=f"{coord}:{vk.version}", count=len(reqs),
                    duration_ms=t.duration_ms(), package_manager="maven",
                ),
            )
        return reqs

    async def matching_versions(self, vk: VersionKey) -> List[Version]:
        """Return the listed versions satisfying the requirement ``vk``, ascending."""
        self._coordinate(vk)
        constraint = parse_constraint(vk.version)
        versions = await self.versions(vk.package_key)
        return [v for v in versions if constraint.matches(v.version)]

    def write_cache(self, path: str) -> None:
        """Persist the registry response cache; see ``resolution.cache``."""
        cache.write_cache(self.api, path)

    def load_cache(self, path: str) -> None:
        """Restore the registry response cache; see ``resolution.cache``."""
        cache.load_cache(self.api, path)

    async def close(self) -> None:
        await self.api.stop()

    async def __aenter__(self) -> "MavenRegistryClient":
        await self.api.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

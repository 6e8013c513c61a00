"""Effective project descriptor computation.

Turns a raw POM into the descriptor Maven would see: default profiles merged,
the parent chain folded in, ``${...}`` placeholders expanded, BOM imports
resolved and dependency management applied. Every step returns a new
``Project``; fetched descriptors are never modified.
"""
from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import replace
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from constants import Constants
from common.errors import MalformedResponseError, ParentCycleError, ResolutionDepthError
from common.logging_utils import extra_context, is_debug_enabled
from registry.maven.client import MavenRegistryAPIClient, pom_url
from registry.maven.pom import Dependency, Exclusion, Parent, Project, ProjectKey, Repository

logger = logging.getLogger(__name__)

_PLACEHOLDER = re.compile(r"\$\{([^}]+)\}")


def merge_profiles(project: Project) -> Project:
    """Merge ``activeByDefault`` profiles into the project and drop the profile list.

    JDK, OS, property and file activation are not evaluated, so profiles
    relying on them are never merged. Profiles without any ``<activation>``
    block only apply when selected explicitly and are excluded as well.
    """
    if not project.profiles:
        return project
    properties = project.property_map()
    management = list(project.dependency_management)
    dependencies = list(project.dependencies)
    repositories = list(project.repositories)
    for profile in project.profiles:
        if not profile.activation.is_default():
            continue
        properties.update(profile.properties)
        management.extend(profile.dependency_management)
        dependencies.extend(profile.dependencies)
        repositories.extend(profile.repositories)
    return replace(
        project,
        properties=tuple(properties.items()),
        dependency_management=tuple(management),
        dependencies=tuple(dependencies),
        repositories=tuple(repositories),
        profiles=(),
    )


def merge_parent(child: Project, parent: Project) -> Project:
    """Fold ``parent`` into ``child``; the child's own values take precedence."""
    properties = parent.property_map()
    properties.update(child.properties)
    key = ProjectKey(
        group_id=child.key.group_id or parent.key.group_id,
        artifact_id=child.key.artifact_id,
        version=child.key.version or parent.key.version,
    )
    return replace(
        child,
        key=key,
        properties=tuple(properties.items()),
        dependency_management=child.dependency_management + parent.dependency_management,
        dependencies=child.dependencies + parent.dependencies,
        repositories=child.repositories + parent.repositories,
    )


def _builtin_properties(project: Project) -> Dict[str, str]:
    values = {}
    for prefix in ("project.", "pom."):
        values[f"{prefix}groupId"] = project.key.group_id
        values[f"{prefix}artifactId"] = project.key.artifact_id
        values[f"{prefix}version"] = project.key.version
        values[f"{prefix}packaging"] = project.packaging
        values[f"{prefix}parent.groupId"] = project.parent.key.group_id
        values[f"{prefix}parent.artifactId"] = project.parent.key.artifact_id
        values[f"{prefix}parent.version"] = project.parent.key.version
    return {name: value for name, value in values.items() if value}


class _Interpolator:
    """Expands ``${name}`` references; unknown and cyclic references stay as written.

    Each property is expanded at most once, and any expansion longer than
    ``max_length`` characters raises MalformedResponseError.
    """

    def __init__(
        self,
        properties: Dict[str, str],
        source: str = "",
        max_depth: int = Constants.MAX_INTERPOLATION_DEPTH,
        max_length: int = Constants.MAX_INTERPOLATED_LENGTH,
    ):
        self._properties = properties
        self._source = source
        self._max_depth = max_depth
        self._max_length = max_length
        self._resolved: Dict[str, str] = {}

    def expand(self, value: str) -> str:
        if not value or "${" not in value:
            return value
        return self._expand(value, ())

    def _resolve(self, name: str, stack: Tuple[str, ...]) -> str:
        if name not in self._resolved:
            self._resolved[name] = self._expand(self._properties[name], stack + (name,))
        return self._resolved[name]

    def _expand(self, value: str, stack: Tuple[str, ...]) -> str:
        def _replace(match: "re.Match[str]") -> str:
            name = match.group(1)
            if name in stack or len(stack) >= self._max_depth or name not in self._properties:
                return match.group(0)
            return self._resolve(name, stack)

        expanded = _PLACEHOLDER.sub(_replace, value)
        if len(expanded) > self._max_length:
            raise MalformedResponseError(
                self._source, f"property expansion longer than {self._max_length} characters"
            )
        return expanded

    def dependency(self, dep: Dependency) -> Dependency:
        return replace(
            dep,
            group_id=self.expand(dep.group_id),
            artifact_id=self.expand(dep.artifact_id),
            version=self.expand(dep.version),
            type=self.expand(dep.type),
            classifier=self.expand(dep.classifier),
            scope=self.expand(dep.scope),
            optional=self.expand(dep.optional),
            exclusions=tuple(
                Exclusion(group_id=self.expand(ex.group_id), artifact_id=self.expand(ex.artifact_id))
                for ex in dep.exclusions
            ),
        )


def interpolate(project: Project, source: str = "") -> Project:
    """Expand placeholders in dependencies, dependency management and repository URLs.

    ``project.*`` and ``pom.*`` always refer to the model; other names come
    from the merged ``<properties>``. ``source`` names the descriptor in the
    MalformedResponseError raised when an expansion grows too long.
    """
    properties = project.property_map()
    properties.update(_builtin_properties(project))
    interpolator = _Interpolator(properties, source=source or str(project.key))
    return replace(
        project,
        dependency_management=tuple(interpolator.dependency(d) for d in project.dependency_management),
        dependencies=tuple(interpolator.dependency(d) for d in project.dependencies),
        repositories=tuple(
            Repository(id=repo.id, url=interpolator.expand(repo.url)) for repo in project.repositories
        ),
    )


def dedupe(dependencies: Iterable[Dependency]) -> List[Dependency]:
    """Drop later entries sharing a key with an earlier one; order is preserved."""
    seen = set()
    result = []
    for dep in dependencies:
        key = dep.key()
        if key in seen:
            continue
        seen.add(key)
        result.append(dep)
    return result


def apply_management(dep: Dependency, managed: Optional[Dependency]) -> Dependency:
    """Fill unset version, scope and exclusions from a dependency-management entry.

    Values declared on the dependency itself are never replaced.
    """
    if managed is None:
        return dep
    changes = {}
    if not dep.version and managed.version:
        changes["version"] = managed.version
    if not dep.scope and managed.scope:
        changes["scope"] = managed.scope
    if not dep.exclusions and managed.exclusions:
        changes["exclusions"] = managed.exclusions
    return replace(dep, **changes) if changes else dep


def _keys_match(requested: ProjectKey, fetched: ProjectKey) -> bool:
    for want, got in (
        (requested.group_id, fetched.group_id),
        (requested.artifact_id, fetched.artifact_id),
        (requested.version, fetched.version),
    ):
        # CI-friendly versions such as ${revision} cannot be checked before interpolation.
        if "${" in got:
            continue
        if want != got:
            return False
    return True


class DescriptorMerger:
    """Computes effective descriptors using a registry API client."""

    def __init__(self, api: MavenRegistryAPIClient, max_parent_depth: int = Constants.MAX_PARENT_DEPTH):
        self._api = api
        self._max_parent_depth = max_parent_depth

    async def effective(self, project: Project) -> Project:
        """Return the effective descriptor of ``project``.

        Raises:
            RegistryFetchError: an ancestor or imported BOM could not be fetched.
            ResolutionDepthError: the parent chain is cyclic or too deep.
        """
        merged = merge_profiles(project)
        merged = await self.merge_parents(merged, merged.parent, start=1)
        return await self.process_dependencies(merged)

    async def merge_parents(self, result: Project, current: Parent, start: int) -> Project:
        """Fold the chain of ancestors starting at ``current`` into ``result``.

        ``start`` is the depth of ``current``: 1 when ``result`` is the project
        whose parent is ``current``, 0 when ``result`` is empty and
        ``current`` itself is the root to load.
        """
        visited = {result.key} if result.key.is_complete() else set()
        depth = start
        while current.key.is_complete():
            key = current.key
            if key in visited:
                raise ParentCycleError(f"cycle in parent chain at {key}")
            if depth >= self._max_parent_depth:
                raise ResolutionDepthError(
                    f"parent chain deeper than {self._max_parent_depth} at {key}"
                )
            visited.add(key)

            if is_debug_enabled(logger):
                logger.debug(
                    "Fetching parent descriptor",
                    extra=extra_context(
                        event="function_entry", component="merge", action="merge_parents",
                        target=str(key), depth=depth, package_manager="maven",
                    ),
                )
            project = await self._api.get_project(key.group_id, key.artifact_id, key.version)
            url = pom_url(self._api.registry_url, key.group_id, key.artifact_id, key.version)
            if depth > 0 and project.packaging != "pom":
                raise MalformedResponseError(url, f"invalid packaging {project.packaging!r} for parent project")
            if not _keys_match(key, project.key):
                raise MalformedResponseError(url, f"descriptor key {project.key} does not match {key}")

            project = merge_profiles(project)
            result = project if depth == 0 else merge_parent(result, project)
            current = project.parent
            depth += 1

        source = ""
        if result.key.is_complete():
            source = pom_url(self._api.registry_url, result.key.group_id, result.key.artifact_id, result.key.version)
        return interpolate(result, source=source)

    async def process_dependencies(self, project: Project) -> Project:
        """Resolve BOM imports, then apply dependency management to the dependencies.

        Entries declared by the project take precedence over imported ones;
        among imports the first BOM declaring a key wins.
        """
        imports = [dep for dep in project.dependency_management if dep.is_import()]
        management: List[Dependency] = [dep for dep in project.dependency_management if not dep.is_import()]
        for entries in await self._import_all(imports):
            management.extend(entries)
        management = dedupe(management)
        managed = {dep.key(): dep for dep in management}

        dependencies = dedupe(apply_management(dep, managed.get(dep.key())) for dep in project.dependencies)
        return replace(
            project,
            dependency_management=tuple(management),
            dependencies=tuple(dependencies),
        )

    async def _import_all(self, imports: Sequence[Dependency]) -> List[Tuple[Dependency, ...]]:
        if not imports:
            return []
        tasks = [asyncio.ensure_future(self._import_management(dep)) for dep in imports]
        try:
            return list(await asyncio.gather(*tasks))
        except Exception:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    async def _import_management(self, dep: Dependency) -> Tuple[Dependency, ...]:
        """Dependency management of an imported BOM; its own imports are not followed."""
        root = Parent(key=ProjectKey(group_id=dep.group_id, artifact_id=dep.artifact_id, version=dep.version))
        if not root.key.is_complete():
            logger.warning("Skipping BOM import without a version: %s", dep.name())
            return ()
        bom = await self.merge_parents(Project(), root, start=0)
        return tuple(entry for entry in bom.dependency_management if not entry.is_import())

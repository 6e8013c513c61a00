"""Data models exchanged with the external version-resolution engine."""

from __future__ import annotations

import functools
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

from common.errors import MalformedInputError
from .maven_version import MavenVersion


class Ecosystem(Enum):
    """Enum for package ecosystems a key may belong to."""
    NPM = "npm"
    PYPI = "pypi"
    MAVEN = "maven"


class VersionType(Enum):
    """Whether a version key names a published version or a requirement."""
    CONCRETE = "concrete"
    REQUIREMENT = "requirement"


class AttrKey(Enum):
    """Attribute names carried on a Version."""
    REGISTRIES = "registries"


@dataclass(frozen=True)
class Coordinate:
    """Maven ``groupId:artifactId`` identity."""
    group_id: str
    artifact_id: str

    @classmethod
    def parse(cls, name: str) -> "Coordinate":
        """Split ``group:artifact``; raises MalformedInputError without a delimiter."""
        group_id, sep, artifact_id = (name or "").partition(":")
        if not sep or not group_id or not artifact_id:
            raise MalformedInputError(f"invalid Maven package name {name!r}")
        return cls(group_id=group_id, artifact_id=artifact_id)

    def __str__(self) -> str:
        return f"{self.group_id}:{self.artifact_id}"


@dataclass(frozen=True)
class PackageKey:
    """Ecosystem plus package name (``group:artifact`` for Maven)."""
    ecosystem: Ecosystem
    name: str


@functools.total_ordering
@dataclass(frozen=True, eq=False)
class VersionKey:
    """A package at a version, either concrete or a requirement.

    Equality, hashing and ordering use Maven version rules for the version
    string, so ``1.0`` and ``1.0.0`` name the same key.
    """
    package_key: PackageKey
    version: str
    version_type: VersionType = VersionType.CONCRETE

    @property
    def ecosystem(self) -> Ecosystem:
        return self.package_key.ecosystem

    @property
    def name(self) -> str:
        return self.package_key.name

    def _sort_key(self):
        return (self.ecosystem.value, self.name, self.version_type.value, MavenVersion(self.version))

    def __eq__(self, other) -> bool:
        if not isinstance(other, VersionKey):
            return NotImplemented
        return self._sort_key() == other._sort_key()

    def __lt__(self, other) -> bool:
        if not isinstance(other, VersionKey):
            return NotImplemented
        return self._sort_key() < other._sort_key()

    def __hash__(self) -> int:
        return hash(self._sort_key())


@dataclass(frozen=True)
class AttrSet:
    """Immutable set of version attributes."""
    items: Tuple[Tuple[AttrKey, str], ...] = ()

    def get(self, key: AttrKey) -> Optional[str]:
        for name, value in self.items:
            if name == key:
                return value
        return None

    def with_attr(self, key: AttrKey, value: str) -> "AttrSet":
        kept = tuple((name, v) for name, v in self.items if name != key)
        return AttrSet(items=kept + ((key, value),))

    def __bool__(self) -> bool:
        return bool(self.items)


@dataclass(frozen=True)
class Version:
    """A version key together with registry-derived attributes."""
    version_key: VersionKey
    attrs: AttrSet = field(default_factory=AttrSet)

    @property
    def version(self) -> str:
        return self.version_key.version


@dataclass(frozen=True)
class DependencyType:
    """Edge metadata for a Maven dependency.

    ``scope`` is kept as declared (an empty string means Maven's default,
    ``compile``); ``artifact_type`` and ``classifier`` are empty for a plain jar.
    """
    scope: str = ""
    optional: bool = False
    artifact_type: str = ""
    classifier: str = ""
    exclusions: Tuple[str, ...] = ()


@dataclass(frozen=True)
class RequirementVersion:
    """A dependency edge: requirement version key plus its dependency type."""
    version_key: VersionKey
    type: DependencyType = field(default_factory=DependencyType)

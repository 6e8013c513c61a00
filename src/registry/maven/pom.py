"""Maven POM and maven-metadata.xml models.

Descriptors are frozen dataclasses; merge helpers in ``resolution.merge``
return new instances instead of mutating shared ones.
"""
from __future__ import annotations

import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from constants import Constants

Properties = Tuple[Tuple[str, str], ...]


@dataclass(frozen=True)
class ProjectKey:
    """``groupId:artifactId:version`` of a project."""
    group_id: str = ""
    artifact_id: str = ""
    version: str = ""

    def is_complete(self) -> bool:
        return bool(self.group_id and self.artifact_id and self.version)

    def __str__(self) -> str:
        return f"{self.group_id}:{self.artifact_id}:{self.version}"


@dataclass(frozen=True)
class Parent:
    """The ``<parent>`` element of a POM."""
    key: ProjectKey = field(default_factory=ProjectKey)
    relative_path: str = ""


@dataclass(frozen=True)
class Exclusion:
    group_id: str
    artifact_id: str

    def __str__(self) -> str:
        return f"{self.group_id}:{self.artifact_id}"


@dataclass(frozen=True)
class Dependency:
    """A ``<dependency>`` entry, either declared or under dependency management."""
    group_id: str
    artifact_id: str
    version: str = ""
    type: str = ""
    classifier: str = ""
    scope: str = ""
    optional: str = ""
    exclusions: Tuple[Exclusion, ...] = ()

    def name(self) -> str:
        return f"{self.group_id}:{self.artifact_id}"

    def key(self) -> Tuple[str, str, str, str]:
        """Identity used for de-duplication and dependency-management lookup."""
        return (self.group_id, self.artifact_id, self.type or "jar", self.classifier)

    def is_import(self) -> bool:
        """True for a BOM import entry under dependency management."""
        return self.scope == "import" and self.type == "pom"


@dataclass(frozen=True)
class Repository:
    id: str = ""
    url: str = ""


@dataclass(frozen=True)
class Activation:
    """Profile activation block. Only ``activeByDefault`` is ever evaluated."""
    active_by_default: str = ""
    jdk: str = ""
    os: Tuple[Tuple[str, str], ...] = ()
    property: Tuple[Tuple[str, str], ...] = ()
    file: Tuple[Tuple[str, str], ...] = ()

    def is_default(self) -> bool:
        return self.active_by_default.strip().lower() == "true"


@dataclass(frozen=True)
class Profile:
    id: str = ""
    activation: Activation = field(default_factory=Activation)
    properties: Properties = ()
    dependency_management: Tuple[Dependency, ...] = ()
    dependencies: Tuple[Dependency, ...] = ()
    repositories: Tuple[Repository, ...] = ()


@dataclass(frozen=True)
class Project:
    """A project descriptor, raw as fetched or effective after merging."""
    key: ProjectKey = field(default_factory=ProjectKey)
    parent: Parent = field(default_factory=Parent)
    packaging: str = ""
    properties: Properties = ()
    dependency_management: Tuple[Dependency, ...] = ()
    dependencies: Tuple[Dependency, ...] = ()
    repositories: Tuple[Repository, ...] = ()
    profiles: Tuple[Profile, ...] = ()

    def property_map(self) -> Dict[str, str]:
        return dict(self.properties)


@dataclass(frozen=True)
class Metadata:
    """The parts of ``maven-metadata.xml`` used for version listing."""
    group_id: str = ""
    artifact_id: str = ""
    latest: str = ""
    release: str = ""
    versions: Tuple[str, ...] = ()


class _Element:
    """Namespace-agnostic accessors over an ElementTree element."""

    def __init__(self, element: Optional[ET.Element]):
        self.element = element

    def child(self, name: str) -> "_Element":
        if self.element is None:
            return _Element(None)
        for ns in (Constants.MAVEN_POM_NAMESPACE, ""):
            found = self.element.find(f"{ns}{name}")
            if found is not None:
                return _Element(found)
        return _Element(None)

    def children(self, name: str):
        if self.element is None:
            return []
        for ns in (Constants.MAVEN_POM_NAMESPACE, ""):
            found = self.element.findall(f"{ns}{name}")
            if found:
                return [_Element(item) for item in found]
        return []

    def text(self, name: str) -> str:
        node = self.child(name).element
        if node is None or node.text is None:
            return ""
        return node.text.strip()

    def pairs(self) -> Tuple[Tuple[str, str], ...]:
        """Child elements as ``(local tag, text)`` pairs, in document order."""
        if self.element is None:
            return ()
        result = []
        for item in self.element:
            if not isinstance(item.tag, str):
                continue  # comments and processing instructions
            tag = item.tag.split("}", 1)[-1]
            result.append((tag, (item.text or "").strip()))
        return tuple(result)


def _parse_root(xml_text: str) -> ET.Element:
    return ET.fromstring(xml_text.lstrip("\ufeff \t\r\n"))


def _parse_dependency(node: _Element) -> Dependency:
    exclusions = tuple(
        Exclusion(group_id=ex.text("groupId"), artifact_id=ex.text("artifactId"))
        for ex in node.child("exclusions").children("exclusion")
    )
    return Dependency(
        group_id=node.text("groupId"),
        artifact_id=node.text("artifactId"),
        version=node.text("version"),
        type=node.text("type"),
        classifier=node.text("classifier"),
        scope=node.text("scope"),
        optional=node.text("optional"),
        exclusions=exclusions,
    )


def _parse_dependencies(node: _Element) -> Tuple[Dependency, ...]:
    return tuple(_parse_dependency(dep) for dep in node.child("dependencies").children("dependency"))


def _parse_repositories(node: _Element) -> Tuple[Repository, ...]:
    return tuple(
        Repository(id=repo.text("id"), url=repo.text("url"))
        for repo in node.child("repositories").children("repository")
    )


def _parse_profile(node: _Element) -> Profile:
    activation = node.child("activation")
    prop = activation.child("property")
    return Profile(
        id=node.text("id"),
        activation=Activation(
            active_by_default=activation.text("activeByDefault"),
            jdk=activation.text("jdk"),
            os=activation.child("os").pairs(),
            property=prop.pairs(),
            file=activation.child("file").pairs(),
        ),
        properties=node.child("properties").pairs(),
        dependency_management=_parse_dependencies(node.child("dependencyManagement")),
        dependencies=_parse_dependencies(node),
        repositories=_parse_repositories(node),
    )


def parse_project(xml_text: str) -> Project:
    """Parse a POM document.

    ``groupId`` and ``version`` fall back to the ``<parent>`` values, as Maven
    does for inherited coordinates.

    Raises:
        ET.ParseError: the document is not well-formed XML.
        ValueError: the root element is not ``<project>``.
    """
    root = _parse_root(xml_text)
    if root.tag.split("}", 1)[-1] != "project":
        raise ValueError(f"unexpected root element {root.tag!r}")
    node = _Element(root)
    parent_node = node.child("parent")
    parent = Parent(
        key=ProjectKey(
            group_id=parent_node.text("groupId"),
            artifact_id=parent_node.text("artifactId"),
            version=parent_node.text("version"),
        ),
        relative_path=parent_node.text("relativePath"),
    )
    return Project(
        key=ProjectKey(
            group_id=node.text("groupId") or parent.key.group_id,
            artifact_id=node.text("artifactId"),
            version=node.text("version") or parent.key.version,
        ),
        parent=parent,
        packaging=node.text("packaging") or "jar",
        properties=node.child("properties").pairs(),
        dependency_management=_parse_dependencies(node.child("dependencyManagement")),
        dependencies=_parse_dependencies(node),
        repositories=_parse_repositories(node),
        profiles=tuple(_parse_profile(p) for p in node.child("profiles").children("profile")),
    )


def parse_metadata(xml_text: str) -> Metadata:
    """Parse ``maven-metadata.xml``; versions keep their document order."""
    root = _Element(_parse_root(xml_text))
    versioning = root.child("versioning")
    versions = []
    for item in versioning.child("versions").children("version"):
        if item.element is not None and item.element.text and item.element.text.strip():
            versions.append(item.element.text.strip())
    return Metadata(
        group_id=root.text("groupId"),
        artifact_id=root.text("artifactId"),
        latest=versioning.text("latest"),
        release=versioning.text("release"),
        versions=tuple(versions),
    )

"""Tests for the Maven resolution client operations."""

import asyncio

import pytest

from common.errors import (
    ArtifactNotFoundError,
    EcosystemMismatchError,
    MalformedInputError,
    OfflineModeError,
)
from fake_registry import REGISTRY, dep, pom
from registry.maven.client import MavenRegistryAPIClient, pom_url
from resolution.client import MavenRegistryClient
from resolution.config import ResolverConfig
from versioning.models import (
    AttrKey,
    DependencyType,
    Ecosystem,
    PackageKey,
    VersionKey,
    VersionType,
)

LIB = PackageKey(Ecosystem.MAVEN, "org.example:lib")
UTIL = PackageKey(Ecosystem.MAVEN, "org.example:util")


def _lib_registry(registry):
    registry.add_pom("org.example", "lib", "1.2.0", pom(
        "org.example", "lib", "1.2.0",
        dependencies=[dep("org.example", "util", ">=1.0.0, <2.0.0")],
        repositories=[("extra", "https://extra.test/repo"), ("other", "https://other.test/m2")],
    ))
    registry.add_metadata("org.example", "lib", ["1.0.0", "1.2.0", "1.1.0"])
    registry.add_metadata("org.example", "util", ["0.9.0", "1.0.0", "1.5.0", "2.0.0"])


class TestVersion:
    """version()"""

    def test_attaches_declared_registries(self, registry, client):
        """Repositories from the descriptor become the registries attribute."""
        _lib_registry(registry)
        vk = VersionKey(LIB, "1.2.0")

        result = asyncio.run(client.version(vk))

        assert result.version_key == vk
        assert result.attrs.get(AttrKey.REGISTRIES) == "dep:https://extra.test/repo|dep:https://other.test/m2"

    def test_no_registries(self, registry, client):
        """A descriptor without repositories yields no attributes."""
        registry.add_pom("org.example", "plain", "1", pom("org.example", "plain", "1"))
        result = asyncio.run(client.version(VersionKey(PackageKey(Ecosystem.MAVEN, "org.example:plain"), "1")))
        assert not result.attrs

    def test_listed_keys_round_trip(self, registry, client):
        """Every key from versions() is accepted by version() and returned unchanged."""
        listed = ["1.0.0", "1.0", "1.2.0"]
        for raw in listed:
            registry.add_pom("org.example", "lib", raw, pom("org.example", "lib", raw))
        registry.add_metadata("org.example", "lib", listed)

        async def _run():
            versions = await client.versions(LIB)
            return versions, [await client.version(v.version_key) for v in versions]

        versions, results = asyncio.run(_run())

        assert sorted(v.version_key.version for v in versions) == sorted(listed)
        for listed_version, result in zip(versions, results):
            assert result.version_key.name == listed_version.version_key.name == "org.example:lib"
            assert result.version_key.version == listed_version.version_key.version
            assert result.version_key.version_type is VersionType.CONCRETE

    def test_missing_version(self, client):
        """A version the registry does not have surfaces as not found."""
        with pytest.raises(ArtifactNotFoundError):
            asyncio.run(client.version(VersionKey(LIB, "9.9")))


class TestVersions:
    """versions()"""

    def test_sorted_ascending(self, registry, client):
        """Listed versions come back in Maven order as concrete keys."""
        _lib_registry(registry)

        result = asyncio.run(client.versions(LIB))

        assert [v.version for v in result] == ["1.0.0", "1.1.0", "1.2.0"]
        assert all(v.version_key.version_type is VersionType.CONCRETE for v in result)
        assert all(v.version_key.package_key == LIB for v in result)

    def test_qualifiers_sorted(self, registry, client):
        """Pre-releases sort before their release."""
        registry.add_metadata("org.example", "lib", ["1.0", "1.0-SNAPSHOT", "1.0-rc1", "0.9"])
        result = asyncio.run(client.versions(LIB))
        assert [v.version for v in result] == ["0.9", "1.0-rc1", "1.0-SNAPSHOT", "1.0"]


class TestRequirements:
    """requirements()"""

    def test_declared_range_passed_through(self, registry, client):
        """A range requirement is returned verbatim with its scope untouched."""
        _lib_registry(registry)

        result = asyncio.run(client.requirements(VersionKey(LIB, "1.2.0")))

        assert len(result) == 1
        req = result[0]
        assert req.version_key == VersionKey(UTIL, ">=1.0.0, <2.0.0", VersionType.REQUIREMENT)
        assert req.version_key.version == ">=1.0.0, <2.0.0"
        assert req.type == DependencyType()

    def test_edge_metadata(self, registry, client):
        """Scope, optional, type, classifier and exclusions reach the edge."""
        registry.add_pom("org.example", "lib", "1", pom(
            "org.example", "lib", "1",
            dependencies=[
                dep("org.example", "a", "1", scope="test", optional="true", type="test-jar",
                    classifier="tests", exclusions=[("org.bad", "x")]),
                dep("org.example", "b", "2"),
            ],
        ))

        first, second = asyncio.run(client.requirements(VersionKey(LIB, "1")))

        assert first.type == DependencyType(
            scope="test", optional=True, artifact_type="test-jar", classifier="tests", exclusions=("org.bad:x",)
        )
        assert second.version_key.name == "org.example:b"
        assert second.type.optional is False

    def test_parent_failure_fails_call(self, registry, client):
        """No partial result is returned when an ancestor is missing."""
        registry.add_pom("org.example", "lib", "1", pom(
            "org.example", "lib", "1", parent=("org.example", "gone", "1"),
            dependencies=[dep("org.example", "a", "1")],
        ))
        with pytest.raises(ArtifactNotFoundError):
            asyncio.run(client.requirements(VersionKey(LIB, "1")))


class TestMatchingVersions:
    """matching_versions()"""

    def test_range_filtering(self, registry, client):
        """Only listed versions inside the requirement are returned, ascending."""
        _lib_registry(registry)
        vk = VersionKey(UTIL, ">=1.0.0, <2.0.0", VersionType.REQUIREMENT)

        result = asyncio.run(client.matching_versions(vk))

        assert [v.version for v in result] == ["1.0.0", "1.5.0"]
        assert all(v.version_key.version_type is VersionType.CONCRETE for v in result)

    def test_maven_range(self, registry, client):
        """Maven bracket ranges are accepted."""
        _lib_registry(registry)
        vk = VersionKey(UTIL, "[1.5,)", VersionType.REQUIREMENT)
        assert [v.version for v in asyncio.run(client.matching_versions(vk))] == ["1.5.0", "2.0.0"]

    def test_invalid_requirement_before_network(self, registry, client):
        """A malformed requirement is rejected without fetching metadata."""
        with pytest.raises(MalformedInputError):
            asyncio.run(client.matching_versions(VersionKey(UTIL, "[1.0,", VersionType.REQUIREMENT)))
        assert registry.requests == []


class TestInputValidation:
    """Checks that run before any network call."""

    @pytest.mark.parametrize("operation", ["version", "requirements", "matching_versions"])
    def test_malformed_coordinate(self, registry, client, operation):
        """A name without group:artifact delimiter is malformed input."""
        vk = VersionKey(PackageKey(Ecosystem.MAVEN, "lib-without-colon"), "1.0")
        with pytest.raises(MalformedInputError):
            asyncio.run(getattr(client, operation)(vk))
        assert registry.requests == []

    def test_malformed_coordinate_versions(self, registry, client):
        """versions() validates the package name too."""
        with pytest.raises(MalformedInputError):
            asyncio.run(client.versions(PackageKey(Ecosystem.MAVEN, "lib-without-colon")))
        assert registry.requests == []

    @pytest.mark.parametrize("operation", ["version", "requirements", "matching_versions"])
    def test_ecosystem_mismatch(self, registry, client, operation):
        """Keys from other ecosystems are rejected."""
        vk = VersionKey(PackageKey(Ecosystem.NPM, "org.example:lib"), "1.0")
        with pytest.raises(EcosystemMismatchError):
            asyncio.run(getattr(client, operation)(vk))
        assert registry.requests == []

    def test_ecosystem_mismatch_versions(self, registry, client):
        """versions() rejects other ecosystems."""
        with pytest.raises(EcosystemMismatchError):
            asyncio.run(client.versions(PackageKey(Ecosystem.PYPI, "org.example:lib")))
        assert registry.requests == []


class TestConcurrencyAndConfig:
    """Shared clients, cancellation and per-instance configuration."""

    def test_concurrent_operations(self, registry, client):
        """Many concurrent calls on one client succeed together."""
        _lib_registry(registry)

        async def _run():
            return await asyncio.gather(
                client.versions(LIB),
                client.requirements(VersionKey(LIB, "1.2.0")),
                client.version(VersionKey(LIB, "1.2.0")),
                client.matching_versions(VersionKey(UTIL, "[1.0,2.0)", VersionType.REQUIREMENT)),
            )

        versions, requirements, version, matching = asyncio.run(_run())
        assert len(versions) == 3
        assert len(requirements) == 1
        assert version.attrs
        assert [v.version for v in matching] == ["1.0.0", "1.5.0"]

    def test_cancellation_propagates(self, registry, client):
        """Cancelling an operation raises CancelledError, not a data error."""
        registry.block(pom_url(REGISTRY, "org.example", "lib", "1"))

        async def _run():
            task = asyncio.ensure_future(client.requirements(VersionKey(LIB, "1")))
            while not registry.requests:
                await asyncio.sleep(0)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        asyncio.run(_run())

    def test_offline_and_online_clients_coexist(self, registry):
        """Offline mode is per client, not process-wide."""
        _lib_registry(registry)
        online = MavenRegistryClient(
            ResolverConfig(registry_url=REGISTRY), api=MavenRegistryAPIClient(REGISTRY, session=registry)
        )
        offline = MavenRegistryClient(
            ResolverConfig(registry_url=REGISTRY, offline=True),
            api=MavenRegistryAPIClient(REGISTRY, offline=True, session=registry),
        )

        assert len(asyncio.run(online.versions(LIB))) == 3
        with pytest.raises(OfflineModeError):
            asyncio.run(offline.versions(LIB))

    def test_config_builds_api_client(self):
        """The config drives the API client the resolution client creates."""
        client = MavenRegistryClient.for_registry("https://mirror.test/maven2/", offline="true")
        assert client.api.registry_url == "https://mirror.test/maven2"
        assert client.api.offline is True

    def test_context_manager_closes_owned_session(self):
        """Leaving the async context closes the HTTP session."""

        async def _run():
            async with MavenRegistryClient(ResolverConfig(registry_url=REGISTRY)) as client:
                session = client.api._session
            return session

        assert asyncio.run(_run()).closed

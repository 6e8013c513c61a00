"""Shared fixtures: a fake registry session and clients wired to it."""

import pytest

from fake_registry import REGISTRY, FakeRegistry
from registry.maven.client import MavenRegistryAPIClient
from resolution.client import MavenRegistryClient
from resolution.config import ResolverConfig


@pytest.fixture
def registry():
    return FakeRegistry()


@pytest.fixture
def api(registry):
    return MavenRegistryAPIClient(REGISTRY, session=registry)


@pytest.fixture
def client(api):
    return MavenRegistryClient(ResolverConfig(registry_url=REGISTRY), api=api)

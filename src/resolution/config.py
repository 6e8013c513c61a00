"""Resolver configuration.

Configuration is an explicit value handed to the client; nothing here reads
or writes process-wide toggles, so offline and online clients can coexist in
one process.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields, replace
from typing import Any, Mapping, Optional

import yaml

from constants import Constants
from common.errors import MalformedInputError

logger = logging.getLogger(__name__)

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


def _as_bool(name: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise MalformedInputError(f"{name} must be a boolean, got {value!r}")


def _as_int(name: str, value: Any, minimum: int = 1) -> int:
    try:
        result = int(value)
    except (TypeError, ValueError) as exc:
        raise MalformedInputError(f"{name} must be an integer, got {value!r}") from exc
    if result < minimum:
        raise MalformedInputError(f"{name} must be >= {minimum}, got {result}")
    return result


def _as_timeout(name: str, value: Any) -> Optional[float]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError) as exc:
        raise MalformedInputError(f"{name} must be a number of seconds, got {value!r}") from exc
    if result <= 0:
        raise MalformedInputError(f"{name} must be positive, got {result}")
    return result


@dataclass(frozen=True)
class ResolverConfig:
    """Settings for a Maven resolution client."""

    registry_url: str = Constants.REGISTRY_URL_MAVEN
    offline: bool = False
    max_parent_depth: int = Constants.MAX_PARENT_DEPTH
    request_timeout: Optional[float] = None
    max_connections: int = Constants.HTTP_MAX_CONNECTIONS
    user_agent: str = Constants.USER_AGENT

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], base: Optional["ResolverConfig"] = None) -> "ResolverConfig":
        """Build a config from a mapping; unknown keys are ignored with a warning.

        Raises:
            MalformedInputError: a value has the wrong type or range.
        """
        config = base or cls()
        known = {f.name for f in fields(cls)}
        changes = {}
        for name, value in data.items():
            if name not in known:
                logger.warning("Ignoring unknown resolver setting: %s", name)
                continue
            changes[name] = value

        if "registry_url" in changes:
            url = str(changes["registry_url"] or "").strip()
            if not url.startswith(("http://", "https://")):
                raise MalformedInputError(f"registry_url must be an http(s) URL, got {url!r}")
            changes["registry_url"] = url.rstrip("/")
        if "offline" in changes:
            changes["offline"] = _as_bool("offline", changes["offline"])
        if "max_parent_depth" in changes:
            changes["max_parent_depth"] = _as_int("max_parent_depth", changes["max_parent_depth"])
        if "request_timeout" in changes:
            changes["request_timeout"] = _as_timeout("request_timeout", changes["request_timeout"])
        if "max_connections" in changes:
            changes["max_connections"] = _as_int("max_connections", changes["max_connections"])
        if "user_agent" in changes:
            changes["user_agent"] = str(changes["user_agent"])
        return replace(config, **changes)

    @classmethod
    def from_yaml(cls, config_path: str, base: Optional["ResolverConfig"] = None) -> "ResolverConfig":
        """Load settings from a YAML file, reading its ``resolver:`` section when present.

        A missing file yields the base (or default) configuration.
        """
        config = base or cls()
        if not os.path.isfile(config_path):
            logger.warning("Config file not found: %s", config_path)
            return config
        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as exc:
            logger.error("Failed to load config %s: %s", config_path, exc)
            raise MalformedInputError(f"invalid config file {config_path}: {exc}") from exc
        if data is None:
            return config
        if not isinstance(data, dict):
            raise MalformedInputError(f"config file {config_path} must contain a mapping")
        section = data.get("resolver", data)
        if not isinstance(section, dict):
            raise MalformedInputError(f"'resolver' section of {config_path} must be a mapping")
        return cls.from_mapping(section, base=config)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None,
                 base: Optional["ResolverConfig"] = None) -> "ResolverConfig":
        """Apply ``DEPRESOLVE_*`` environment overrides on top of ``base``."""
        environ = os.environ if environ is None else environ
        prefix = Constants.ENV_CONFIG_PREFIX
        data = {}
        for f in fields(cls):
            env_name = prefix + f.name.upper()
            if env_name in environ:
                data[f.name] = environ[env_name]
        return cls.from_mapping(data, base=base)

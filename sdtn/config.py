"""Node configuration loaded from a TOML file with environment overrides."""

from __future__ import annotations

import os
import sys
import time
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from sdtn.routing import RoutingAlgorithmType

CONFIG_ENV_VAR = "DTN_CONFIG"
DEFAULT_CONFIG_PATH = "config/default.toml"
ENV_PREFIX = "DTN"

_U8_MAX = 0xFF
_U64_MAX = 2**64 - 1


class ConfigError(Exception):
    """Raised when the configuration cannot be read or is invalid."""


@dataclass
class BundleConfig:
    version: int
    lifetime: int


@dataclass
class EndpointsConfig:
    destination: str
    source: str
    report_to: str


@dataclass
class StorageConfig:
    path: str
    max_size: int


@dataclass
class RoutingConfig:
    algorithm: str


# For each section: the class it becomes and, per field, the integer upper
# bound (or None for a string field).
_SCHEMA: dict[str, tuple[type, dict[str, int | None]]] = {
    "bundle": (BundleConfig, {"version": _U8_MAX, "lifetime": _U64_MAX}),
    "endpoints": (EndpointsConfig, {"destination": None, "source": None, "report_to": None}),
    "storage": (StorageConfig, {"path": None, "max_size": _U64_MAX}),
    "routing": (RoutingConfig, {"algorithm": None}),
}


def _coerce(key: str, value: Any, limit: int | None) -> Any:
    if limit is None:
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, (str, int, float)):
            return str(value)
        raise ConfigError(f"{key}: expected a string, got {type(value).__name__}")
    if isinstance(value, bool):
        raise ConfigError(f"{key}: expected an integer, got a boolean")
    if isinstance(value, str):
        try:
            value = int(value.strip())
        except ValueError:
            raise ConfigError(f"{key}: invalid integer {value!r}") from None
    if not isinstance(value, int):
        raise ConfigError(f"{key}: expected an integer, got {type(value).__name__}")
    if not 0 <= value <= limit:
        raise ConfigError(f"{key}: {value} is out of range 0..{limit}")
    return value


def _apply_environment(raw: dict[str, Any], environ: Mapping[str, str]) -> None:
    for section, (_, fields) in _SCHEMA.items():
        for name in fields:
            var = f"{ENV_PREFIX}_{section}_{name}".upper()
            if var in environ:
                section_data = raw.setdefault(section, {})
                if isinstance(section_data, dict):
                    section_data[name] = environ[var]


@dataclass
class Config:
    """The full node configuration."""

    bundle: BundleConfig
    endpoints: EndpointsConfig
    storage: StorageConfig
    routing: RoutingConfig

    @classmethod
    def _from_mapping(cls, raw: Mapping[str, Any]) -> Config:
        sections: dict[str, Any] = {}
        for section, (section_cls, fields) in _SCHEMA.items():
            data = raw.get(section)
            if data is None:
                raise ConfigError(f"missing field `{section}`")
            if not isinstance(data, Mapping):
                raise ConfigError(f"{section}: expected a table")
            values = {}
            for name, limit in fields.items():
                if name not in data:
                    raise ConfigError(f"missing field `{section}.{name}`")
                values[name] = _coerce(f"{section}.{name}", data[name], limit)
            sections[section] = section_cls(**values)
        return cls(**sections)

    @classmethod
    def load(cls) -> Config:
        """Load from ``$DTN_CONFIG`` (default ``config/default.toml``), then ``DTN_*`` overrides."""
        path = Path(os.environ.get(CONFIG_ENV_VAR, DEFAULT_CONFIG_PATH))
        try:
            with path.open("rb") as handle:
                raw = tomllib.load(handle)
        except OSError as exc:
            raise ConfigError(f"configuration file {path} could not be read: {exc}") from exc
        except tomllib.TOMLDecodeError as exc:
            raise ConfigError(f"configuration file {path} is not valid TOML: {exc}") from exc
        _apply_environment(raw, os.environ)
        return cls._from_mapping(raw)

    def get_routing_algorithm_type(self) -> RoutingAlgorithmType:
        """Map the configured algorithm name to a type, falling back to epidemic."""
        name = self.routing.algorithm.lower()
        try:
            return RoutingAlgorithmType(name)
        except ValueError:
            print(
                f"Warning: Unknown routing algorithm '{self.routing.algorithm}', "
                "falling back to epidemic",
                file=sys.stderr,
            )
            return RoutingAlgorithmType.EPIDEMIC


def generate_creation_timestamp() -> int:
    """Return the current Unix time in whole seconds."""
    return max(int(time.time()), 0)
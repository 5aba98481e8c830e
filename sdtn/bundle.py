"""Bundles and their primary block, with CBOR and dict serialisation."""

from __future__ import annotations

import time
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import cbor2

from sdtn.consts import DEFAULT_LIFETIME, DEFAULT_REPORT_TO, DEFAULT_VERSION


def _now() -> int:
    return int(time.time())


def _field(data: Mapping[str, Any], key: str, kind: type) -> Any:
    try:
        value = data[key]
    except KeyError:
        raise ValueError(f"missing field {key!r}") from None
    if not isinstance(value, kind):
        raise ValueError(f"field {key!r} must be {kind.__name__}, got {type(value).__name__}")
    return value


@dataclass
class PrimaryBlock:
    """The primary block carrying a bundle's addressing and lifetime."""

    version: int
    destination: str
    source: str
    report_to: str
    creation_timestamp: int
    lifetime: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "destination": self.destination,
            "source": self.source,
            "report_to": self.report_to,
            "creation_timestamp": self.creation_timestamp,
            "lifetime": self.lifetime,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> PrimaryBlock:
        if not isinstance(data, Mapping):
            raise ValueError("primary block must be a mapping")
        return cls(
            version=_field(data, "version", int),
            destination=_field(data, "destination", str),
            source=_field(data, "source", str),
            report_to=_field(data, "report_to", str),
            creation_timestamp=_field(data, "creation_timestamp", int),
            lifetime=_field(data, "lifetime", int),
        )


@dataclass
class Bundle:
    """A bundle: a primary block plus an opaque payload."""

    primary: PrimaryBlock
    payload: bytes = b""

    @classmethod
    def create(cls, source: str, destination: str, payload: bytes) -> Bundle:
        """Build a bundle with default version, report-to and lifetime, stamped now."""
        return cls(
            primary=PrimaryBlock(
                version=DEFAULT_VERSION,
                destination=destination,
                source=source,
                report_to=DEFAULT_REPORT_TO,
                creation_timestamp=_now(),
                lifetime=DEFAULT_LIFETIME,
            ),
            payload=bytes(payload),
        )

    def is_expired(self) -> bool:
        """Return True once the current time is past creation time plus lifetime."""
        return _now() > self.primary.creation_timestamp + self.primary.lifetime

    def to_dict(self) -> dict[str, Any]:
        """Return a plain structure; the payload is a list of byte values."""
        return {"primary": self.primary.to_dict(), "payload": list(self.payload)}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Bundle:
        """Build a bundle from the structure produced by :meth:`to_dict`."""
        if not isinstance(data, Mapping):
            raise ValueError("bundle must be a mapping")
        try:
            primary_data = data["primary"]
            raw_payload = data["payload"]
        except KeyError as exc:
            raise ValueError(f"missing field {exc.args[0]!r}") from None
        if isinstance(raw_payload, (bytes, bytearray)):
            payload = bytes(raw_payload)
        elif isinstance(raw_payload, list):
            try:
                payload = bytes(raw_payload)
            except (TypeError, ValueError) as exc:
                raise ValueError(f"invalid payload: {exc}") from None
        else:
            raise ValueError("payload must be bytes or a list of byte values")
        return cls(primary=PrimaryBlock.from_dict(primary_data), payload=payload)

    def to_cbor(self) -> bytes:
        """Encode the bundle as CBOR."""
        return cbor2.dumps(self.to_dict())

    @classmethod
    def from_cbor(cls, data: bytes) -> Bundle:
        """Decode a bundle from CBOR, raising ValueError on malformed input."""
        try:
            decoded = cbor2.loads(data)
        except Exception as exc:  # cbor2 raises a variety of decode errors
            raise ValueError(f"invalid CBOR bundle: {exc}") from exc
        return cls.from_dict(decoded)
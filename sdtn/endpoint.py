"""Endpoint identifiers as used by the bundle protocol."""

from __future__ import annotations

from dataclasses import dataclass

DTN_SCHEME_PREFIX = "dtn://"
NULL_ENDPOINT = "dtn:none"


@dataclass(frozen=True, slots=True)
class EndpointId:
    """An endpoint identifier (EID); hashable and comparable by value."""

    value: str

    def __post_init__(self) -> None:
        if not isinstance(self.value, str):
            raise TypeError(f"endpoint id must be a str, not {type(self.value).__name__}")

    def __str__(self) -> str:
        return self.value

    def is_dtn_scheme(self) -> bool:
        """Return True if the identifier uses the ``dtn://`` scheme."""
        return self.value.startswith(DTN_SCHEME_PREFIX)

    def is_null(self) -> bool:
        """Return True for the null endpoint (``dtn:none`` or empty)."""
        return self.value == NULL_ENDPOINT or not self.value
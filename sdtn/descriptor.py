"""Per-bundle forwarding state."""

from __future__ import annotations

import time
from dataclasses import dataclass, field

from sdtn.bundle import Bundle
from sdtn.endpoint import EndpointId


@dataclass
class BundleDescriptor:
    """Tracks which endpoints a bundle was sent to and how often forwarding was tried."""

    bundle: Bundle
    already_sent: set[EndpointId] = field(default_factory=set)
    forwarding_attempts: int = 0
    created_at: int = field(default_factory=lambda: int(time.time()))

    def mark_sent(self, eid: EndpointId) -> None:
        """Record that the bundle has been sent to ``eid``."""
        self.already_sent.add(eid)

    def has_been_sent_to(self, eid: EndpointId) -> bool:
        """Return True if the bundle was already sent to ``eid``."""
        return eid in self.already_sent

    def increment_forwarding_attempts(self) -> None:
        self.forwarding_attempts += 1

    def is_ready_for_forwarding(self, max_attempts: int) -> bool:
        """Return True if the bundle is unexpired and under the attempt limit."""
        return not self.bundle.is_expired() and self.forwarding_attempts < max_attempts

    def bundle_id(self) -> str:
        """Return an identifier made of the source and creation timestamp."""
        primary = self.bundle.primary
        return f"{primary.source}-{primary.creation_timestamp}"
"""Delay Tolerant Networking node: bundles, file storage, epidemic routing and TCP transport."""

__version__ = "0.1.3"
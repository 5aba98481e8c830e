"""File-backed bundle storage keyed by content hashes."""

from __future__ import annotations

import hashlib
import os
from pathlib import Path

from sdtn.bundle import Bundle

BUNDLE_SUFFIX = ".cbor"


class BundleNotFoundError(FileNotFoundError):
    """Raised when no stored bundle matches a (partial) identifier."""

    def __init__(self, partial_id: str) -> None:
        super().__init__(f"Bundle ID not found: {partial_id}")
        self.partial_id = partial_id


class BundleStore:
    """Stores bundles as CBOR files in one directory, named by a SHA-256 id."""

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.directory = Path(path)
        self.directory.mkdir(parents=True, exist_ok=True)

    def __repr__(self) -> str:
        return f"BundleStore({str(self.directory)!r})"

    def path_for(self, bundle: Bundle) -> Path:
        """Return the file path a bundle is stored under."""
        primary = bundle.primary
        payload_hash = hashlib.sha256(bundle.payload).hexdigest()
        id_str = (
            f"{primary.version}:{primary.source}:{primary.destination}:"
            f"{primary.creation_timestamp}:{payload_hash}"
        )
        bundle_id = hashlib.sha256(id_str.encode("utf-8")).hexdigest()
        return self.directory / f"{bundle_id}{BUNDLE_SUFFIX}"

    def insert(self, bundle: Bundle) -> str:
        """Write a bundle to disk and return its identifier."""
        path = self.path_for(bundle)
        path.write_bytes(bundle.to_cbor())
        print(f"Bundle saved to {path} (ID: {path.stem})")
        return path.stem

    def load(self, bundle_id: str) -> Bundle:
        """Load a bundle by its full identifier.

        Raises FileNotFoundError if it is missing and ValueError if it is corrupt.
        """
        path = self.directory / f"{bundle_id}{BUNDLE_SUFFIX}"
        return Bundle.from_cbor(path.read_bytes())

    def load_by_partial_id(self, partial: str) -> Bundle:
        """Load the first bundle whose identifier starts with ``partial``."""
        full_id = self.find_by_partial_id(partial)
        if full_id is None:
            raise BundleNotFoundError(partial)
        return self.load(full_id)

    def find_by_partial_id(self, partial: str) -> str | None:
        """Return the first identifier starting with ``partial``, or None."""
        try:
            ids = self.list_ids()
        except OSError:
            return None
        return next((bundle_id for bundle_id in ids if bundle_id.startswith(partial)), None)

    def list_ids(self) -> list[str]:
        """Return the identifiers of all stored bundles, sorted."""
        return sorted(
            entry.stem
            for entry in self.directory.iterdir()
            if entry.suffix == BUNDLE_SUFFIX
        )

    def dispatch_one(self, bundle: Bundle, dispatched_dir: str | os.PathLike[str]) -> Path:
        """Move a stored bundle into ``dispatched_dir`` and return its new path."""
        source = self.path_for(bundle)
        target_dir = Path(dispatched_dir)
        target_dir.mkdir(parents=True, exist_ok=True)
        target = target_dir / source.name
        source.replace(target)
        return target

    def cleanup_expired(self) -> list[str]:
        """Delete expired bundles and return the identifiers removed."""
        ids = self.list_ids()
        print(f"🔍 Found {len(ids)} bundle IDs: {ids}")
        if not ids:
            print("📦 No bundles found")
            return []

        removed: list[str] = []
        for bundle_id in ids:
            try:
                bundle = self.load_by_partial_id(bundle_id)
            except FileNotFoundError:
                continue
            if not bundle.is_expired():
                continue
            path = self.directory / f"{bundle_id}{BUNDLE_SUFFIX}"
            print(f"🔍 Attempting to remove: {path}")
            try:
                path.unlink()
            except FileNotFoundError as exc:
                print(f"❌ Failed to remove: {path} - {exc!r}")
                continue
            except OSError as exc:
                print(f"❌ Failed to remove: {path} - {exc!r}")
                raise
            print(f"🗑️  Removed expired bundle: {bundle_id}")
            removed.append(bundle_id)
        return removed
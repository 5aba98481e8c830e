"""High-level node API: bundle storage, routing table and TCP daemons."""

from __future__ import annotations

import asyncio
import os
import sys
import threading
from dataclasses import dataclass

from sdtn.bundle import Bundle, PrimaryBlock
from sdtn.config import Config, ConfigError, generate_creation_timestamp
from sdtn.descriptor import BundleDescriptor
from sdtn.endpoint import EndpointId
from sdtn.manager import ClaManager
from sdtn.routing import (
    ConvergenceSender,
    RouteEntry,
    RoutingConfig,
    RoutingTable,
    TcpSender,
)
from sdtn.store import BundleStore
from sdtn.tcp import TcpClaDialer, TcpClaListener

BUNDLE_PATH_ENV_VAR = "SDTN_BUNDLE_PATH"
DEFAULT_STORE_PATH = "./bundles"
DIALER_GRACE_SECONDS = 2.0

_DEMO_PEERS = ("dtn://peer1", "dtn://peer2")


@dataclass(frozen=True)
class SingleBundleStatus:
    """Status of one bundle, looked up by (partial) identifier."""

    id: str
    bundle: Bundle


@dataclass(frozen=True)
class StatusSummary:
    """Counts of active and expired bundles in the store."""

    active: int
    expired: int
    total: int


BundleStatus = SingleBundleStatus | StatusSummary


def _default_store_path() -> str:
    """Resolve the store path: environment, then configuration, then the default."""
    env_path = os.environ.get(BUNDLE_PATH_ENV_VAR)
    if env_path is not None:
        return env_path
    try:
        return Config.load().storage.path
    except ConfigError:
        return DEFAULT_STORE_PATH


class DtnNode:
    """A DTN node managing stored bundles and a routing table.

    With no ``store_path`` the path comes from ``$SDTN_BUNDLE_PATH``, the
    configuration file, or ``./bundles``, in that order. With no
    ``routing_config`` the algorithm is read from the configuration file,
    which must then be loadable.
    """

    def __init__(
        self,
        store_path: str | os.PathLike[str] | None = None,
        routing_config: RoutingConfig | None = None,
    ) -> None:
        if store_path is None:
            store_path = _default_store_path()
        self._store = BundleStore(store_path)
        self.store_path = os.fspath(store_path)
        if routing_config is None:
            config = Config.load()
            routing_config = RoutingConfig(config.get_routing_algorithm_type())
        self._algorithm = routing_config.create_algorithm()
        self._table = RoutingTable()
        self._lock = threading.RLock()

    def __repr__(self) -> str:
        return f"DtnNode(store_path={self.store_path!r})"

    @classmethod
    def default(cls) -> DtnNode:
        """Create a node with the default store path resolution."""
        return cls()

    @classmethod
    def with_config(cls, store_path: str | os.PathLike[str] | None) -> DtnNode:
        """Create a node at ``store_path``, or at ``./bundles`` if it is None."""
        return cls(DEFAULT_STORE_PATH if store_path is None else store_path)

    def add_route(self, entry: RouteEntry) -> None:
        """Add a route to the routing table."""
        with self._lock:
            self._table.add_route(entry)

    def all_routes(self) -> list[RouteEntry]:
        """Return all active routes."""
        with self._lock:
            return self._table.all_routes()

    def find_best_route(self, destination: EndpointId) -> RouteEntry | None:
        """Return the cheapest active route to ``destination``, or None."""
        with self._lock:
            return self._table.find_best_route(destination)

    def insert_bundle(self, message: str) -> str:
        """Store a new bundle carrying ``message`` and return its identifier.

        Addressing, version and lifetime come from the configuration file.
        """
        config = Config.load()
        bundle = Bundle(
            primary=PrimaryBlock(
                version=config.bundle.version,
                destination=config.endpoints.destination,
                source=config.endpoints.source,
                report_to=config.endpoints.report_to,
                creation_timestamp=generate_creation_timestamp(),
                lifetime=config.bundle.lifetime,
            ),
            payload=message.encode("utf-8"),
        )
        bundle_id = self._store.insert(bundle)
        with self._lock:
            self._algorithm.notify_new_bundle(BundleDescriptor(bundle))
        return bundle_id

    def select_peers_for_forwarding(self, bundle: Bundle) -> list[ConvergenceSender]:
        """Choose among a fixed set of demonstration TCP peers."""
        descriptor = BundleDescriptor(bundle)
        senders = [TcpSender(EndpointId(peer)) for peer in _DEMO_PEERS]
        with self._lock:
            selected = self._algorithm.select_peers_for_forwarding(descriptor, senders)
        return [TcpSender(sender.peer_endpoint_id()) for sender in selected]

    def select_routes_for_forwarding(self, bundle: Bundle) -> list[RouteEntry]:
        """Choose routes from the routing table for ``bundle``."""
        descriptor = BundleDescriptor(bundle)
        with self._lock:
            return self._algorithm.select_routes_for_forwarding(descriptor, self._table)

    def list_bundles(self) -> list[str]:
        """Return the identifiers of all stored bundles."""
        return self._store.list_ids()

    def show_bundle(self, partial_id: str) -> Bundle:
        """Load the bundle whose identifier starts with ``partial_id``."""
        return self._store.load_by_partial_id(partial_id)

    def bundle_status(self, partial_id: str | None = None) -> BundleStatus:
        """Return one bundle's status, or a summary of all bundles if no id is given."""
        if partial_id is not None:
            bundle = self._store.load_by_partial_id(partial_id)
            return SingleBundleStatus(id=partial_id, bundle=bundle)

        active = expired = 0
        for bundle_id in self._store.list_ids():
            try:
                bundle = self._store.load_by_partial_id(bundle_id)
            except (OSError, ValueError):
                continue
            if bundle.is_expired():
                expired += 1
            else:
                active += 1
        return StatusSummary(active=active, expired=expired, total=active + expired)

    def cleanup_expired(self) -> list[str]:
        """Delete expired bundles and return the identifiers removed."""
        return self._store.cleanup_expired()

    async def start_tcp_listener(self, bind_addr: str) -> None:
        """Listen for bundles on ``bind_addr`` and store them; runs until cancelled."""
        store_path = self.store_path

        def store_received(bundle: Bundle) -> None:
            try:
                BundleStore(store_path).insert(bundle)
            except (OSError, ValueError) as exc:
                print(f"❌ Failed to insert bundle: {exc}", file=sys.stderr)

        listener = TcpClaListener(bind_addr=bind_addr, receive_callback=store_received)
        manager = ClaManager(lambda bundle: print(f"📥 Received: {bundle!r}"))
        await manager.register(listener)
        await asyncio.get_running_loop().create_future()

    async def start_tcp_dialer(self, target_addr: str) -> None:
        """Push stored bundles to ``target_addr``, giving the transfer time to finish."""
        dialer = TcpClaDialer(target_addr=target_addr)
        manager = ClaManager(
            lambda bundle: print(f"📤 Should not receive here (Dialer): {bundle!r}")
        )
        await manager.register(dialer)
        await asyncio.sleep(DIALER_GRACE_SECONDS)


def insert_bundle_quick(message: str) -> str:
    """Insert a bundle using a node with default settings."""
    return DtnNode().insert_bundle(message)


def list_bundles_quick() -> list[str]:
    """List bundles using a node with default settings."""
    return DtnNode().list_bundles()


def show_bundle_quick(partial_id: str) -> Bundle:
    """Load a bundle by partial identifier using a node with default settings."""
    return DtnNode().show_bundle(partial_id)
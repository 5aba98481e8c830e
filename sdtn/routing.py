"""Routing tables and forwarding-selection algorithms."""

from __future__ import annotations

import sys
from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum
from operator import attrgetter

from sdtn.descriptor import BundleDescriptor
from sdtn.endpoint import EndpointId


class ConvergenceSender(ABC):
    """Something that can send bundles to a single peer."""

    @abstractmethod
    def peer_endpoint_id(self) -> EndpointId:
        """Return the endpoint identifier of the peer this sender reaches."""


@dataclass(frozen=True)
class TcpSender(ConvergenceSender):
    """A sender reaching its peer over TCP."""

    peer_id: EndpointId

    def peer_endpoint_id(self) -> EndpointId:
        return self.peer_id


@dataclass(frozen=True)
class RouteEntry:
    """A route to a destination through a next hop over a given CLA."""

    destination: EndpointId
    next_hop: EndpointId
    cla_type: str
    cost: int
    is_active: bool = True


class RoutingTable:
    """Maps destinations to the routes that reach them."""

    def __init__(self) -> None:
        self._routes: dict[EndpointId, list[RouteEntry]] = {}

    def __repr__(self) -> str:
        return f"RoutingTable({self._routes!r})"

    def add_route(self, entry: RouteEntry) -> None:
        """Add a route; several routes may share a destination."""
        self._routes.setdefault(entry.destination, []).append(entry)

    def routes_for_destination(self, destination: EndpointId) -> list[RouteEntry]:
        """Return the active routes to ``destination``."""
        return [route for route in self._routes.get(destination, ()) if route.is_active]

    def all_routes(self) -> list[RouteEntry]:
        """Return every active route in the table."""
        return [
            route
            for routes in self._routes.values()
            for route in routes
            if route.is_active
        ]

    def find_best_route(self, destination: EndpointId) -> RouteEntry | None:
        """Return the cheapest active route to ``destination``, or None."""
        return min(
            self.routes_for_destination(destination),
            key=attrgetter("cost"),
            default=None,
        )


class RoutingAlgorithm(ABC):
    """Strategy deciding where a bundle is forwarded."""

    @abstractmethod
    def notify_new_bundle(self, descriptor: BundleDescriptor) -> None:
        """Tell the algorithm that a new bundle has been stored."""

    @abstractmethod
    def select_peers_for_forwarding(
        self,
        descriptor: BundleDescriptor,
        senders: Sequence[ConvergenceSender],
    ) -> list[ConvergenceSender]:
        """Choose among ``senders`` those the bundle should go to."""

    @abstractmethod
    def select_routes_for_forwarding(
        self,
        descriptor: BundleDescriptor,
        table: RoutingTable,
    ) -> list[RouteEntry]:
        """Choose routes from ``table`` the bundle should be forwarded along."""


class RoutingAlgorithmType(Enum):
    """The routing algorithms that can be configured."""

    EPIDEMIC = "epidemic"
    PROPHET = "prophet"


class EpidemicRouting(RoutingAlgorithm):
    """Forward every bundle to every reachable peer it has not yet been sent to."""

    def __repr__(self) -> str:
        return "EpidemicRouting()"

    def notify_new_bundle(self, descriptor: BundleDescriptor) -> None:
        # Epidemic routing keeps no per-bundle state.
        return None

    def select_peers_for_forwarding(
        self,
        descriptor: BundleDescriptor,
        senders: Iterable[ConvergenceSender],
    ) -> list[ConvergenceSender]:
        seen: set[EndpointId] = set()
        selected: list[ConvergenceSender] = []
        for sender in senders:
            eid = sender.peer_endpoint_id()
            if descriptor.has_been_sent_to(eid) or eid in seen:
                continue
            seen.add(eid)
            selected.append(sender)
        return selected

    def select_routes_for_forwarding(
        self,
        descriptor: BundleDescriptor,
        table: RoutingTable,
    ) -> list[RouteEntry]:
        seen: set[EndpointId] = set()
        selected: list[RouteEntry] = []
        for route in table.all_routes():
            if descriptor.has_been_sent_to(route.next_hop) or route.next_hop in seen:
                continue
            seen.add(route.next_hop)
            selected.append(route)
        return selected


@dataclass
class RoutingConfig:
    """Selects which routing algorithm to build."""

    algorithm_type: RoutingAlgorithmType

    def create_algorithm(self) -> RoutingAlgorithm:
        """Build the configured algorithm; PRoPHET currently falls back to epidemic."""
        if self.algorithm_type is RoutingAlgorithmType.PROPHET:
            print(
                "Warning: Prophet routing not yet implemented, falling back to epidemic",
                file=sys.stderr,
            )
        return EpidemicRouting()
"""Command-line interface for managing bundles, routes and TCP daemons."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections.abc import Callable, Sequence

from sdtn.config import Config, ConfigError
from sdtn.endpoint import EndpointId
from sdtn.node import DtnNode, StatusSummary
from sdtn.routing import RouteEntry

_U32_MAX = 0xFFFFFFFF

Handler = Callable[[DtnNode, argparse.Namespace], None]


def _u32(text: str) -> int:
    try:
        value = int(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer: {text!r}") from None
    if not 0 <= value <= _U32_MAX:
        raise argparse.ArgumentTypeError(f"{value} is out of range 0..{_U32_MAX}")
    return value


def _text(payload: bytes) -> str:
    return payload.decode("utf-8", errors="replace")


def _handle_insert(node: DtnNode, args: argparse.Namespace) -> None:
    print(f"📦 Inserting bundle: {args.message}")
    node.insert_bundle(args.message)
    print("✅ Bundle inserted successfully!")


def _handle_list(node: DtnNode, args: argparse.Namespace) -> None:
    bundles = node.list_bundles()
    if not bundles:
        print("📋 No bundles found")
        return
    print(f"📋 Found {len(bundles)} bundles:")
    for bundle_id in bundles:
        print(f"  {bundle_id}")


def _handle_show(node: DtnNode, args: argparse.Namespace) -> None:
    bundle = node.show_bundle(args.id)
    primary = bundle.primary
    print("📄 Bundle Details:")
    print(f"  Source: {primary.source}")
    print(f"  Destination: {primary.destination}")
    print(f"  Creation Time: {primary.creation_timestamp}")
    print(f"  Lifetime: {primary.lifetime} seconds")
    print(f"  Expired: {str(bundle.is_expired()).lower()}")
    print(f"  Message: {_text(bundle.payload)}")


def _handle_status(node: DtnNode, args: argparse.Namespace) -> None:
    if args.id is not None:
        bundle = node.show_bundle(args.id)
        primary = bundle.primary
        state = "⏰ EXPIRED" if bundle.is_expired() else "✅ ACTIVE"
        print(f"📄 Bundle Status: {args.id}")
        print(f"  Source: {primary.source}")
        print(f"  Destination: {primary.destination}")
        print(f"  Creation Time: {primary.creation_timestamp}")
        print(f"  Lifetime: {primary.lifetime} seconds")
        print(f"  Status: {state}")
        print(f"  Message: {_text(bundle.payload)}")
        return

    summary = node.bundle_status()
    assert isinstance(summary, StatusSummary)
    print("📊 Bundle Status Summary:")
    print(f"  ✅ Active: {summary.active}")
    print(f"  ⏰ Expired: {summary.expired}")
    print(f"  📦 Total: {summary.total}")


def _handle_cleanup(node: DtnNode, args: argparse.Namespace) -> None:
    node.cleanup_expired()


def _handle_daemon_listener(node: DtnNode, args: argparse.Namespace) -> None:
    asyncio.run(node.start_tcp_listener(args.addr))


def _handle_daemon_dialer(node: DtnNode, args: argparse.Namespace) -> None:
    asyncio.run(node.start_tcp_dialer(args.addr))


def _handle_route_test(node: DtnNode, args: argparse.Namespace) -> None:
    bundle = node.show_bundle(args.id)
    print(f"🧭 Testing routing for bundle: {args.id}")
    print(f"  Source: {bundle.primary.source}")
    print(f"  Destination: {bundle.primary.destination}")
    peers = node.select_peers_for_forwarding(bundle)
    print(f"  Selected {len(peers)} peers for forwarding:")
    for number, peer in enumerate(peers, start=1):
        print(f"    {number}. {peer.peer_endpoint_id()}")


def _handle_route_show(node: DtnNode, args: argparse.Namespace) -> None:
    print("🧭 Current routing algorithm:")
    config = Config.load()
    print(f"  Algorithm: {config.routing.algorithm}")


def _handle_route_set(node: DtnNode, args: argparse.Namespace) -> None:
    print(f"🧭 Setting routing algorithm to: {args.algorithm}")
    print("⚠️  This feature requires restarting the application")
    print("   Update config/default.toml or set DTN_ROUTING_ALGORITHM environment variable")


def _handle_route_table(node: DtnNode, args: argparse.Namespace) -> None:
    print("🧭 Routing Table:")
    routes = node.all_routes()
    if not routes:
        print("  No routes configured")
        return
    for number, route in enumerate(routes, start=1):
        print(
            f"  {number}. {route.destination} -> {route.next_hop} via {route.next_hop} "
            f"(cost: {route.cost}, cla: {route.cla_type}, "
            f"active: {str(route.is_active).lower()})"
        )


def _handle_route_add(node: DtnNode, args: argparse.Namespace) -> None:
    print("🧭 Adding route to routing table:")
    print(f"  Destination: {args.destination}")
    print(f"  Next hop: {args.next_hop}")
    print(f"  CLA type: {args.cla_type}")
    print(f"  Cost: {args.cost}")
    node.add_route(
        RouteEntry(
            destination=EndpointId(args.destination),
            next_hop=EndpointId(args.next_hop),
            cla_type=args.cla_type,
            cost=args.cost,
            is_active=True,
        )
    )
    print("✅ Route added successfully!")


def _handle_route_test_table(node: DtnNode, args: argparse.Namespace) -> None:
    bundle = node.show_bundle(args.id)
    print(f"🧭 Testing routing table for bundle: {args.id}")
    print(f"  Source: {bundle.primary.source}")
    print(f"  Destination: {bundle.primary.destination}")

    routes = node.select_routes_for_forwarding(bundle)
    print(f"  Selected {len(routes)} routes for forwarding:")
    for number, route in enumerate(routes, start=1):
        print(
            f"    {number}. {route.next_hop} via {route.next_hop} "
            f"(cost: {route.cost}, cla: {route.cla_type})"
        )

    destination = EndpointId(bundle.primary.destination)
    best = node.find_best_route(destination)
    if best is None:
        print(f"  No route found to {destination}")
    else:
        print(
            f"  Best route to {destination}: {best.next_hop} via {best.next_hop} "
            f"(cost: {best.cost}, cla: {best.cla_type})"
        )


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for all commands."""
    parser = argparse.ArgumentParser(prog="sdtn", description="Delay tolerant networking node")
    commands = parser.add_subparsers(dest="command", required=True)

    insert = commands.add_parser("insert", help="store a new bundle")
    insert.add_argument("-m", "--message", required=True)
    insert.set_defaults(handler=_handle_insert)

    commands.add_parser("list", help="list stored bundles").set_defaults(handler=_handle_list)

    show = commands.add_parser("show", help="show a bundle")
    show.add_argument("-i", "--id", required=True)
    show.set_defaults(handler=_handle_show)

    status = commands.add_parser("status", help="show bundle status")
    status.add_argument("-i", "--id", default=None, help="show detailed status including expiration")
    status.set_defaults(handler=_handle_status)

    daemon = commands.add_parser("daemon", help="run a TCP daemon")
    daemon_commands = daemon.add_subparsers(dest="daemon_command", required=True)
    listener = daemon_commands.add_parser("listener", help="receive bundles")
    listener.add_argument("--addr", required=True)
    listener.set_defaults(handler=_handle_daemon_listener)
    dialer = daemon_commands.add_parser("dialer", help="send stored bundles")
    dialer.add_argument("--addr", required=True)
    dialer.set_defaults(handler=_handle_daemon_dialer)

    commands.add_parser("cleanup", help="remove expired bundles").set_defaults(
        handler=_handle_cleanup
    )

    route = commands.add_parser("route", help="routing commands")
    route_commands = route.add_subparsers(dest="route_command", required=True)

    route_test = route_commands.add_parser(
        "test", help="test routing algorithm with a specific bundle"
    )
    route_test.add_argument("-i", "--id", required=True)
    route_test.set_defaults(handler=_handle_route_test)

    route_commands.add_parser("show", help="show current routing algorithm").set_defaults(
        handler=_handle_route_show
    )

    route_set = route_commands.add_parser("set", help="set routing algorithm")
    route_set.add_argument("-a", "--algorithm", required=True)
    route_set.set_defaults(handler=_handle_route_set)

    route_commands.add_parser("table", help="show routing table").set_defaults(
        handler=_handle_route_table
    )

    route_add = route_commands.add_parser("add", help="add route to routing table")
    route_add.add_argument("--destination", required=True)
    route_add.add_argument("--next-hop", required=True)
    route_add.add_argument("--cla-type", required=True)
    route_add.add_argument("--cost", type=_u32, default=10)
    route_add.set_defaults(handler=_handle_route_add)

    route_test_table = route_commands.add_parser(
        "test-table", help="test routing with routing table"
    )
    route_test_table.add_argument("-i", "--id", required=True)
    route_test_table.set_defaults(handler=_handle_route_test_table)

    return parser


def execute_command(node: DtnNode, args: argparse.Namespace) -> None:
    """Run the command described by parsed ``args`` against ``node``."""
    handler: Handler = args.handler
    handler(node, args)


def main(argv: Sequence[str] | None = None) -> int:
    """Parse arguments, create a node and run the command; return the exit status."""
    logging.basicConfig(level=logging.WARNING)
    args = build_parser().parse_args(argv)
    try:
        node = DtnNode()
        execute_command(node, args)
    except KeyboardInterrupt:
        return 130
    except (OSError, ValueError, ConfigError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
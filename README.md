# sdtn

A small Delay Tolerant Networking (DTN) node. It builds BPv7-style bundles,
keeps them in a directory of CBOR files, picks next hops with epidemic
routing, and moves bundles between nodes over a simple length-prefixed TCP
convergence layer.

## Installation

```
pip install .
```

For running the test suite:

```
pip install ".[test]"
pytest
```

## Configuration

A node needs a TOML configuration file. Its path comes from the `DTN_CONFIG`
environment variable and defaults to `config/default.toml`. Every key below
must be present:

```toml
[bundle]
version = 7
lifetime = 3600

[endpoints]
destination = "dtn://dest"
source = "dtn://src"
report_to = "dtn://report"

[storage]
path = "./bundles"
max_size = 1024

[routing]
algorithm = "epidemic"
```

After the file is read, any key can be overridden by an environment variable
named `DTN_<SECTION>_<KEY>`, for example `DTN_ROUTING_ALGORITHM=prophet` or
`DTN_BUNDLE_LIFETIME=600`. A missing file, invalid TOML, a missing key or a
value of the wrong kind raises `sdtn.config.ConfigError`.

New bundles take their version, lifetime and endpoints from this file.
The bundle store directory is chosen in this order: the `SDTN_BUNDLE_PATH`
environment variable, then `storage.path` from the configuration file, then
`./bundles`.

The routing algorithm is `epidemic` or `prophet` (case does not matter).
`prophet` prints a warning and behaves like `epidemic`; unknown names fall
back to `epidemic` with a warning.

## Command line

Every command creates a node first, so the configuration file must be
readable; otherwise the command prints `Error: ...` and exits with status 1.

```
sdtn insert --message "Hello from DTN"
sdtn list
sdtn show --id 1a2b3c4d
sdtn status
sdtn status --id 1a2b3c4d
sdtn cleanup
```

Bundle IDs are SHA-256 based file names in the store (without the `.cbor`
suffix); a prefix of an ID, such as its first eight characters, selects the
first stored bundle whose ID starts with it. `cleanup` deletes bundles whose
creation time plus lifetime lies in the past.

Routing:

```
sdtn route show
sdtn route set --algorithm prophet
sdtn route add --destination dtn://dest --next-hop dtn://router1 --cla-type tcp --cost 10
sdtn route table
sdtn route test --id 1a2b3c4d
sdtn route test-table --id 1a2b3c4d
```

- `route show` prints the algorithm named in the configuration file.
- `route set` only prints how to change the algorithm (edit the
  configuration file or set `DTN_ROUTING_ALGORITHM`); it changes nothing.
- `route add` takes `--cost` as an integer from 0 to 4294967295, default 10.
- `route test` runs the algorithm's peer selection over two fixed peers,
  `dtn://peer1` and `dtn://peer2`.
- `route test-table` runs route selection over the routing table and prints
  the cheapest route to the bundle's destination.

The routing table lives in the running node only, so routes added in one
command are not kept for the next one.

TCP daemons:

```
sdtn daemon listener --addr 127.0.0.1:4556
sdtn daemon dialer --addr 127.0.0.1:4556
```

The listener runs until interrupted and stores every bundle it receives in
the node's bundle store. The dialer connects to the target, sends every
bundle in `./bundles`, moves each one it delivered to `./dispatched`, and
exits after about two seconds.

## Library use

```python
from sdtn.endpoint import EndpointId
from sdtn.node import DtnNode, StatusSummary
from sdtn.routing import RouteEntry

node = DtnNode.default()
bundle_id = node.insert_bundle("Hello from DTN!")

for bundle_id in node.list_bundles():
    bundle = node.show_bundle(bundle_id)
    print(bundle_id, bundle.primary.destination, bundle.payload.decode())

node.add_route(RouteEntry(
    destination=EndpointId("dtn://dest"),
    next_hop=EndpointId("dtn://router1"),
    cla_type="tcp",
    cost=10,
    is_active=True,
))
best = node.find_best_route(EndpointId("dtn://dest"))

status = node.bundle_status(None)
if isinstance(status, StatusSummary):
    print(status.active, status.expired, status.total)

removed = node.cleanup_expired()
```

`DtnNode(store_path, routing_config)` picks the store directory and, with a
`sdtn.routing.RoutingConfig`, the algorithm without consulting the
configuration file for it; `insert_bundle` still reads the file.
`insert_bundle_quick`, `list_bundles_quick` and `show_bundle_quick` in
`sdtn.node` do the same work with a node built from the default settings.

Lower-level pieces:

- `sdtn.bundle.Bundle` and `PrimaryBlock`, with `Bundle.create`,
  `is_expired`, `to_dict`/`from_dict` and `to_cbor`/`from_cbor`.
- `sdtn.store.BundleStore`, a directory of bundle files with `insert`,
  `load`, `load_by_partial_id`, `list_ids`, `dispatch_one` and
  `cleanup_expired`; unknown IDs raise `BundleNotFoundError`.
- `sdtn.routing.RoutingTable`, `EpidemicRouting` and `RoutingConfig`.
- `sdtn.descriptor.BundleDescriptor`, tracking which endpoints a bundle was
  sent to and how many forwarding attempts were made.
- `sdtn.manager.ClaManager`, an asyncio registry that activates
  `ConvergenceLayer` objects in the background, once per address.
- `sdtn.tcp.TcpClaListener`, `TcpClaDialer`, `send_bundle` and
  `handle_connection` for the TCP transport.

## Wire format

Each bundle on a TCP connection is sent as a 4-byte big-endian length followed
by the bundle encoded as CBOR: a map with a `primary` map (`version`,
`destination`, `source`, `report_to`, `creation_timestamp`, `lifetime`) and a
`payload` given as a list of byte values. The receiver answers `OK` for a
bundle it could decode and `ERROR` otherwise. Stored bundle files use the
same CBOR encoding.

## What it does not do

- TCP is the only transport. There is no Bluetooth or other radio
  convergence layer, and no command that receives bundles other than the
  TCP listener daemon.
- PRoPHET routing is not implemented; selecting it gives epidemic routing.
- `storage.max_size` is read and checked but not enforced.
- Routes are not persisted between runs.
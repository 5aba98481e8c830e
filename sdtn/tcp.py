"""TCP convergence layer: a dialer that pushes stored bundles and a listener that receives them."""

from __future__ import annotations

import asyncio
import os
import struct
import sys
from collections.abc import Callable
from contextlib import suppress
from dataclasses import dataclass

from sdtn.bundle import Bundle
from sdtn.consts import BUNDLES_DIR, DISPATCHED_DIR
from sdtn.manager import ConvergenceLayer
from sdtn.store import BundleStore

ReceiveCallback = Callable[[Bundle], None]

_LENGTH = struct.Struct(">I")
_ACK_READ_SIZE = 16
_REPLY_OK = b"OK"
_REPLY_ERROR = b"ERROR"


def _split_address(address: str) -> tuple[str, int]:
    """Split ``host:port`` into its parts, raising ValueError if malformed."""
    host, sep, port_text = address.rpartition(":")
    if not sep or not host:
        raise ValueError(f"invalid socket address {address!r}")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    try:
        port = int(port_text)
    except ValueError:
        raise ValueError(f"invalid port in socket address {address!r}") from None
    if not 0 <= port <= 0xFFFF:
        raise ValueError(f"port out of range in socket address {address!r}")
    return host, port


def create_bundle(source: str, destination: str, payload: bytes) -> Bundle:
    """Build a bundle with default settings, stamped with the current time."""
    return Bundle.create(source, destination, payload)


async def send_bundle(
    reader: asyncio.StreamReader,
    writer: asyncio.StreamWriter,
    bundle: Bundle,
) -> str:
    """Send one length-prefixed CBOR bundle and return the peer's acknowledgement text.

    Raises OSError on transport failure and UnicodeDecodeError if the reply is not text.
    """
    encoded = bundle.to_cbor()
    writer.write(_LENGTH.pack(len(encoded)))
    writer.write(encoded)
    await writer.drain()

    reply = await reader.read(_ACK_READ_SIZE)
    print(f"📨 Received n: {len(reply)}")
    ack = reply.decode("utf-8")
    print(f'📨 Received ACK: "{ack}"')
    return ack


async def handle_connection(
    reader: asyncio.StreamReader,
    writer: asyncio.StreamWriter,
    callback: ReceiveCallback,
) -> None:
    """Receive length-prefixed bundles until the peer closes, replying OK or ERROR to each."""
    while True:
        try:
            header = await reader.readexactly(_LENGTH.size)
        except (asyncio.IncompleteReadError, ConnectionError):
            break
        (length,) = _LENGTH.unpack(header)
        try:
            data = await reader.readexactly(length)
        except (asyncio.IncompleteReadError, ConnectionError):
            break

        try:
            bundle = Bundle.from_cbor(data)
        except ValueError as exc:
            print(f"❌ Failed to deserialize bundle: {exc}", file=sys.stderr)
            reply = _REPLY_ERROR
        else:
            callback(bundle)
            reply = _REPLY_OK

        with suppress(ConnectionError):
            writer.write(reply)
            await writer.drain()


@dataclass
class TcpClaDialer(ConvergenceLayer):
    """Connects to a peer and sends every stored bundle, moving sent ones aside."""

    target_addr: str
    bundles_dir: str | os.PathLike[str] = BUNDLES_DIR
    dispatched_dir: str | os.PathLike[str] = DISPATCHED_DIR

    def address(self) -> str:
        return self.target_addr

    async def activate(self) -> None:
        host, port = _split_address(self.target_addr)
        reader, writer = await asyncio.open_connection(host, port)
        print(f"Connected to {self.target_addr}")
        try:
            store = BundleStore(self.bundles_dir)
            for bundle_id in store.list_ids():
                bundle = store.load_by_partial_id(bundle_id)
                print(f"📨 Sending bundle: {bundle_id} bundle: {bundle!r}")
                try:
                    await send_bundle(reader, writer, bundle)
                except (OSError, ValueError):
                    print(f"❌ Failed to send bundle: {bundle_id}", file=sys.stderr)
                    continue
                store.dispatch_one(bundle, self.dispatched_dir)
        finally:
            writer.close()
            with suppress(OSError):
                await writer.wait_closed()


@dataclass
class TcpClaListener(ConvergenceLayer):
    """Accepts connections and passes every received bundle to a callback."""

    bind_addr: str
    receive_callback: ReceiveCallback

    def address(self) -> str:
        return self.bind_addr

    async def activate(self) -> None:
        host, port = _split_address(self.bind_addr)
        server = await asyncio.start_server(self._serve, host, port)
        print(f"TCP CLA Listener listening on {self.bind_addr}")
        async with server:
            await server.serve_forever()

    async def _serve(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        print(f"📨 New connection from: {writer.get_extra_info('peername')}")
        try:
            await handle_connection(reader, writer, self.receive_callback)
        except Exception as exc:
            print(f"❌ Error handling connection: {exc}", file=sys.stderr)
        finally:
            writer.close()
            with suppress(OSError):
                await writer.wait_closed()
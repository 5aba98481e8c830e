import asyncio
import socket
import struct
import time

import pytest

from sdtn.bundle import Bundle, PrimaryBlock
from sdtn.consts import TCP_ACK, TCP_OK, TCP_RECEIVED, TCP_SUCCESS
from sdtn.store import BundleStore
from sdtn.tcp import (
    TcpClaDialer,
    TcpClaListener,
    create_bundle,
    handle_connection,
    send_bundle,
)


def make_bundle(source: str, destination: str, payload: bytes) -> Bundle:
    return Bundle(
        primary=PrimaryBlock(
            version=7,
            source=source,
            destination=destination,
            report_to="none",
            creation_timestamp=int(time.time()),
            lifetime=3600,
        ),
        payload=payload,
    )


def frame(data: bytes) -> bytes:
    return struct.pack(">I", len(data)) + data


class RecordingWriter:
    def __init__(self) -> None:
        self.data = bytearray()

    def write(self, chunk: bytes) -> None:
        self.data.extend(chunk)

    async def drain(self) -> None:
        return None


def feed(*chunks: bytes) -> asyncio.StreamReader:
    reader = asyncio.StreamReader()
    for chunk in chunks:
        reader.feed_data(chunk)
    reader.feed_eof()
    return reader


def free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


async def mock_server(response: str, received: list[Bundle]):
    async def handler(reader, writer):
        header = await reader.readexactly(4)
        (length,) = struct.unpack(">I", header)
        data = await reader.readexactly(length)
        received.append(Bundle.from_cbor(data))
        writer.write(response.encode())
        await writer.drain()
        writer.close()

    server = await asyncio.start_server(handler, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    return server, port


# --- create_bundle ---------------------------------------------------------


def test_create_bundle_simple():
    bundle = create_bundle("dtn://source", "dtn://dest", b"hello")
    assert bundle.primary.source == "dtn://source"
    assert bundle.primary.destination == "dtn://dest"
    assert bundle.payload == b"hello"
    assert bundle.primary.version == 7
    assert bundle.primary.report_to == "none"
    assert bundle.primary.lifetime == 3600


@pytest.mark.parametrize(
    "name,payload",
    [
        ("empty", b""),
        ("simple", b"hello world"),
        ("unicode", "こんにちは世界".encode()),
        ("numbers", b"123456789"),
        ("binary", bytes([0, 1, 2, 255, 254, 253])),
    ],
)
def test_create_bundle_with_various_payloads(name, payload):
    bundle = create_bundle(f"dtn://source_{name}", f"dtn://dest_{name}", payload)
    assert bundle.payload == payload
    assert bundle.primary.creation_timestamp > 0


def test_create_bundle_timing():
    before = int(time.time())
    bundle = create_bundle("dtn://source", "dtn://dest", b"test")
    after = int(time.time())
    assert before <= bundle.primary.creation_timestamp <= after


@pytest.mark.parametrize(
    "source,dest",
    [
        ("dtn://node1", "dtn://node2"),
        ("tcp://localhost:8080", "tcp://remote:9090"),
        ("http://example.com", "https://secure.example.com"),
        ("", ""),
    ],
)
def test_create_bundle_different_addresses(source, dest):
    bundle = create_bundle(source, dest, b"test")
    assert bundle.primary.source == source
    assert bundle.primary.destination == dest


def test_create_bundle_consistency():
    for i in range(10):
        bundle = create_bundle(f"dtn://source{i}", f"dtn://dest{i}", f"payload{i}".encode())
        assert bundle.primary.version == 7
        assert bundle.primary.report_to == "none"
        assert bundle.primary.lifetime == 3600
        assert bundle.primary.creation_timestamp > 0


# --- addresses ---------------------------------------------------------------


def test_tcp_cla_dialer_address():
    dialer = TcpClaDialer(target_addr="localhost:9090")
    assert dialer.target_addr == "localhost:9090"
    assert dialer.address() == "localhost:9090"


def test_tcp_cla_listener_address():
    listener = TcpClaListener(bind_addr="0.0.0.0:9090", receive_callback=lambda bundle: None)
    assert listener.bind_addr == "0.0.0.0:9090"
    assert listener.address() == "0.0.0.0:9090"


# --- serialisation -------------------------------------------------------------


def test_bundle_serialization_roundtrip():
    original = make_bundle("dtn://test_source", "dtn://test_destination", b"test payload data")
    encoded = original.to_cbor()
    assert len(encoded) > 0
    decoded = Bundle.from_cbor(encoded)
    assert decoded == original


# --- send_bundle ---------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.parametrize("ack", [TCP_OK, TCP_ACK, TCP_SUCCESS, TCP_RECEIVED])
async def test_send_bundle_with_different_acks(ack):
    received: list[Bundle] = []
    server, port = await mock_server(ack, received)
    async with server:
        reader, writer = await asyncio.open_connection("127.0.0.1", port)
        bundle = make_bundle("dtn://source", "dtn://dest", b"test payload")
        result = await send_bundle(reader, writer, bundle)
        writer.close()
    assert result == ack
    assert received == [bundle]


@pytest.mark.asyncio
async def test_send_bundle_large_payload():
    received: list[Bundle] = []
    server, port = await mock_server(TCP_OK, received)
    async with server:
        reader, writer = await asyncio.open_connection("127.0.0.1", port)
        bundle = make_bundle("dtn://source", "dtn://dest", bytes([42]) * 10000)
        result = await send_bundle(reader, writer, bundle)
        writer.close()
    assert result == "OK"
    assert len(received[0].payload) == 10000


# --- handle_connection -----------------------------------------------------------


@pytest.mark.asyncio
async def test_handle_connection_single_bundle():
    received: list[Bundle] = []
    bundle = make_bundle("dtn://source", "dtn://dest", b"test payload")
    writer = RecordingWriter()
    await handle_connection(feed(frame(bundle.to_cbor())), writer, received.append)
    assert bytes(writer.data) == b"OK"
    assert len(received) == 1
    assert received[0].primary.source == "dtn://source"
    assert received[0].primary.destination == "dtn://dest"
    assert received[0].payload == b"test payload"


@pytest.mark.asyncio
async def test_handle_connection_multiple_bundles():
    received: list[Bundle] = []
    frames = [
        frame(make_bundle(f"dtn://source{i}", f"dtn://dest{i}", f"payload {i}".encode()).to_cbor())
        for i in range(3)
    ]
    writer = RecordingWriter()
    await handle_connection(feed(*frames), writer, received.append)
    assert bytes(writer.data) == b"OKOKOK"
    assert [b.primary.source for b in received] == ["dtn://source0", "dtn://source1", "dtn://source2"]


@pytest.mark.asyncio
async def test_handle_connection_large_bundle():
    received: list[Bundle] = []
    bundle = make_bundle("dtn://source", "dtn://dest", bytes([42]) * 10000)
    writer = RecordingWriter()
    await handle_connection(feed(frame(bundle.to_cbor())), writer, received.append)
    assert bytes(writer.data) == b"OK"
    assert len(received[0].payload) == 10000


@pytest.mark.asyncio
async def test_handle_connection_eof():
    received: list[Bundle] = []
    writer = RecordingWriter()
    await asyncio.wait_for(handle_connection(feed(), writer, received.append), timeout=1)
    assert received == []
    assert bytes(writer.data) == b""


@pytest.mark.asyncio
async def test_handle_connection_huge_length_then_eof():
    received: list[Bundle] = []
    writer = RecordingWriter()
    await asyncio.wait_for(
        handle_connection(feed(struct.pack(">I", 0xFFFFFFFF)), writer, received.append),
        timeout=1,
    )
    assert received == []
    assert bytes(writer.data) == b""


@pytest.mark.asyncio
async def test_handle_connection_partial_data():
    received: list[Bundle] = []
    writer = RecordingWriter()
    await asyncio.wait_for(
        handle_connection(feed(struct.pack(">I", 100), b"incomplete"), writer, received.append),
        timeout=1,
    )
    assert received == []
    assert bytes(writer.data) == b""


@pytest.mark.asyncio
async def test_handle_connection_invalid_data_replies_error():
    received: list[Bundle] = []
    writer = RecordingWriter()
    await handle_connection(feed(frame(b"not valid cbor data")), writer, received.append)
    assert bytes(writer.data) == b"ERROR"
    assert received == []


# --- dialer ----------------------------------------------------------------------


@pytest.mark.asyncio
async def test_tcp_cla_dialer_activate_no_server(tmp_path):
    dialer = TcpClaDialer(
        target_addr=f"127.0.0.1:{free_port()}",
        bundles_dir=tmp_path / "bundles",
        dispatched_dir=tmp_path / "dispatched",
    )
    with pytest.raises(OSError):
        await dialer.activate()


@pytest.mark.asyncio
async def test_tcp_cla_dialer_invalid_address():
    dialer = TcpClaDialer(target_addr="no-port-here")
    with pytest.raises(ValueError):
        await dialer.activate()


@pytest.mark.asyncio
async def test_tcp_cla_dialer_sends_and_dispatches(tmp_path):
    bundles_dir = tmp_path / "bundles"
    dispatched_dir = tmp_path / "dispatched"
    store = BundleStore(bundles_dir)
    first = make_bundle("dtn://a", "dtn://b", b"one")
    second = make_bundle("dtn://c", "dtn://d", b"two")
    store.insert(first)
    store.insert(second)

    received: list[Bundle] = []

    async def serve(reader, writer):
        await handle_connection(reader, writer, received.append)
        writer.close()

    server = await asyncio.start_server(serve, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    async with server:
        dialer = TcpClaDialer(
            target_addr=f"127.0.0.1:{port}",
            bundles_dir=bundles_dir,
            dispatched_dir=dispatched_dir,
        )
        await dialer.activate()
        for _ in range(50):
            if len(received) == 2:
                break
            await asyncio.sleep(0.01)

    assert store.list_ids() == []
    assert sorted(p.name for p in dispatched_dir.iterdir()) == sorted(
        [store.path_for(first).name, store.path_for(second).name]
    )
    assert sorted(b.payload for b in received) == [b"one", b"two"]


@pytest.mark.asyncio
async def test_tcp_cla_dialer_activate_with_empty_store(tmp_path):
    received: list[Bundle] = []

    async def serve(reader, writer):
        await handle_connection(reader, writer, received.append)
        writer.close()

    server = await asyncio.start_server(serve, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    dispatched_dir = tmp_path / "dispatched"
    async with server:
        dialer = TcpClaDialer(
            target_addr=f"127.0.0.1:{port}",
            bundles_dir=tmp_path / "bundles",
            dispatched_dir=dispatched_dir,
        )
        await dialer.activate()
    assert received == []
    assert not dispatched_dir.exists()


# --- listener --------------------------------------------------------------------


@pytest.mark.asyncio
async def test_tcp_cla_listener_activate_bind_error():
    listener = TcpClaListener(bind_addr="invalid:address", receive_callback=lambda bundle: None)
    with pytest.raises(ValueError):
        await listener.activate()


@pytest.mark.asyncio
async def test_tcp_cla_listener_receives_bundle():
    received: list[Bundle] = []
    port = free_port()
    listener = TcpClaListener(bind_addr=f"127.0.0.1:{port}", receive_callback=received.append)
    task = asyncio.create_task(listener.activate())
    try:
        connection = None
        for _ in range(100):
            try:
                connection = await asyncio.open_connection("127.0.0.1", port)
                break
            except OSError:
                await asyncio.sleep(0.02)
        assert connection is not None
        reader, writer = connection
        bundle = make_bundle("dtn://source", "dtn://dest", b"over the wire")
        ack = await send_bundle(reader, writer, bundle)
        writer.close()
    finally:
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
    assert ack == "OK"
    assert received == [bundle]
import asyncio
import socket

import pytest

from samsa.network.base import BrokerAddress, frame_request
from samsa.network.tcp import TcpConnection
from samsa.protocol.heartbeat import HeartbeatRequest, HeartbeatResponse
from samsa.wire import KafkaCode, SamsaError

HEARTBEAT_BODY = b"\0\0\0\x01\0\0"


async def _start_server(reply, received, read_request=True):
    async def handler(reader, writer):
        writer.write(reply)
        await writer.drain()
        if read_request:
            try:
                header = await reader.readexactly(4)
                body = await reader.readexactly(int.from_bytes(header, "big"))
                received.append(header + body)
            except asyncio.IncompleteReadError:
                pass
        writer.close()

    server = await asyncio.start_server(handler, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    return server, port


async def _stop(server):
    server.close()
    await server.wait_closed()


def _closed_port():
    sock = socket.socket()
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return port


@pytest.mark.asyncio
async def test_send_and_receive():
    received = []
    reply = len(HEARTBEAT_BODY).to_bytes(4, "big") + HEARTBEAT_BODY
    server, port = await _start_server(reply, received)
    req = HeartbeatRequest(1, "rust", "Big Dogs", 2, "member")
    conn = await TcpConnection.connect([BrokerAddress("127.0.0.1", port)])
    await conn.send_request(req)
    data = await conn.receive_response()
    await conn.close()
    await asyncio.sleep(0.05)
    await _stop(server)
    assert data == HEARTBEAT_BODY
    assert HeartbeatResponse.from_bytes(data).error_code == KafkaCode.NONE
    assert received == [frame_request(req)]


@pytest.mark.asyncio
async def test_falls_through_to_reachable_broker():
    received = []
    reply = len(HEARTBEAT_BODY).to_bytes(4, "big") + HEARTBEAT_BODY
    server, port = await _start_server(reply, received, read_request=False)
    addrs = [BrokerAddress("127.0.0.1", _closed_port()), BrokerAddress("127.0.0.1", port)]
    async with await TcpConnection.connect(addrs) as conn:
        data = await conn.receive_response()
    await _stop(server)
    assert data == HEARTBEAT_BODY


@pytest.mark.asyncio
async def test_from_addr():
    received = []
    reply = len(HEARTBEAT_BODY).to_bytes(4, "big") + HEARTBEAT_BODY
    server, port = await _start_server(reply, received, read_request=False)
    conn = await TcpConnection.from_addr([], BrokerAddress("127.0.0.1", port))
    data = await conn.receive_response()
    await conn.close()
    await _stop(server)
    assert data == HEARTBEAT_BODY


@pytest.mark.asyncio
async def test_connect_without_addresses():
    with pytest.raises(SamsaError):
        await TcpConnection.connect([])


@pytest.mark.asyncio
async def test_connect_all_unreachable():
    with pytest.raises(OSError):
        await TcpConnection.connect([BrokerAddress("127.0.0.1", _closed_port())])


@pytest.mark.asyncio
async def test_truncated_response_raises():
    received = []
    server, port = await _start_server(b"\x00\x00\x00\x10abc", received, read_request=False)
    conn = await TcpConnection.connect([BrokerAddress("127.0.0.1", port)])
    with pytest.raises(ConnectionError):
        await conn.receive_response()
    await conn.close()
    await _stop(server)
"""Plain TCP connection to a broker."""

from __future__ import annotations

import asyncio
import logging
import socket
import struct
from typing import Iterable

from samsa.network.base import BrokerAddress, BrokerConnection, _Encodable, frame_request
from samsa.wire import SamsaError

logger = logging.getLogger(__name__)


class TcpConnection(BrokerConnection):
    """A TCP stream to one broker of a cluster."""

    def __init__(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        self._reader = reader
        self._writer = writer
        self._lock = asyncio.Lock()

    @classmethod
    async def connect(cls, bootstrap_addrs: Iterable[BrokerAddress]) -> "TcpConnection":
        """Connect to the first reachable broker among ``bootstrap_addrs``."""
        last_error: OSError | None = None
        for addr in bootstrap_addrs:
            logger.debug("Connecting to %s:%d", addr.host, addr.port)
            try:
                reader, writer = await asyncio.open_connection(addr.host, addr.port)
            except socket.gaierror as exc:
                logger.error(
                    "Could not resolve address from host %s and port %d: %s",
                    addr.host,
                    addr.port,
                    exc,
                )
                raise SamsaError(
                    f"cannot resolve broker address {addr.host}:{addr.port}"
                ) from exc
            except OSError as exc:
                last_error = exc
                continue
            return cls(reader, writer)
        if last_error is not None:
            raise last_error
        raise SamsaError("no broker address to connect to")

    @classmethod
    async def from_addr(
        cls, config: Iterable[BrokerAddress], addr: BrokerAddress
    ) -> "TcpConnection":
        """Connect to one particular broker; ``config`` is not needed for TCP."""
        return await cls.connect([addr])

    async def send_request(self, request: _Encodable) -> None:
        data = frame_request(request)
        logger.debug("Sending %d bytes", len(data))
        self._writer.write(data)
        await self._writer.drain()

    async def receive_response(self) -> bytes:
        async with self._lock:
            try:
                size = struct.unpack(">I", await self._reader.readexactly(4))[0]
                logger.debug("Reading %d bytes", size)
                return await self._reader.readexactly(size)
            except asyncio.IncompleteReadError as exc:
                raise ConnectionError(
                    "connection closed while reading a response"
                ) from exc

    async def close(self) -> None:
        self._writer.close()
        try:
            await self._writer.wait_closed()
        except OSError:
            pass

    async def __aenter__(self) -> "TcpConnection":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()
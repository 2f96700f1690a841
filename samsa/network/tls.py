"""TLS connection to a broker."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import socket
import ssl
import struct
from dataclasses import dataclass, field
from pathlib import Path

from samsa.network.base import BrokerAddress, BrokerConnection, _Encodable, frame_request
from samsa.wire import SamsaError

logger = logging.getLogger(__name__)


@dataclass
class TlsConnectionOptions:
    """Brokers to reach and the files that secure the connection.

    ``cafile`` names the trusted roots; without it the system's defaults are used.
    """

    broker_options: list[BrokerAddress] = field(default_factory=list)
    key: Path = Path()
    cert: Path = Path()
    cafile: Path | None = None


def _root_context(options: TlsConnectionOptions) -> ssl.SSLContext:
    if options.cafile is not None:
        return ssl.create_default_context(cafile=str(options.cafile))
    return ssl.create_default_context()


def _load_client_cert(context: ssl.SSLContext, options: TlsConnectionOptions) -> None:
    context.load_cert_chain(certfile=str(options.cert), keyfile=str(options.key))


def build_ssl_context(options: TlsConnectionOptions) -> ssl.SSLContext:
    """Build a client context trusting ``cafile`` and presenting the client certificate."""
    context = _root_context(options)
    _load_client_cert(context, options)
    return context


class TlsConnection(BrokerConnection):
    """A TLS stream to one broker of a cluster."""

    def __init__(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        self._reader = reader
        self._writer = writer
        self._lock = asyncio.Lock()

    @classmethod
    async def connect(cls, options: TlsConnectionOptions) -> "TlsConnection":
        """Connect to the first reachable broker among ``options.broker_options``."""
        logger.debug("Starting connection to %d brokers", len(options.broker_options))
        context = _root_context(options)
        client_cert_loaded = False
        last_error: OSError | None = None

        for addr in options.broker_options:
            if not client_cert_loaded:
                _load_client_cert(context, options)
                client_cert_loaded = True
            logger.debug("Connecting to %s", addr.host)
            try:
                reader, writer = await asyncio.open_connection(
                    addr.host, addr.port, ssl=context, server_hostname=addr.host
                )
            except socket.gaierror as exc:
                raise SamsaError(
                    f"cannot resolve broker address {addr.host}:{addr.port}"
                ) from exc
            except ssl.SSLError:
                # The TCP connection was made but the TLS handshake failed.
                raise
            except OSError as exc:
                last_error = exc
                continue
            logger.debug("TLS connected to %s:%d", addr.host, addr.port)
            return cls(reader, writer)

        if last_error is not None:
            raise last_error
        raise SamsaError("no broker address to connect to")

    @classmethod
    async def from_addr(
        cls, options: TlsConnectionOptions, addr: BrokerAddress
    ) -> "TlsConnection":
        """Connect to one particular broker with the files named in ``options``."""
        return await cls.connect(dataclasses.replace(options, broker_options=[addr]))

    async def send_request(self, request: _Encodable) -> None:
        data = frame_request(request)
        logger.debug("Sending %d bytes", len(data))
        async with self._lock:
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

    async def __aenter__(self) -> "TlsConnection":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()
"""Broker addresses, the connection interface and request framing.

Kafka speaks a binary protocol over TCP made of size-delimited request and
response pairs. On one connection the broker processes requests in the order
they are sent and answers them in that same order.
"""

from __future__ import annotations

import abc
import struct
from dataclasses import dataclass
from typing import Protocol

from samsa.wire import Writer


class _Encodable(Protocol):
    def encode(self, writer: Writer) -> None: ...


@dataclass(frozen=True)
class BrokerAddress:
    """Host and port of one broker."""

    host: str
    port: int


class BrokerConnection(abc.ABC):
    """A connection able to send requests to a broker and read its responses."""

    @abc.abstractmethod
    async def send_request(self, request: _Encodable) -> None:
        """Encode ``request`` and send it, framed by its size."""

    @abc.abstractmethod
    async def receive_response(self) -> bytes:
        """Read one size-delimited response and return its raw bytes."""


def frame_request(request: _Encodable) -> bytes:
    """Encode ``request`` and prefix it with its int32 size."""
    writer = Writer()
    request.encode(writer)
    payload = writer.getvalue()
    return struct.pack(">i", len(payload)) + payload
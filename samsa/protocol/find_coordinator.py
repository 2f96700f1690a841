"""Find Coordinator (version 0): locate the coordinator broker of a group."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from samsa.wire import (
    HeaderRequest,
    HeaderResponse,
    KafkaCode,
    ParsingError,
    Reader,
    Writer,
    parse_header_response,
)

logger = logging.getLogger(__name__)

API_KEY_FIND_COORDINATOR = 10
API_VERSION = 0


class FindCoordinatorRequest:
    """Ask any broker which broker coordinates the group ``key``."""

    def __init__(self, correlation_id: int, client_id: str, key: str) -> None:
        self.header = HeaderRequest(
            API_KEY_FIND_COORDINATOR, API_VERSION, correlation_id, client_id
        )
        self.key = key

    def encode(self, writer: Writer) -> None:
        self.header.encode(writer)
        writer.string(self.key)

    def to_bytes(self) -> bytes:
        writer = Writer()
        self.encode(writer)
        return writer.getvalue()


@dataclass
class FindCoordinatorResponse:
    header: HeaderResponse
    error_code: KafkaCode
    node_id: int
    host: bytes
    port: int

    @classmethod
    def from_bytes(cls, data: bytes) -> "FindCoordinatorResponse":
        try:
            return parse_find_coordinator_response(Reader(data))
        except ParsingError as exc:
            logger.error("Failed parsing FindCoordinatorResponse %r", bytes(data))
            raise ParsingError(data, exc.reason) from exc


def parse_find_coordinator_response(reader: Reader) -> FindCoordinatorResponse:
    header = parse_header_response(reader)
    error_code = reader.read_kafka_code()
    node_id = reader.read_i32()
    host = reader.read_string()
    port = reader.read_i32()
    return FindCoordinatorResponse(header, error_code, node_id, host, port)
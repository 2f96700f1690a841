"""Heartbeat (version 0): keep a member alive in its consumer group.

Once a member has joined and synced, it sends periodic heartbeats. If the
coordinator receives none within the session timeout, the member is removed
from the group.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from samsa.wire import (
    HeaderRequest,
    HeaderResponse,
    KafkaCode,
    ParsingError,
    Reader,
    SamsaError,
    Writer,
    parse_header_response,
)

logger = logging.getLogger(__name__)

API_KEY_HEARTBEAT = 12
API_VERSION = 0


class HeartbeatRequest:
    """Tell the coordinator that a group member is still alive."""

    def __init__(
        self,
        correlation_id: int,
        client_id: str,
        group_id: str,
        generation_id: int,
        member_id: bytes | str,
    ) -> None:
        if isinstance(member_id, (bytes, bytearray)):
            try:
                member_id = bytes(member_id).decode("utf-8")
            except UnicodeDecodeError as exc:
                raise SamsaError("member id is not valid UTF-8") from exc
        self.header = HeaderRequest(
            API_KEY_HEARTBEAT, API_VERSION, correlation_id, client_id
        )
        self.group_id = group_id
        self.generation_id = generation_id
        self.member_id = member_id

    def encode(self, writer: Writer) -> None:
        self.header.encode(writer)
        writer.string(self.group_id)
        writer.int32(self.generation_id)
        writer.string(self.member_id)

    def to_bytes(self) -> bytes:
        writer = Writer()
        self.encode(writer)
        return writer.getvalue()


@dataclass
class HeartbeatResponse:
    header: HeaderResponse
    error_code: KafkaCode

    @classmethod
    def from_bytes(cls, data: bytes) -> "HeartbeatResponse":
        try:
            return parse_heartbeat_response(Reader(data))
        except ParsingError as exc:
            logger.error("Failed parsing HeartbeatResponse %r", bytes(data))
            raise ParsingError(data, exc.reason) from exc


def parse_heartbeat_response(reader: Reader) -> HeartbeatResponse:
    header = parse_header_response(reader)
    error_code = reader.read_kafka_code()
    return HeartbeatResponse(header, error_code)
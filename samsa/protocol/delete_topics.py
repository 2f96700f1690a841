"""Delete Topics (version 3): delete topics from the cluster."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from samsa.wire import (
    HeaderRequest,
    HeaderResponse,
    KafkaCode,
    KafkaError,
    ParsingError,
    Reader,
    Writer,
    parse_header_response,
)

logger = logging.getLogger(__name__)

API_KEY_DELETE_TOPICS = 20
API_VERSION = 3


class DeleteTopicsRequest:
    """Request deleting topics; stage topic names with :meth:`add`."""

    def __init__(self, correlation_id: int, client_id: str, timeout_ms: int) -> None:
        self.header = HeaderRequest(
            API_KEY_DELETE_TOPICS, API_VERSION, correlation_id, client_id
        )
        self.timeout_ms = timeout_ms
        self.topics: list[str] = []

    def add(self, topic_name: str) -> None:
        """Stage a topic; a topic already staged is left as it is."""
        if topic_name not in self.topics:
            self.topics.append(topic_name)

    def encode(self, writer: Writer) -> None:
        self.header.encode(writer)
        writer.array(self.topics, writer.string)
        writer.int32(self.timeout_ms)

    def to_bytes(self) -> bytes:
        writer = Writer()
        self.encode(writer)
        return writer.getvalue()


@dataclass
class DeletedTopic:
    """The result of deleting one topic."""

    name: bytes
    error_code: KafkaCode

    def raise_for_error(self) -> None:
        """Raise :class:`KafkaError` if the topic was not deleted."""
        if self.error_code != KafkaCode.NONE:
            raise KafkaError(self.error_code)


@dataclass
class DeleteTopicsResponse:
    header: HeaderResponse
    throttle_time_ms: int
    topics: list[DeletedTopic] = field(default_factory=list)

    @classmethod
    def from_bytes(cls, data: bytes) -> "DeleteTopicsResponse":
        try:
            return parse_delete_topics_response(Reader(data))
        except ParsingError as exc:
            logger.error("Failed parsing DeleteTopicsResponse %r", bytes(data))
            raise ParsingError(data, exc.reason) from exc

    def raise_for_error(self) -> None:
        for topic in self.topics:
            topic.raise_for_error()


def _parse_topic(reader: Reader) -> DeletedTopic:
    name = reader.read_string()
    error_code = reader.read_kafka_code()
    return DeletedTopic(name, error_code)


def parse_delete_topics_response(reader: Reader) -> DeleteTopicsResponse:
    header = parse_header_response(reader)
    throttle_time_ms = reader.read_i32()
    topics = reader.read_array(_parse_topic)
    return DeleteTopicsResponse(header, throttle_time_ms, topics)
"""Create Topics (version 3): create topics on the cluster."""

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

API_KEY_CREATE_TOPICS = 19
API_VERSION = 3


@dataclass
class Assignment:
    """A manual placement of one partition on a set of brokers."""

    partition_index: int
    broker_ids: list[int] = field(default_factory=list)

    def encode(self, writer: Writer) -> None:
        writer.int32(self.partition_index)
        writer.array(self.broker_ids, writer.int32)


@dataclass
class TopicConfig:
    """A custom configuration entry for a new topic."""

    name: str
    value: str | None = None

    def encode(self, writer: Writer) -> None:
        writer.string(self.name)
        writer.nullable_string(self.value)


@dataclass
class NewTopic:
    """A topic to create."""

    name: str
    num_partitions: int
    replication_factor: int
    assignments: list[Assignment] = field(default_factory=list)
    configs: list[TopicConfig] = field(default_factory=list)

    def encode(self, writer: Writer) -> None:
        writer.string(self.name)
        writer.int32(self.num_partitions)
        writer.int16(self.replication_factor)
        writer.array(self.assignments, lambda assignment: assignment.encode(writer))
        writer.array(self.configs, lambda config: config.encode(writer))


class CreateTopicsRequest:
    """Request creating topics; stage topics with :meth:`add`."""

    def __init__(
        self,
        correlation_id: int,
        client_id: str,
        timeout_ms: int,
        validate_only: bool,
    ) -> None:
        self.header = HeaderRequest(
            API_KEY_CREATE_TOPICS, API_VERSION, correlation_id, client_id
        )
        self.timeout_ms = timeout_ms
        self.validate_only = validate_only
        self.topics: list[NewTopic] = []

    def add(self, topic_name: str, num_partitions: int, replication_factor: int) -> None:
        """Stage a topic; a topic already staged is left as it is."""
        if any(topic.name == topic_name for topic in self.topics):
            return
        self.topics.append(NewTopic(topic_name, num_partitions, replication_factor))

    def encode(self, writer: Writer) -> None:
        self.header.encode(writer)
        writer.array(self.topics, lambda topic: topic.encode(writer))
        writer.int32(self.timeout_ms)
        writer.boolean(self.validate_only)

    def to_bytes(self) -> bytes:
        writer = Writer()
        self.encode(writer)
        return writer.getvalue()


@dataclass
class CreatedTopic:
    """The result of creating one topic."""

    name: bytes
    error_code: KafkaCode
    error_message: bytes | None = None

    def raise_for_error(self) -> None:
        """Raise :class:`KafkaError` if the topic was not created."""
        if self.error_code != KafkaCode.NONE:
            logger.error("Kafka error: %r", self.error_message)
            raise KafkaError(self.error_code)


@dataclass
class CreateTopicsResponse:
    header: HeaderResponse
    throttle_time_ms: int
    topics: list[CreatedTopic] = field(default_factory=list)

    @classmethod
    def from_bytes(cls, data: bytes) -> "CreateTopicsResponse":
        try:
            return parse_create_topics_response(Reader(data))
        except ParsingError as exc:
            logger.error("Failed parsing CreateTopicsResponse %r", bytes(data))
            raise ParsingError(data, exc.reason) from exc

    def raise_for_error(self) -> None:
        for topic in self.topics:
            topic.raise_for_error()


def _parse_topic(reader: Reader) -> CreatedTopic:
    name = reader.read_string()
    error_code = reader.read_kafka_code()
    error_message = reader.read_nullable_string()
    return CreatedTopic(name, error_code, error_message)


def parse_create_topics_response(reader: Reader) -> CreateTopicsResponse:
    header = parse_header_response(reader)
    throttle_time_ms = reader.read_i32()
    topics = reader.read_array(_parse_topic)
    return CreateTopicsResponse(header, throttle_time_ms, topics)
"""Offset Commit (version 2): commit a set of offsets for a consumer group.

For a simple consumer outside any group, the generation id must be -1 and
the member id must be empty.
"""

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
    SamsaError,
    Writer,
    parse_header_response,
)

logger = logging.getLogger(__name__)

API_KEY_OFFSET_COMMIT = 8
API_VERSION = 2


@dataclass
class CommitPartition:
    """An offset to commit for one partition."""

    partition_index: int
    committed_offset: int
    committed_metadata: str | None = None

    def encode(self, writer: Writer) -> None:
        writer.int32(self.partition_index)
        writer.int64(self.committed_offset)
        writer.nullable_string(self.committed_metadata)


@dataclass
class CommitTopic:
    """The offsets to commit for one topic."""

    name: str
    partitions: list[CommitPartition] = field(default_factory=list)

    def encode(self, writer: Writer) -> None:
        writer.string(self.name)
        writer.array(self.partitions, lambda partition: partition.encode(writer))


class OffsetCommitRequest:
    """Request committing offsets; stage offsets with :meth:`add`."""

    def __init__(
        self,
        correlation_id: int,
        client_id: str,
        group_id: str,
        generation_id_or_member_epoch: int,
        member_id: bytes | str,
        retention_time_ms: int,
    ) -> None:
        if isinstance(member_id, (bytes, bytearray)):
            try:
                member_id = bytes(member_id).decode("utf-8")
            except UnicodeDecodeError as exc:
                raise SamsaError("member id is not valid UTF-8") from exc
        self.header = HeaderRequest(
            API_KEY_OFFSET_COMMIT, API_VERSION, correlation_id, client_id
        )
        self.group_id = group_id
        self.generation_id_or_member_epoch = generation_id_or_member_epoch
        self.member_id = member_id
        self.retention_time_ms = retention_time_ms
        self.topics: list[CommitTopic] = []

    def add(
        self,
        topic_name: str,
        partition_index: int,
        committed_offset: int,
        committed_metadata: str | None = None,
    ) -> None:
        """Stage an offset; a repeated topic and partition overwrites the offset."""
        topic = next((t for t in self.topics if t.name == topic_name), None)
        if topic is None:
            self.topics.append(
                CommitTopic(
                    topic_name,
                    [CommitPartition(partition_index, committed_offset, committed_metadata)],
                )
            )
            return
        partition = next(
            (p for p in topic.partitions if p.partition_index == partition_index), None
        )
        if partition is None:
            topic.partitions.append(
                CommitPartition(partition_index, committed_offset, committed_metadata)
            )
        else:
            logger.warning(
                "Overwriting commit offset for %s %d", topic_name, partition_index
            )
            partition.committed_offset = committed_offset

    def encode(self, writer: Writer) -> None:
        self.header.encode(writer)
        writer.string(self.group_id)
        writer.int32(self.generation_id_or_member_epoch)
        writer.string(self.member_id)
        writer.int64(self.retention_time_ms)
        writer.array(self.topics, lambda topic: topic.encode(writer))

    def to_bytes(self) -> bytes:
        writer = Writer()
        self.encode(writer)
        return writer.getvalue()


@dataclass
class PartitionResult:
    partition_index: int
    error_code: KafkaCode

    def raise_for_error(self, topic_name: bytes) -> None:
        """Raise :class:`KafkaError` if the commit failed for this partition."""
        if self.error_code != KafkaCode.NONE:
            logger.error(
                "Kafka error %s in topic %r partition %d",
                self.error_code.name,
                topic_name,
                self.partition_index,
            )
            raise KafkaError(self.error_code)


@dataclass
class TopicResult:
    name: bytes
    partitions: list[PartitionResult] = field(default_factory=list)

    def raise_for_error(self) -> None:
        for partition in self.partitions:
            partition.raise_for_error(self.name)


@dataclass
class OffsetCommitResponse:
    header: HeaderResponse
    topics: list[TopicResult] = field(default_factory=list)

    @classmethod
    def from_bytes(cls, data: bytes) -> "OffsetCommitResponse":
        try:
            return parse_offset_commit_response(Reader(data))
        except ParsingError as exc:
            logger.error("Failed parsing OffsetCommitResponse %r", bytes(data))
            raise ParsingError(data, exc.reason) from exc

    def raise_for_error(self) -> None:
        for topic in self.topics:
            topic.raise_for_error()


def _parse_partition(reader: Reader) -> PartitionResult:
    partition_index = reader.read_i32()
    error_code = reader.read_kafka_code()
    return PartitionResult(partition_index, error_code)


def _parse_topic(reader: Reader) -> TopicResult:
    name = reader.read_string()
    partitions = reader.read_array(_parse_partition)
    return TopicResult(name, partitions)


def parse_offset_commit_response(reader: Reader) -> OffsetCommitResponse:
    header = parse_header_response(reader)
    topics = reader.read_array(_parse_topic)
    return OffsetCommitResponse(header, topics)
"""Fetch (version 4): read record batches from topic partitions."""

from __future__ import annotations

import enum
import gzip
import logging
import zlib
from dataclasses import dataclass, field
from typing import Iterator

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

API_KEY_FETCH = 1
API_VERSION = 4

# Bytes of a record batch that follow the batch length field and precede
# the compressed records: epoch, magic, crc, attributes, last offset delta,
# timestamps, producer id and epoch, base sequence and the record count.
_BATCH_HEADER_AFTER_LENGTH = 49

_COMPRESSION_MASK = 0b111
_TIMESTAMP_TYPE_BIT = 1 << 3
_TRANSACTIONAL_BIT = 1 << 4
_CONTROL_BATCH_BIT = 1 << 5
_DELETE_HORIZON_BIT = 1 << 6


class Compression(enum.IntEnum):
    """Compression codecs this client can decode."""

    GZIP = 1


@dataclass(frozen=True)
class BatchAttributes:
    """The attribute bits of a record batch."""

    compression: Compression | None = None
    timestamp_type: int = 0
    is_transactional: bool = False
    is_control_batch: bool = False
    has_delete_horizon: bool = False

    @classmethod
    def from_int(cls, value: int) -> "BatchAttributes":
        """Decode the int16 attributes field; raise ValueError for unknown codecs."""
        codec = value & _COMPRESSION_MASK
        if codec == 0:
            compression = None
        else:
            try:
                compression = Compression(codec)
            except ValueError as exc:
                raise ValueError(f"unsupported compression codec {codec}") from exc
        return cls(
            compression=compression,
            timestamp_type=1 if value & _TIMESTAMP_TYPE_BIT else 0,
            is_transactional=bool(value & _TRANSACTIONAL_BIT),
            is_control_batch=bool(value & _CONTROL_BATCH_BIT),
            has_delete_horizon=bool(value & _DELETE_HORIZON_BIT),
        )


@dataclass
class FetchPartition:
    """A partition to fetch, starting at ``offset``."""

    partition_index: int
    offset: int
    max_bytes: int

    def encode(self, writer: Writer) -> None:
        writer.int32(self.partition_index)
        writer.int64(self.offset)
        writer.int32(self.max_bytes)


@dataclass
class FetchTopic:
    """A topic to fetch and its partitions."""

    topic_name: str
    partitions: list[FetchPartition] = field(default_factory=list)

    def encode(self, writer: Writer) -> None:
        writer.string(self.topic_name)
        writer.array(self.partitions, lambda partition: partition.encode(writer))


class FetchRequest:
    """Request records from a broker; stage partitions with :meth:`add`."""

    def __init__(
        self,
        correlation_id: int,
        client_id: str,
        max_wait_ms: int,
        min_bytes: int,
        max_bytes: int,
        isolation_level: int,
    ) -> None:
        self.header = HeaderRequest(API_KEY_FETCH, API_VERSION, correlation_id, client_id)
        self.replica = -1
        self.max_wait_ms = max_wait_ms
        self.min_bytes = min_bytes
        self.max_bytes = max_bytes
        self.isolation_level = isolation_level
        self.topics: list[FetchTopic] = []

    def add(self, topic_name: str, partition_index: int, offset: int, max_bytes: int) -> None:
        """Stage a partition; a partition already staged is left as it is."""
        topic = next((t for t in self.topics if t.topic_name == topic_name), None)
        partition = FetchPartition(partition_index, offset, max_bytes)
        if topic is None:
            self.topics.append(FetchTopic(topic_name, [partition]))
        elif not any(p.partition_index == partition_index for p in topic.partitions):
            topic.partitions.append(partition)

    def encode(self, writer: Writer) -> None:
        self.header.encode(writer)
        writer.int32(self.replica)
        writer.int32(self.max_wait_ms)
        writer.int32(self.min_bytes)
        writer.int32(self.max_bytes)
        writer.int8(self.isolation_level)
        writer.array(self.topics, lambda topic: topic.encode(writer))

    def to_bytes(self) -> bytes:
        writer = Writer()
        self.encode(writer)
        return writer.getvalue()


@dataclass
class RecordHeader:
    header_key_length: int
    header_key: bytes
    header_value_length: int
    value: bytes


@dataclass
class Record:
    length: int
    attributes: int
    timestamp_delta: int
    offset_delta: int
    key_length: int
    key: bytes
    value_len: int
    value: bytes
    headers: list[RecordHeader] = field(default_factory=list)


@dataclass
class RecordBatch:
    base_offset: int
    batch_length: int
    partition_leader_epoch: int
    magic: int
    crc: int
    attributes: BatchAttributes
    last_offset_delta: int
    base_timestamp: int
    max_timestamp: int
    producer_id: int
    producer_epoch: int
    base_sequence: int
    records: list[Record] = field(default_factory=list)

    def record_count(self) -> int:
        return len(self.records)


@dataclass
class AbortedTransaction:
    producer_id: int
    first_offset: int


@dataclass
class FetchedPartition:
    id: int
    error_code: KafkaCode
    high_water_mark: int
    last_stable_offset: int
    aborted_transactions: list[AbortedTransaction] = field(default_factory=list)
    record_batches: list[RecordBatch] = field(default_factory=list)

    def records(self) -> Iterator[tuple[int, KafkaCode, int, int, Record]]:
        """Yield ``(partition id, error code, base offset, base timestamp, record)``."""
        for batch in self.record_batches:
            for record in batch.records:
                yield self.id, self.error_code, batch.base_offset, batch.base_timestamp, record

    def record_count(self) -> int:
        return sum(batch.record_count() for batch in self.record_batches)


@dataclass
class FetchedTopic:
    name: bytes
    partitions: list[FetchedPartition] = field(default_factory=list)

    def record_count(self) -> int:
        return sum(partition.record_count() for partition in self.partitions)


@dataclass
class FetchResponse:
    header_response: HeaderResponse
    throttle_time: int
    topics: list[FetchedTopic] = field(default_factory=list)

    @classmethod
    def from_bytes(cls, data: bytes) -> "FetchResponse":
        try:
            return parse_fetch_response(Reader(data))
        except ParsingError as exc:
            logger.error("Failed parsing FetchResponse %r", bytes(data))
            raise ParsingError(data, exc.reason) from exc

    def record_count(self) -> int:
        return sum(topic.record_count() for topic in self.topics)


def _parse_header(reader: Reader) -> RecordHeader:
    key_length = reader.read_varint()
    key = reader.take(key_length // 2)
    value_length = reader.read_varint()
    value = reader.take(value_length // 2)
    return RecordHeader(key_length, key, value_length, value)


def _parse_record(reader: Reader) -> Record:
    length = reader.read_varint()
    attributes = reader.read_i8()
    timestamp_delta = reader.read_varint()
    offset_delta = reader.read_varint()
    key_length = reader.read_varint()
    key = reader.take(key_length // 2)
    value_len = reader.read_varint()
    value = reader.take(value_len // 2)
    headers = reader.read_varint_array(_parse_header)
    return Record(
        length,
        attributes,
        timestamp_delta,
        offset_delta,
        key_length,
        key,
        value_len,
        value,
        headers,
    )


def _decompress(data: bytes) -> bytes:
    try:
        return gzip.decompress(data)
    except (OSError, EOFError, zlib.error) as exc:
        raise SamsaError(f"failed to decompress record batch: {exc}") from exc


def parse_record_batch(reader: Reader) -> RecordBatch:
    """Parse one record batch, decompressing its records when needed."""
    base_offset = reader.read_i64()
    batch_length = reader.read_i32()
    partition_leader_epoch = reader.read_i32()
    magic = reader.read_i8()
    crc = reader.read_i32()
    raw_attributes = reader.read_i16()
    try:
        attributes = BatchAttributes.from_int(raw_attributes)
    except ValueError as exc:
        raise ParsingError(reader.remaining(), str(exc)) from exc
    last_offset_delta = reader.read_i32()
    base_timestamp = reader.read_i64()
    max_timestamp = reader.read_i64()
    producer_id = reader.read_i64()
    producer_epoch = reader.read_i16()
    base_sequence = reader.read_i32()

    # The batch header stays uncompressed; only the records are compressed.
    if attributes.compression is None:
        records = reader.read_array(_parse_record)
    else:
        logger.debug("Decompressing with %s", attributes.compression.name)
        record_count = reader.read_i32()
        compressed = reader.take(batch_length - _BATCH_HEADER_AFTER_LENGTH)
        inner = Reader(_decompress(compressed))
        records = [_parse_record(inner) for _ in range(max(record_count, 0))]

    return RecordBatch(
        base_offset,
        batch_length,
        partition_leader_epoch,
        magic,
        crc,
        attributes,
        last_offset_delta,
        base_timestamp,
        max_timestamp,
        producer_id,
        producer_epoch,
        base_sequence,
        records,
    )


def _parse_record_batches(reader: Reader) -> list[RecordBatch]:
    """Parse batches until one fails; a trailing partial batch is left unread."""
    batches = []
    while True:
        remaining = reader.remaining()
        attempt = Reader(remaining)
        try:
            batch = parse_record_batch(attempt)
        except ParsingError:
            return batches
        reader.take(len(remaining) - len(attempt.remaining()))
        batches.append(batch)


def _parse_aborted_transaction(reader: Reader) -> AbortedTransaction:
    producer_id = reader.read_i64()
    first_offset = reader.read_i64()
    return AbortedTransaction(producer_id, first_offset)


def _parse_partition(reader: Reader) -> FetchedPartition:
    partition_id = reader.read_i32()
    error_code = reader.read_kafka_code()
    high_water_mark = reader.read_i64()
    last_stable_offset = reader.read_i64()
    aborted = reader.read_array(_parse_aborted_transaction)
    reader.read_i32()  # size of the record set; batches are read until they run out
    batches = _parse_record_batches(reader)
    return FetchedPartition(
        partition_id,
        error_code,
        high_water_mark,
        last_stable_offset,
        aborted,
        batches,
    )


def _parse_topic(reader: Reader) -> FetchedTopic:
    name = reader.read_string()
    partitions = reader.read_array(_parse_partition)
    return FetchedTopic(name, partitions)


def parse_fetch_response(reader: Reader) -> FetchResponse:
    header = parse_header_response(reader)
    throttle_time = reader.read_i32()
    topics = reader.read_array(_parse_topic)
    return FetchResponse(header, throttle_time, topics)
"""Primitive types of the Kafka wire protocol: reading, writing and headers."""

from __future__ import annotations

import enum
import logging
import struct
from dataclasses import dataclass
from typing import Callable, Iterable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

_U64_MASK = (1 << 64) - 1
_I16_MAX = 0x7FFF


class KafkaCode(enum.IntEnum):
    """Error codes a broker can return."""

    UNKNOWN = -1
    NONE = 0
    OFFSET_OUT_OF_RANGE = 1
    CORRUPT_MESSAGE = 2
    UNKNOWN_TOPIC_OR_PARTITION = 3
    INVALID_FETCH_SIZE = 4
    LEADER_NOT_AVAILABLE = 5
    NOT_LEADER_FOR_PARTITION = 6
    REQUEST_TIMED_OUT = 7
    BROKER_NOT_AVAILABLE = 8
    REPLICA_NOT_AVAILABLE = 9
    MESSAGE_TOO_LARGE = 10
    STALE_CONTROLLER_EPOCH = 11
    OFFSET_METADATA_TOO_LARGE = 12
    NETWORK_EXCEPTION = 13
    COORDINATOR_LOAD_IN_PROGRESS = 14
    COORDINATOR_NOT_AVAILABLE = 15
    NOT_COORDINATOR = 16
    INVALID_TOPIC_EXCEPTION = 17
    RECORD_LIST_TOO_LARGE = 18
    NOT_ENOUGH_REPLICAS = 19
    NOT_ENOUGH_REPLICAS_AFTER_APPEND = 20
    INVALID_REQUIRED_ACKS = 21
    ILLEGAL_GENERATION = 22
    INCONSISTENT_GROUP_PROTOCOL = 23
    INVALID_GROUP_ID = 24
    UNKNOWN_MEMBER_ID = 25
    INVALID_SESSION_TIMEOUT = 26
    REBALANCE_IN_PROGRESS = 27
    INVALID_COMMIT_OFFSET_SIZE = 28
    TOPIC_AUTHORIZATION_FAILED = 29
    GROUP_AUTHORIZATION_FAILED = 30
    CLUSTER_AUTHORIZATION_FAILED = 31
    INVALID_TIMESTAMP = 32
    UNSUPPORTED_SASL_MECHANISM = 33
    ILLEGAL_SASL_STATE = 34
    UNSUPPORTED_VERSION = 35
    TOPIC_ALREADY_EXISTS = 36
    INVALID_PARTITIONS = 37
    INVALID_REPLICATION_FACTOR = 38
    INVALID_REPLICA_ASSIGNMENT = 39
    INVALID_CONFIG = 40
    NOT_CONTROLLER = 41
    INVALID_REQUEST = 42
    UNSUPPORTED_FOR_MESSAGE_FORMAT = 43
    POLICY_VIOLATION = 44
    OUT_OF_ORDER_SEQUENCE_NUMBER = 45
    DUPLICATE_SEQUENCE_NUMBER = 46
    INVALID_PRODUCER_EPOCH = 47
    INVALID_TXN_STATE = 48
    INVALID_PRODUCER_ID_MAPPING = 49
    INVALID_TRANSACTION_TIMEOUT = 50
    CONCURRENT_TRANSACTIONS = 51
    TRANSACTION_COORDINATOR_FENCED = 52
    TRANSACTIONAL_ID_AUTHORIZATION_FAILED = 53
    SECURITY_DISABLED = 54
    OPERATION_NOT_ATTEMPTED = 55
    KAFKA_STORAGE_ERROR = 56
    LOG_DIR_NOT_FOUND = 57
    SASL_AUTHENTICATION_FAILED = 58


class SamsaError(Exception):
    """Base class of every error raised by this package."""


class KafkaError(SamsaError):
    """The broker answered with an error code."""

    def __init__(self, code: KafkaCode) -> None:
        super().__init__(f"Kafka error {code.name} ({int(code)})")
        self.code = code


class ParsingError(SamsaError):
    """Bytes received from a broker could not be decoded."""

    def __init__(self, data: bytes, reason: str = "") -> None:
        message = "failed to parse response"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.data = bytes(data)
        self.reason = reason


class Reader:
    """Sequential decoder over a byte string."""

    def __init__(self, data: bytes) -> None:
        self._data = bytes(data)
        self._pos = 0

    def remaining(self) -> bytes:
        """Return the bytes not yet consumed."""
        return self._data[self._pos:]

    def take(self, size: int) -> bytes:
        if size < 0 or self._pos + size > len(self._data):
            raise ParsingError(
                self._data,
                f"needed {size} bytes at offset {self._pos}, "
                f"{len(self._data) - self._pos} available",
            )
        chunk = self._data[self._pos:self._pos + size]
        self._pos += size
        return chunk

    def _unpack(self, fmt: str) -> int:
        size = struct.calcsize(fmt)
        return struct.unpack(fmt, self.take(size))[0]

    def read_i8(self) -> int:
        return self._unpack(">b")

    def read_i16(self) -> int:
        return self._unpack(">h")

    def read_u16(self) -> int:
        return self._unpack(">H")

    def read_i32(self) -> int:
        return self._unpack(">i")

    def read_u32(self) -> int:
        return self._unpack(">I")

    def read_i64(self) -> int:
        return self._unpack(">q")

    def read_varint(self) -> int:
        """Read an unsigned base-128 varint.

        Some brokers send values doubled; callers halve lengths themselves.
        """
        result = 0
        shift = 0
        while True:
            byte = self.take(1)[0]
            if shift >= 64:
                raise ParsingError(self._data, "varint is too long")
            result = (result + (((byte & 0x7F) << shift) & _U64_MASK)) & _U64_MASK
            shift += 7
            if byte >> 7 == 0:
                return result

    def read_string(self) -> bytes:
        return self.take(self.read_u16())

    def read_bytes(self) -> bytes:
        return self.take(self.read_u32())

    def read_nullable_string(self) -> bytes | None:
        length = self.read_i16()
        if length == -1:
            return None
        return self.take(length & 0xFFFF)

    def read_nullable_bytes(self) -> bytes | None:
        length = self.read_i32()
        if length == -1:
            return None
        return self.take(length & 0xFFFFFFFF)

    def read_boolean(self) -> bool:
        return self.take(1) != b"\x00"

    def read_kafka_code(self) -> KafkaCode:
        value = self.read_i16()
        try:
            return KafkaCode(value)
        except ValueError:
            logger.error("Unhandled Kafka code :: %d", value)
            return KafkaCode.UNKNOWN

    def read_array(self, parse: Callable[["Reader"], T]) -> list[T]:
        """Read an int32-counted array; a count of -1 means empty."""
        length = self.read_i32()
        if length == -1:
            return []
        if length < 0:
            raise ParsingError(self._data, f"invalid array length {length}")
        return [parse(self) for _ in range(length)]

    def read_varint_array(self, parse: Callable[["Reader"], T]) -> list[T]:
        """Read a varint-counted array whose count is sent doubled."""
        length = self.read_varint()
        if length == 0:
            return []
        return [parse(self) for _ in range(length // 2)]


class Writer:
    """Accumulates encoded protocol values."""

    def __init__(self) -> None:
        self._buffer = bytearray()

    def _pack(self, fmt: str, value: int) -> None:
        try:
            self._buffer += struct.pack(fmt, value)
        except struct.error as exc:
            raise ValueError(f"value {value!r} does not fit {fmt!r}") from exc

    def int8(self, value: int) -> None:
        self._pack(">b", value)

    def int16(self, value: int) -> None:
        self._pack(">h", value)

    def int32(self, value: int) -> None:
        self._pack(">i", value)

    def int64(self, value: int) -> None:
        self._pack(">q", value)

    def boolean(self, value: bool) -> None:
        self._buffer.append(1 if value else 0)

    def string(self, value: str | bytes) -> None:
        raw = value.encode("utf-8") if isinstance(value, str) else bytes(value)
        if len(raw) > _I16_MAX:
            raise ValueError(f"string of {len(raw)} bytes is too long to encode")
        self.int16(len(raw))
        self._buffer += raw

    def nullable_string(self, value: str | bytes | None) -> None:
        # A missing value is written as a four-byte -1, as brokers expect here.
        if value is None:
            self.int32(-1)
        else:
            self.string(value)

    def array(self, items: Iterable[T], encode: Callable[[T], None]) -> None:
        """Write an int32 count followed by each item through ``encode``."""
        items = list(items)
        self.int32(len(items))
        for item in items:
            encode(item)

    def getvalue(self) -> bytes:
        return bytes(self._buffer)


@dataclass
class HeaderRequest:
    """Header that starts every request."""

    api_key: int
    api_version: int
    correlation_id: int
    client_id: str

    def encode(self, writer: Writer) -> None:
        writer.int16(self.api_key)
        writer.int16(self.api_version)
        writer.int32(self.correlation_id)
        writer.string(self.client_id)


@dataclass
class HeaderResponse:
    """Header that starts every response."""

    correlation_id: int


def parse_header_response(reader: Reader) -> HeaderResponse:
    return HeaderResponse(correlation_id=reader.read_i32())
# samsa

Building blocks for talking to Kafka and Redpanda brokers from Python:
binary encoding of requests, parsing of responses, and asyncio
connections over plain TCP or TLS. It has no dependencies beyond the
standard library.

## Install

```
pip install .
pip install ".[test]"   # with the test tools
```

## Modules

- `samsa.wire` — the primitive types of the protocol:
  - `Reader`, a sequential decoder with `read_i8`, `read_i16`,
    `read_u16`, `read_i32`, `read_u32`, `read_i64`, `read_varint`,
    `read_string`, `read_bytes`, `read_nullable_string`,
    `read_nullable_bytes`, `read_boolean`, `read_kafka_code`,
    `read_array`, `read_varint_array`, `take` and `remaining`.
    Reading past the end raises `ParsingError`. An array count of -1
    reads as an empty list. Varint-counted arrays and record lengths are
    sent doubled by some brokers; `read_varint_array` halves the count,
    `read_varint` returns the raw value.
  - `Writer`, an encoder with `int8`, `int16`, `int32`, `int64`,
    `boolean`, `string`, `nullable_string`, `array` and `getvalue`.
    Values that do not fit their type raise `ValueError`.
  - `HeaderRequest`, `HeaderResponse` and `parse_header_response`.
  - `KafkaCode`, the broker error codes; an unknown code reads as
    `KafkaCode.UNKNOWN`.
  - The exceptions `SamsaError` (base of the others), `KafkaError`
    (carries `.code`) and `ParsingError` (carries `.data` and `.reason`).
- `samsa.protocol.commit_offset` — `OffsetCommitRequest` (v2) and
  `OffsetCommitResponse`. Adding the same topic and partition twice
  overwrites the staged offset.
- `samsa.protocol.create_topics` — `CreateTopicsRequest` (v3) and
  `CreateTopicsResponse`. A topic added twice is kept once.
- `samsa.protocol.delete_topics` — `DeleteTopicsRequest` (v3) and
  `DeleteTopicsResponse`. A topic added twice is kept once.
- `samsa.protocol.fetch` — `FetchRequest` (v4) and `FetchResponse`,
  with `RecordBatch`, `Record`, `RecordHeader`, `BatchAttributes` and
  `parse_record_batch`. Uncompressed and gzip-compressed batches are
  decoded; record batches of a partition are read until one no longer
  parses. `FetchedPartition.records()` yields
  `(partition id, error code, base offset, base timestamp, record)`,
  and every level has `record_count()`.
- `samsa.protocol.find_coordinator` — `FindCoordinatorRequest` (v0) and
  `FindCoordinatorResponse`.
- `samsa.protocol.heartbeat` — `HeartbeatRequest` (v0) and
  `HeartbeatResponse`.
- `samsa.network.base` — `BrokerAddress`, the abstract
  `BrokerConnection` with `send_request` and `receive_response`, and
  `frame_request`, which encodes a request and prefixes it with its
  int32 length.
- `samsa.network.tcp` — `TcpConnection`, with `connect`, `from_addr`,
  `send_request`, `receive_response` and `close`; it is also an async
  context manager.
- `samsa.network.tls` — `TlsConnectionOptions` (brokers, client key,
  client certificate and an optional CA file; without one the system's
  default roots are trusted), `build_ssl_context` and `TlsConnection`,
  with the same methods as `TcpConnection`.

## Example

```python
import asyncio

from samsa.network.base import BrokerAddress
from samsa.network.tcp import TcpConnection
from samsa.protocol.find_coordinator import (
    FindCoordinatorRequest,
    FindCoordinatorResponse,
)


async def main():
    async with await TcpConnection.connect(
        [BrokerAddress(host="127.0.0.1", port=9092)]
    ) as conn:
        await conn.send_request(FindCoordinatorRequest(1, "rust", "my-group"))
        response = FindCoordinatorResponse.from_bytes(await conn.receive_response())
        print(response.host, response.port)


asyncio.run(main())
```

Every request has `encode(writer)` and `to_bytes()`. Every response has
`from_bytes(data)`, which raises `ParsingError` on malformed input.
The Offset Commit, Create Topics and Delete Topics responses have
`raise_for_error()`, which raises `KafkaError` for the first code that
is not `KafkaCode.NONE`.

`connect` tries the given brokers in order and returns the first
connection made; if none can be reached the last `OSError` is raised,
and an address that cannot be resolved raises `SamsaError`. A broker
answers the requests on one connection in the order they were sent, so
read each reply with `receive_response()` in that order.

## What it does not do

This package encodes and decodes single requests and responses and
moves them over a connection. It has no producer or consumer client, no
batching, no cluster metadata or leader lookup, no consumer group
membership beyond the heartbeat and offset commit messages, and no SASL
authentication. It has no Produce request, and it decodes no
compression codec other than gzip.

## Tests

```
pytest
```
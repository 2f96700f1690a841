import pytest

from samsa.protocol.find_coordinator import (
    FindCoordinatorRequest,
    FindCoordinatorResponse,
    parse_find_coordinator_response,
)
from samsa.wire import HeaderResponse, KafkaCode, ParsingError, Reader, Writer

RESPONSE = b"\0\0\0\x01\0\0\0\0\0\x01\0\tlocalhost\0\0#\x84"


def test_encode():
    expected = bytes(
        [
            0, 10, 0, 0, 0, 0, 0, 1, 0, 4, 114, 117, 115, 116, 0, 8, 66, 105, 103, 32, 68, 111,
            103, 115,
        ]
    )
    request = FindCoordinatorRequest(1, "rust", "Big Dogs")
    assert request.to_bytes() == expected


def test_encode_into_writer_matches_to_bytes():
    request = FindCoordinatorRequest(1, "rust", "Big Dogs")
    writer = Writer()
    request.encode(writer)
    assert writer.getvalue() == request.to_bytes()


def test_parse():
    expected = FindCoordinatorResponse(
        header=HeaderResponse(correlation_id=1),
        error_code=KafkaCode.NONE,
        node_id=1,
        host=b"localhost",
        port=9092,
    )
    assert parse_find_coordinator_response(Reader(RESPONSE)) == expected


def test_from_bytes():
    response = FindCoordinatorResponse.from_bytes(RESPONSE)
    assert response.host == b"localhost"
    assert response.port == 9092


def test_from_bytes_truncated():
    with pytest.raises(ParsingError):
        FindCoordinatorResponse.from_bytes(RESPONSE[:-3])
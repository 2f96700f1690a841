import pytest

from samsa.protocol.create_topics import (
    Assignment,
    CreatedTopic,
    CreateTopicsRequest,
    CreateTopicsResponse,
    NewTopic,
    TopicConfig,
    parse_create_topics_response,
)
from samsa.wire import HeaderResponse, KafkaCode, KafkaError, ParsingError, Reader, Writer

RESPONSE = b"\0\0\0\x01\0\0\0\0\0\0\0\x01\0\x0ftester-creation\0\0\xff\xff"


def test_encode():
    expected = bytes(
        [
            0, 19, 0, 3, 0, 0, 0, 1, 0, 4, 114, 117, 115, 116, 0, 0, 0, 1, 0, 15, 116, 101, 115,
            116, 101, 114, 45, 99, 114, 101, 97, 116, 105, 111, 110, 0, 0, 0, 1, 0, 0, 0, 0, 0, 0,
            0, 0, 0, 0, 0, 0, 7, 208, 0,
        ]
    )
    req = CreateTopicsRequest(1, "rust", 2000, False)
    req.add("tester-creation", 1, 0)
    assert req.to_bytes() == expected


def test_parse():
    expected = CreateTopicsResponse(
        header=HeaderResponse(correlation_id=1),
        throttle_time_ms=0,
        topics=[CreatedTopic(b"tester-creation", KafkaCode.NONE, None)],
    )
    assert parse_create_topics_response(Reader(RESPONSE)) == expected


def test_from_bytes_matches_parse():
    response = CreateTopicsResponse.from_bytes(RESPONSE)
    assert response.topics[0].name == b"tester-creation"
    assert response.header.correlation_id == 1


def test_from_bytes_truncated_raises():
    with pytest.raises(ParsingError):
        CreateTopicsResponse.from_bytes(RESPONSE[:-3])


def test_add_ignores_duplicates():
    req = CreateTopicsRequest(1, "rust", 2000, True)
    req.add("a", 3, 1)
    req.add("a", 5, 2)
    req.add("b", 1, 1)
    assert [t.name for t in req.topics] == ["a", "b"]
    assert req.topics[0].num_partitions == 3
    assert req.topics[0].replication_factor == 1


def test_validate_only_encoded_as_last_byte():
    req = CreateTopicsRequest(1, "rust", 2000, True)
    assert req.to_bytes()[-1] == 1


def test_assignment_encode():
    writer = Writer()
    Assignment(1, [2, 3]).encode(writer)
    assert writer.getvalue() == b"\0\0\0\x01\0\0\0\x02\0\0\0\x02\0\0\0\x03"


def test_config_encode():
    writer = Writer()
    TopicConfig("a", "b").encode(writer)
    assert writer.getvalue() == b"\0\x01a\0\x01b"


def test_new_topic_encode():
    writer = Writer()
    NewTopic("t", 2, 1).encode(writer)
    assert writer.getvalue() == b"\0\x01t\0\0\0\x02\0\x01\0\0\0\0\0\0\0\0"


def test_raise_for_error():
    ok = CreatedTopic(b"a", KafkaCode.NONE)
    ok.raise_for_error()
    response = CreateTopicsResponse(
        HeaderResponse(1),
        0,
        [ok, CreatedTopic(b"b", KafkaCode.TOPIC_ALREADY_EXISTS, b"exists")],
    )
    with pytest.raises(KafkaError) as info:
        response.raise_for_error()
    assert info.value.code == KafkaCode.TOPIC_ALREADY_EXISTS
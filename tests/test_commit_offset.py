import pytest

from samsa.protocol.commit_offset import (
    CommitPartition,
    CommitTopic,
    OffsetCommitRequest,
    OffsetCommitResponse,
    PartitionResult,
    TopicResult,
    parse_offset_commit_response,
)
from samsa.wire import (
    HeaderResponse,
    KafkaCode,
    KafkaError,
    ParsingError,
    Reader,
    SamsaError,
    Writer,
)


def _request():
    return OffsetCommitRequest(1, "rust", "Big Dogs", 1, b"Da Boss", 2000)


def test_encode():
    expected = bytes([
        0, 8, 0, 2, 0, 0, 0, 1, 0, 4, 114, 117, 115, 116, 0, 8, 66, 105, 103, 32, 68, 111, 103,
        115, 0, 0, 0, 1, 0, 7, 68, 97, 32, 66, 111, 115, 115, 0, 0, 0, 0, 0, 0, 7, 208, 0, 0,
        0, 1, 0, 9, 112, 117, 114, 99, 104, 97, 115, 101, 115, 0, 0, 0, 1, 0, 0, 0, 0, 0, 0, 0,
        0, 0, 0, 1, 44, 255, 255, 255, 255,
    ])
    req = _request()
    req.add("purchases", 0, 300, None)
    writer = Writer()
    req.encode(writer)
    assert writer.getvalue() == expected
    assert req.to_bytes() == expected


def test_parse():
    data = b"\0\0\0\x01\0\0\0\x01\0\0\0\0\0\0"
    expected = OffsetCommitResponse(
        header=HeaderResponse(correlation_id=1),
        topics=[TopicResult(name=b"", partitions=[])],
    )
    assert parse_offset_commit_response(Reader(data)) == expected
    assert OffsetCommitResponse.from_bytes(data) == expected


def test_add_to_req():
    request = _request()
    metadata = "Testing This"
    for partition in [0, 1, 2, 3]:
        request.add("purchases", partition, 300, metadata)
    for partition in [0, 1, 2, 3]:
        request.add("purchases", partition, 300, metadata)
    for partition in [0, 1, 2, 3]:
        request.add("second topic", partition, 300, metadata)

    assert len(request.topics) == 2
    assert request.topics[0].name == "purchases"
    assert len(request.topics[0].partitions) == 4
    assert request.topics[1].name == "second topic"
    assert len(request.topics[1].partitions) == 4
    for partition in request.topics[0].partitions:
        assert partition.committed_offset == 300
        assert partition.committed_metadata == metadata


def test_add_overwrites_offset_only():
    request = _request()
    request.add("t", 0, 10, "first")
    request.add("t", 0, 20, "second")
    assert request.topics == [CommitTopic("t", [CommitPartition(0, 20, "first")])]


def test_member_id_accepts_str():
    request = OffsetCommitRequest(1, "rust", "g", -1, "", 0)
    assert request.member_id == ""


def test_member_id_invalid_utf8():
    with pytest.raises(SamsaError):
        OffsetCommitRequest(1, "rust", "g", 1, b"\xff\xfe", 0)


def test_response_with_error_raises():
    data = (
        b"\x00\x00\x00\x05"
        b"\x00\x00\x00\x01"
        b"\x00\x01t"
        b"\x00\x00\x00\x02"
        b"\x00\x00\x00\x00\x00\x00"
        b"\x00\x00\x00\x01\x00\x19"
    )
    response = OffsetCommitResponse.from_bytes(data)
    assert response.topics[0].partitions[1] == PartitionResult(1, KafkaCode.UNKNOWN_MEMBER_ID)
    with pytest.raises(KafkaError) as info:
        response.raise_for_error()
    assert info.value.code is KafkaCode.UNKNOWN_MEMBER_ID


def test_response_without_error():
    data = b"\x00\x00\x00\x05\x00\x00\x00\x01\x00\x01t\x00\x00\x00\x01\x00\x00\x00\x03\x00\x00"
    response = OffsetCommitResponse.from_bytes(data)
    response.raise_for_error()
    assert response.topics[0].partitions == [PartitionResult(3, KafkaCode.NONE)]


def test_truncated_response():
    data = b"\x00\x00\x00\x01\x00\x00\x00\x02\x00"
    with pytest.raises(ParsingError) as info:
        OffsetCommitResponse.from_bytes(data)
    assert info.value.data == data
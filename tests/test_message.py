import pytest

from ytdatanode.message import HEADER_SIZE, MsgType, parse_header, verify_vhf


def test_header_wire_bytes():
    assert MsgType.NODE_CAPACITY_RESPONSE.header() == b"\xe6\x84"
    assert MsgType.DOWNLOAD_SHARD_RESPONSE.header() == b"\x7a\x56"
    assert MsgType.STRING.header() == b"\x00\x11"


def test_values_match_identifiers():
    assert parse_header(b"\x17\x57") == (MsgType.DOWNLOAD_SHARD_REQUEST, b"")
    assert parse_header(b"\x2c\xb0body") == (MsgType.MULTI_TASK_DESCRIPTION, b"body")
    assert MsgType.DOWNLOAD_SHARD_REQUEST.header() == b"\x17\x57"
    assert MsgType.MULTI_TASK_DESCRIPTION.header() == b"\x2c\xb0"


@pytest.mark.parametrize("msg_type", list(MsgType))
def test_header_round_trip(msg_type):
    payload = b"payload-bytes"
    framed = msg_type.header() + payload
    assert len(msg_type.header()) == HEADER_SIZE
    assert parse_header(framed) == (msg_type, payload)


def test_identifiers_are_distinct():
    parsed = [parse_header(t.header())[0] for t in MsgType]
    assert parsed == list(MsgType)
    assert len(set(parsed)) == len(parsed)


def test_parse_header_unknown_identifier():
    msg_id, payload = parse_header(b"\x00\x01rest")
    assert msg_id == 1
    assert not isinstance(msg_id, MsgType)
    assert payload == b"rest"


def test_parse_header_empty_payload():
    assert parse_header(MsgType.VOID_RESPONSE.header()) == (MsgType.VOID_RESPONSE, b"")


@pytest.mark.parametrize("data", [b"", b"\x01"])
def test_parse_header_too_short(data):
    with pytest.raises(ValueError):
        parse_header(data)


def test_verify_vhf_empty_data():
    assert verify_vhf(b"", bytes.fromhex("d41d8cd98f00b204e9800998ecf8427e")) is True


def test_verify_vhf_mismatch():
    assert verify_vhf(b"shard", b"\x00" * 16) is False


def test_verify_vhf_detects_changed_data():
    digest = bytes.fromhex("d41d8cd98f00b204e9800998ecf8427e")
    assert verify_vhf(b"x", digest) is False
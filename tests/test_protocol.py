import pytest

from motive_sdk_python.stream_client.protocol import (
    KEEP_ALIVE_MESSAGE_SIZE,
    MESSAGE_FRAME_OF_DATA,
    MESSAGE_KEEP_ALIVE,
    MalformedFrameError,
    ProtocolVersion,
    build_connect_message,
    build_keep_alive_message,
    get_message_type,
)


def test_connect_message_is_two_zero_bytes():
    assert build_connect_message() == b"\x00\x00"


def test_keep_alive_message_layout():
    message = build_keep_alive_message()
    assert len(message) == KEEP_ALIVE_MESSAGE_SIZE
    assert message[:2] == b"\x0a\x00"
    assert message[2:] == b"\x00\x00\x00"
    assert get_message_type(message) == MESSAGE_KEEP_ALIVE


def test_message_type_is_little_endian():
    assert get_message_type(b"\x07\x00\xff\xff") == MESSAGE_FRAME_OF_DATA
    assert get_message_type(bytearray(b"\x07\x00garbage"), length=2) == MESSAGE_FRAME_OF_DATA


def test_message_type_of_short_datagram_is_malformed():
    with pytest.raises(MalformedFrameError):
        get_message_type(b"\x07")
    with pytest.raises(MalformedFrameError):
        get_message_type(bytearray(16), length=1)


@pytest.mark.parametrize("text, expected", [
    ("1.10.2", ProtocolVersion.V1_10_2),
    ("2.1.1", ProtocolVersion.V2_1_1),
    ("V2_1_1", ProtocolVersion.V2_1_1),
    ("3", ProtocolVersion.V3),
    ("3.1.0", ProtocolVersion.V3),
    (ProtocolVersion.V3, ProtocolVersion.V3),
])
def test_protocol_version_parse(text, expected):
    assert ProtocolVersion.parse(text) is expected


@pytest.mark.parametrize("text", ["2.0", "1.9", "", "latest"])
def test_protocol_version_parse_rejects_unknown(text):
    with pytest.raises(ValueError):
        ProtocolVersion.parse(text)

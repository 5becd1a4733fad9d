"""
Wire protocol constants for the Motive command/data stream.

Every multi-byte field on the wire is little-endian. A message is a
``uint16`` type code followed by a type-specific payload.
"""

import struct
from enum import Enum


# Byte order used by Motive
BYTE_ORDER = "<"

# Motive's command port (change if Motive's streaming settings change)
MOTIVE_COMMAND_PORT = 1510
# The port this application talks to Motive from
APPLICATION_PORT = 1512
DEFAULT_SERVER_ADDRESS = "127.0.0.1"

# Message types
MESSAGE_CONNECT = 0
MESSAGE_SERVER_INFO = 1
MESSAGE_FRAME_OF_DATA = 7
MESSAGE_KEEP_ALIVE = 10

MESSAGE_NAMES = {
    MESSAGE_CONNECT: "CONNECT",
    MESSAGE_SERVER_INFO: "SERVER_INFO",
    MESSAGE_FRAME_OF_DATA: "FRAME_OF_DATA",
    MESSAGE_KEEP_ALIVE: "KEEP_ALIVE",
}

# Single reused receive buffer; larger datagrams are not supported
RECEIVE_BUFFER_SIZE = 64 * 1024

CONNECT_MESSAGE_SIZE = 2
KEEP_ALIVE_MESSAGE_SIZE = 5
KEEP_ALIVE_INTERVAL = 1.0  # seconds

# Precompiled structs for parsing
MessageType = struct.Struct(BYTE_ORDER + "H")
Int16Value = struct.Struct(BYTE_ORDER + "h")
Int32Value = struct.Struct(BYTE_ORDER + "i")
UInt8Value = struct.Struct(BYTE_ORDER + "B")
FloatValue = struct.Struct(BYTE_ORDER + "f")
Vector3 = struct.Struct(BYTE_ORDER + "fff")
Quaternion = struct.Struct(BYTE_ORDER + "ffff")


class MotiveStreamError(Exception):
    """Base class for streaming client errors."""


class ConnectionSetupError(MotiveStreamError):
    """The session could not be set up (address resolution or bind failed)."""


class MalformedFrameError(MotiveStreamError, ValueError):
    """A read would run past the end of the received message."""


class SocketIOError(MotiveStreamError):
    """Socket error raised while the receive loop was running."""


class ProtocolVersion(Enum):
    """Motive versions whose FRAME_OF_DATA layout is supported."""

    V1_10_2 = "1.10.2"
    V2_1_1 = "2.1.1"
    V3 = "3"

    @classmethod
    def parse(cls, value):
        """
        Resolve a version from an enum member or a version string.

        Any "3.x" string selects the V3 layout.

        Raises:
            ValueError: If the version has no known frame layout
        """
        if isinstance(value, cls):
            return value
        text = str(value).strip().lower().lstrip("v").replace("_", ".")
        for version in cls:
            if text == version.value:
                return version
        major = text.split(".", 1)[0]
        if major.isdigit() and int(major) >= 3:
            return cls.V3
        raise ValueError(f"Unsupported protocol version: {value!r}. "
                         f"Supported: {[v.value for v in cls]}")


def build_connect_message():
    """CONNECT: two zero bytes, sent once at session start."""
    return MessageType.pack(MESSAGE_CONNECT)


def build_keep_alive_message():
    """KEEP_ALIVE: type code followed by zero padding."""
    message = bytearray(KEEP_ALIVE_MESSAGE_SIZE)
    MessageType.pack_into(message, 0, MESSAGE_KEEP_ALIVE)
    return bytes(message)


def get_message_type(data, length=None):
    """
    Read the message type code at the start of a datagram.

    Args:
        data: Buffer holding the datagram
        length: Number of valid bytes in ``data`` (default: ``len(data)``)

    Raises:
        MalformedFrameError: If the datagram is shorter than the envelope
    """
    if length is None:
        length = len(data)
    if length < MessageType.size:
        raise MalformedFrameError(f"Datagram too short for envelope ({length} bytes)")
    return MessageType.unpack_from(data, 0)[0]

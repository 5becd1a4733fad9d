"""
PacketReader - Bounds-checked little-endian cursor over a receive buffer.

The streaming client receives every datagram into the same fixed-size
buffer, so the reader carries its own logical length and is reset to
offset 0 before each message instead of being reallocated.
"""

from .protocol import (
    Int16Value,
    Int32Value,
    UInt8Value,
    FloatValue,
    Vector3,
    Quaternion,
    MessageType,
    MalformedFrameError,
)


class PacketReader:
    """
    Forward-only reader for Motive packets.

    Reads never seek backward and never go past ``length``; any read that
    would overrun the message raises MalformedFrameError.

    Example usage:
        buffer = bytearray(RECEIVE_BUFFER_SIZE)
        reader = PacketReader(buffer)
        nbytes = sock.recv_into(buffer)
        reader.reset(nbytes)
        message_type = reader.read_uint16()
    """

    def __init__(self, data, length=None):
        """
        Initialize the reader.

        Args:
            data: bytes, bytearray or memoryview holding the message
            length: Number of valid bytes (default: ``len(data)``)
        """
        self.data = data
        self.i = 0
        self.n = 0
        self.reset(len(data) if length is None else length)

    def reset(self, length=None):
        """Rewind to offset 0 and optionally set a new message length."""
        if length is not None:
            if length < 0 or length > len(self.data):
                raise ValueError(f"Invalid message length {length} for buffer of {len(self.data)} bytes")
            self.n = length
        self.i = 0

    @property
    def position(self):
        return self.i

    @property
    def remaining(self):
        return self.n - self.i

    def _require(self, size, what):
        if self.i + size > self.n:
            raise MalformedFrameError(
                f"{what} truncated at offset {self.i}: need {size} bytes, "
                f"{self.n - self.i} left of {self.n}"
            )

    def _unpack(self, st, what):
        self._require(st.size, what)
        val = st.unpack_from(self.data, self.i)
        self.i += st.size
        return val

    def read_uint8(self):
        return self._unpack(UInt8Value, "uint8")[0]

    def read_uint16(self):
        return self._unpack(MessageType, "uint16")[0]

    def read_int16(self):
        return self._unpack(Int16Value, "int16")[0]

    def read_int32(self):
        return self._unpack(Int32Value, "int32")[0]

    def read_float32(self):
        return self._unpack(FloatValue, "float32")[0]

    def read_vector3(self):
        """Read an (x, y, z) float32 triple."""
        return self._unpack(Vector3, "vector3")

    def read_quaternion(self):
        """Read a (qx, qy, qz, qw) float32 quaternion."""
        return self._unpack(Quaternion, "quaternion")

    def read_count(self, what="count"):
        """Read an int32 element count; negative counts are malformed."""
        count = self.read_int32()
        if count < 0:
            raise MalformedFrameError(f"Negative {what} {count} at offset {self.i - Int32Value.size}")
        return count

    def skip(self, size, what="field"):
        self._require(size, what)
        self.i += size

    def skip_vectors(self, count):
        """Skip ``count`` float32 (x, y, z) triples."""
        self.skip(count * Vector3.size, f"{count} marker positions")

    def read_cstring(self):
        """
        Read a null-terminated string.

        The length is not prefixed, so the terminator is scanned for
        within the message bounds only.

        Returns:
            The decoded name (without terminator), possibly empty

        Raises:
            MalformedFrameError: If no terminator occurs before ``length``
        """
        start = self.i
        if isinstance(self.data, memoryview):
            end = self.data[start:self.n].tobytes().find(b"\x00")
            end = end + start if end >= 0 else -1
        else:
            end = self.data.find(b"\x00", start, self.n)
        if end < 0:
            raise MalformedFrameError(f"Unterminated string at offset {start}")
        s = bytes(self.data[start:end]).decode("utf-8", errors="replace")
        self.i = end + 1
        return s

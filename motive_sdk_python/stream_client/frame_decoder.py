"""
FrameDecoder - Versioned FRAME_OF_DATA decoding.

The frame layout is position-dependent and carries no lengths for most
fields, so the whole payload has to be walked in order to reach the
rigid bodies:

    int16   buffer size
    int32   frame number
    int32   marker set count
              cstring name, int32 marker count, marker count * (x, y, z)
    int32   unlabeled marker count
              unlabeled marker count * (x, y, z)
    int32   rigid body count
              int32 id, (x, y, z), (qx, qy, qz, qw), version trailer
    ...     skeletons and later sections (never decoded)

Only the rigid body trailer differs between the supported Motive
versions; everything else is shared by FrameDecoder.decode().
"""

from collections import namedtuple

from .protocol import ProtocolVersion


RigidBodyUpdate = namedtuple("RigidBodyUpdate", ["id", "x", "y", "z"])


class FrameDecoder:
    """
    Base decoder. Subclasses only skip their version's rigid body trailer.

    Decoded output goes to a sink with ``rigid_body_update(update)`` and
    ``frame_complete()`` methods. Each rigid body is handed to the sink as
    soon as its position is read, before its orientation and trailer.

    Example usage:
        decoder = get_frame_decoder("3")
        reader.reset(nbytes)
        reader.read_uint16()          # message type
        decoder.decode(reader, registry)
    """

    version = None

    def __init__(self):
        self.last_frame_number = None

    def decode(self, reader, sink):
        """
        Decode one FRAME_OF_DATA payload.

        Args:
            reader: PacketReader positioned right after the message type
            sink: Receiver of rigid body updates and the frame-complete signal

        Raises:
            MalformedFrameError: If the payload ends before the rigid body
                section does
        """
        reader.read_int16()  # buffer size
        self.last_frame_number = reader.read_int32()

        self._skip_marker_sets(reader)
        self._skip_unlabeled_markers(reader)

        rigid_body_count = reader.read_count("rigid body count")
        for _ in range(rigid_body_count):
            body_id = reader.read_int32()
            x, y, z = reader.read_vector3()
            sink.rigid_body_update(RigidBodyUpdate(body_id, x, y, z))
            reader.read_quaternion()  # orientation is not used
            self._skip_rigid_body_trailer(reader)

        # Skeletons follow in later versions; they are never decoded.
        sink.frame_complete()

    def _skip_marker_sets(self, reader):
        marker_set_count = reader.read_count("marker set count")
        for _ in range(marker_set_count):
            reader.read_cstring()
            marker_count = reader.read_count("marker count")
            reader.skip_vectors(marker_count)

    def _skip_unlabeled_markers(self, reader):
        unlabeled_marker_count = reader.read_count("unlabeled marker count")
        reader.skip_vectors(unlabeled_marker_count)

    def _skip_rigid_body_trailer(self, reader):
        raise NotImplementedError

    def __repr__(self):
        return f"{type(self).__name__}()"


class FrameDecoderV1_10_2(FrameDecoder):
    """Motive 1.10.2: a counted list of rigid body marker positions."""

    version = ProtocolVersion.V1_10_2

    def _skip_rigid_body_trailer(self, reader):
        rb_marker_count = reader.read_count("rigid body marker count")
        reader.skip_vectors(rb_marker_count)


class FrameDecoderV2_1_1(FrameDecoder):
    """Motive 2.1.1: one float32 and one int16, both unused."""

    version = ProtocolVersion.V2_1_1

    def _skip_rigid_body_trailer(self, reader):
        reader.read_float32()
        reader.read_int16()


class FrameDecoderV3(FrameDecoder):
    """Motive 3 and later: marker error then two status bytes."""

    version = ProtocolVersion.V3

    def __init__(self):
        super().__init__()
        self.last_tracking_valid = None

    def _skip_rigid_body_trailer(self, reader):
        reader.read_float32()  # mean marker error
        status = reader.read_uint8()
        reader.read_uint8()
        self.last_tracking_valid = bool(status & 0x01)


FRAME_DECODER_DICT = {
    ProtocolVersion.V1_10_2: FrameDecoderV1_10_2,
    ProtocolVersion.V2_1_1: FrameDecoderV2_1_1,
    ProtocolVersion.V3: FrameDecoderV3,
}


def get_frame_decoder(version):
    """
    Create the decoder for a protocol version.

    Args:
        version: ProtocolVersion or version string ("1.10.2", "2.1.1", "3", "3.1", ...)

    Returns:
        A new FrameDecoder instance

    Raises:
        ValueError: If the version is not supported
    """
    return FRAME_DECODER_DICT[ProtocolVersion.parse(version)]()

"""
Synthetic Motive messages for tests and the mock server example.

Builds FRAME_OF_DATA payloads in the layout each supported Motive version
sends, plus the SERVER_INFO reply.
"""

import struct

from .protocol import (
    BYTE_ORDER,
    MESSAGE_FRAME_OF_DATA,
    MESSAGE_SERVER_INFO,
    MessageType,
    Int16Value,
    Int32Value,
    FloatValue,
    Vector3,
    Quaternion,
    ProtocolVersion,
)

IDENTITY_QUATERNION = (0.0, 0.0, 0.0, 1.0)

# SERVER_INFO body: application name (256 bytes), app version, NatNet version
_SERVER_INFO_BODY = struct.Struct(BYTE_ORDER + "256s4B4B")


def _pack_vectors(parts, vectors):
    for vec in vectors:
        parts.append(Vector3.pack(*vec))


def build_rigid_body_trailer(version, markers=(), marker_error=0.0, tracking_valid=True):
    """
    Encode the version-specific tail of one rigid body.

    Args:
        version: ProtocolVersion or version string
        markers: (x, y, z) rigid body markers, only sent by 1.10.2
        marker_error: Mean marker error (2.1.1 and 3)
        tracking_valid: Bit 0 of the first status byte (3)
    """
    version = ProtocolVersion.parse(version)
    if version is ProtocolVersion.V1_10_2:
        parts = [Int32Value.pack(len(markers))]
        _pack_vectors(parts, markers)
        return b"".join(parts)
    if version is ProtocolVersion.V2_1_1:
        return FloatValue.pack(marker_error) + Int16Value.pack(0)
    status = 0x01 if tracking_valid else 0x00
    return FloatValue.pack(marker_error) + bytes([status, 0])


def build_frame_of_data(
    rigid_bodies,
    version=ProtocolVersion.V3,
    marker_sets=(),
    unlabeled_markers=(),
    frame_number=0,
    include_envelope=True,
    trailing=b"",
):
    """
    Encode a FRAME_OF_DATA message.

    Args:
        rigid_bodies: Sequence of (id, x, y, z) or dicts with keys
            "id", "p", optional "q", "markers", "tracking_valid"
        version: Layout of the rigid body trailer
        marker_sets: Sequence of (name, [(x, y, z), ...])
        unlabeled_markers: Sequence of (x, y, z)
        frame_number: Frame number field
        include_envelope: Prefix the uint16 message type
        trailing: Extra bytes appended after the rigid bodies (e.g. skeletons)

    Returns:
        The encoded message as bytes
    """
    version = ProtocolVersion.parse(version)
    body = [Int32Value.pack(frame_number), Int32Value.pack(len(marker_sets))]
    for name, markers in marker_sets:
        if isinstance(name, str):
            name = name.encode("utf-8")
        body.append(name + b"\x00")
        body.append(Int32Value.pack(len(markers)))
        _pack_vectors(body, markers)

    body.append(Int32Value.pack(len(unlabeled_markers)))
    _pack_vectors(body, unlabeled_markers)

    body.append(Int32Value.pack(len(rigid_bodies)))
    for rb in rigid_bodies:
        if isinstance(rb, dict):
            body_id, (x, y, z) = rb["id"], rb["p"]
            q = rb.get("q", IDENTITY_QUATERNION)
            markers = rb.get("markers", ())
            tracking_valid = rb.get("tracking_valid", True)
        else:
            body_id, x, y, z = rb
            q = IDENTITY_QUATERNION
            markers = ()
            tracking_valid = True
        body.append(Int32Value.pack(body_id))
        body.append(Vector3.pack(x, y, z))
        body.append(Quaternion.pack(*q))
        body.append(build_rigid_body_trailer(version, markers, tracking_valid=tracking_valid))

    body.append(trailing)
    payload = b"".join(body)
    # The leading int16 is the size of what follows it, as Motive sends it
    payload = Int16Value.pack(min(len(payload), 0x7FFF)) + payload
    if include_envelope:
        return MessageType.pack(MESSAGE_FRAME_OF_DATA) + payload
    return payload


def build_server_info_message(app_name="Motive", app_version=(3, 0, 0, 0), natnet_version=(3, 0, 0, 0)):
    """Encode the SERVER_INFO reply Motive sends after CONNECT."""
    return MessageType.pack(MESSAGE_SERVER_INFO) + _SERVER_INFO_BODY.pack(
        app_name.encode("utf-8"), *app_version, *natnet_version
    )

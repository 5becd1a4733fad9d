"""
MotiveStreamClient - Real-time rigid body positions from Motive over UDP.

This package connects to Motive's command port, keeps the stream alive
and decodes FRAME_OF_DATA messages into rigid body updates.

Example usage:
    from motive_sdk_python.stream_client import MotiveStreamClient, RigidBodyTracker

    # Initialize client for the Motive version you run
    client = MotiveStreamClient(protocol_version="3")

    # Register listeners before starting
    client.add_rigid_body_listener(lambda id, x, y, z: print(id, x, y, z))
    tracker = RigidBodyTracker(client)

    # Start receiving
    client.start()

    # Main loop
    while running:
        frame = tracker.get_latest_frame()
        if frame:
            print(f"Frame {frame['frame_idx']}: {len(frame['rigid_bodies'])} rigid bodies")

    # Cleanup
    client.stop()

Supported frame layouts: Motive 1.10.2, 2.1.1 and 3+.
"""

from .protocol import (
    ProtocolVersion,
    MotiveStreamError,
    ConnectionSetupError,
    MalformedFrameError,
    SocketIOError,
)
from .packet_reader import PacketReader
from .frame_decoder import (
    RigidBodyUpdate,
    FrameDecoder,
    FrameDecoderV1_10_2,
    FrameDecoderV2_1_1,
    FrameDecoderV3,
    get_frame_decoder,
)
from .keep_alive import KeepAliveTicker
from .listeners import ListenerHandle, ListenerRegistry, DispatchQueue
from .stream_client import MotiveStreamClient, ConnectionState
from .rigid_body_tracker import RigidBodyTracker

__all__ = [
    "MotiveStreamClient",
    "ConnectionState",
    "RigidBodyTracker",
    "RigidBodyUpdate",
    "ProtocolVersion",
    "PacketReader",
    "FrameDecoder",
    "FrameDecoderV1_10_2",
    "FrameDecoderV2_1_1",
    "FrameDecoderV3",
    "get_frame_decoder",
    "KeepAliveTicker",
    "ListenerHandle",
    "ListenerRegistry",
    "DispatchQueue",
    "MotiveStreamError",
    "ConnectionSetupError",
    "MalformedFrameError",
    "SocketIOError",
]

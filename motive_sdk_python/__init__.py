"""
Motive SDK Python - Rigid body streaming client for OptiTrack Motive.

This package provides tools for receiving rigid body positions from a
Motive motion capture server over its UDP command/data stream.

Main classes:
    - MotiveStreamClient: Handshake, keep-alive and frame decoding
    - RigidBodyTracker: Polling access to the latest rigid body positions

Example usage:
    from motive_sdk_python import MotiveStreamClient, RigidBodyTracker

    # Initialize
    client = MotiveStreamClient(protocol_version="3")
    tracker = RigidBodyTracker(client)

    # Start receiving
    client.start()

    # Main loop
    while running:
        frame = tracker.get_latest_frame()
        if frame:
            for body_id, pos in frame["rigid_bodies"].items():
                print(body_id, pos)

    # Cleanup
    client.stop()
"""

# Import from subpackages
from .stream_client import (
    MotiveStreamClient,
    ConnectionState,
    RigidBodyTracker,
    RigidBodyUpdate,
    ProtocolVersion,
    get_frame_decoder,
    MotiveStreamError,
    ConnectionSetupError,
    MalformedFrameError,
    SocketIOError,
)
from .utils import dump_buffer

__version__ = "0.1.0"
__all__ = [
    "MotiveStreamClient",
    "ConnectionState",
    "RigidBodyTracker",
    "RigidBodyUpdate",
    "ProtocolVersion",
    "get_frame_decoder",
    "MotiveStreamError",
    "ConnectionSetupError",
    "MalformedFrameError",
    "SocketIOError",
    "dump_buffer",
]

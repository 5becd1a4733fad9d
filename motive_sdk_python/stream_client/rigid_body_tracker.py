"""
RigidBodyTracker - Polling access to the latest rigid body positions.

Collects the listener callbacks of a MotiveStreamClient into per-frame
snapshots that a render or control loop can poll at its own rate.
"""

import threading
import time
from collections import deque

import numpy as np


class RigidBodyTracker:
    """
    Assembles rigid body updates into complete frames.

    Example usage:
        client = MotiveStreamClient(protocol_version="3")
        tracker = RigidBodyTracker(client)
        client.start()

        while running:
            frame = tracker.get_latest_frame()
            if frame:
                for body_id, pos in frame["rigid_bodies"].items():
                    print(f"  {body_id}: pos={pos}")

        client.stop()

    Frame format:
        {
            "frame_idx": int,                 # Frames completed so far
            "timestamp": float,               # time.time() at completion
            "rigid_bodies": {                 # Rigid body id -> position
                id: np.ndarray (3,) float32,
                ...
            }
        }
    """

    def __init__(self, client=None, max_frames: int = 4):
        """
        Initialize the tracker.

        Args:
            client: Optional MotiveStreamClient to subscribe to (must not
                be started yet)
            max_frames: Completed frames kept for polling (default: 4)
        """
        self.lock = threading.Lock()
        self.ready_frames = deque(maxlen=max_frames)
        self.positions = {}
        self.frame_idx = 0
        self._current = {}
        if client is not None:
            client.add_rigid_body_listener(self.on_rigid_body)
            client.add_frame_listener(self.on_frame)

    def reset(self):
        """Reset all internal state and buffers."""
        with self.lock:
            self.ready_frames.clear()
            self.positions.clear()
            self.frame_idx = 0
            self._current = {}

    def on_rigid_body(self, body_id, x, y, z):
        self._current[body_id] = np.array([x, y, z], dtype=np.float32)

    def on_frame(self):
        bodies, self._current = self._current, {}
        with self.lock:
            self.frame_idx += 1
            self.positions.update((body_id, pos.copy()) for body_id, pos in bodies.items())
            self.ready_frames.append({
                "frame_idx": self.frame_idx,
                "timestamp": time.time(),
                "rigid_bodies": bodies,
            })

    def get_latest_frame(self):
        """
        Get the most recent complete frame, clearing older frames.

        Returns:
            Frame dict if available, None otherwise.
        """
        with self.lock:
            if not self.ready_frames:
                return None
            frame = self.ready_frames.pop()
            self.ready_frames.clear()
            return frame

    def get_position(self, body_id):
        """Last known position of a rigid body as a float32 array, or None."""
        with self.lock:
            pos = self.positions.get(body_id)
            return pos.copy() if pos is not None else None

    def get_tracked_ids(self):
        with self.lock:
            return sorted(self.positions)

#!/usr/bin/env python3
"""
Example: Minimal stand-in for Motive's command port.

Waits for a CONNECT, answers with SERVER_INFO and then streams
FRAME_OF_DATA messages with rigid bodies moving on circles, in the frame
layout of the chosen Motive version. Useful for running
receive_rigid_bodies.py without a capture system.

Usage:
    python mock_motive_server.py --motive_version 3 --fps 120 --bodies 2
"""

import argparse
import math
import os
import socket
import sys

from loop_rate_limiters import RateLimiter

# Allow running without installing the package (add project root to path)
_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _root not in sys.path:
    sys.path.insert(0, _root)

from motive_sdk_python.stream_client.frame_builder import build_frame_of_data, build_server_info_message
from motive_sdk_python.stream_client.protocol import (
    MESSAGE_CONNECT,
    MESSAGE_KEEP_ALIVE,
    get_message_type,
)


def main():
    parser = argparse.ArgumentParser(description="Mock Motive server streaming synthetic rigid bodies")

    parser.add_argument("--port", type=int, default=1510, help="Command port to listen on (default: 1510)")
    parser.add_argument(
        "--motive_version",
        choices=["1.10.2", "2.1.1", "3"],
        default="2.1.1",
        help="Frame layout to send (default: 2.1.1)",
    )
    parser.add_argument("--fps", type=float, default=120.0, help="Frames per second (default: 120)")
    parser.add_argument("--bodies", type=int, default=1, help="Number of rigid bodies (default: 1)")
    args = parser.parse_args()

    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    sock.bind(("127.0.0.1", args.port))
    print(f"[MockMotive] Waiting for CONNECT on UDP port {args.port}...")

    while True:
        data, client_addr = sock.recvfrom(1024)
        if len(data) >= 2 and get_message_type(data) == MESSAGE_CONNECT:
            break
    print(f"[MockMotive] Client connected from {client_addr[0]}:{client_addr[1]}")
    sock.sendto(build_server_info_message(), client_addr)
    sock.setblocking(False)

    rate = RateLimiter(frequency=args.fps, warn=False)
    frame_number = 0
    keep_alives = 0
    try:
        while True:
            t = frame_number / args.fps
            bodies = [
                (i + 1, math.cos(t + i), 1.0 + 0.1 * i, math.sin(t + i))
                for i in range(args.bodies)
            ]
            frame = build_frame_of_data(
                bodies,
                version=args.motive_version,
                marker_sets=[("all", [b[1:] for b in bodies])],
                frame_number=frame_number,
            )
            sock.sendto(frame, client_addr)
            frame_number += 1

            try:
                data, _ = sock.recvfrom(1024)
                if len(data) >= 2 and get_message_type(data) == MESSAGE_KEEP_ALIVE:
                    keep_alives += 1
                    print(f"[MockMotive] Keep-alive #{keep_alives} (frame {frame_number})")
            except BlockingIOError:
                pass

            rate.sleep()
    except KeyboardInterrupt:
        print("\n[MockMotive] Stopping...")
    finally:
        sock.close()


if __name__ == "__main__":
    main()

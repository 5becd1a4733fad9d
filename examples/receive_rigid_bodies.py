#!/usr/bin/env python3
"""
Example: Receive and print rigid body positions streamed by Motive.

This script demonstrates how to use MotiveStreamClient with a
RigidBodyTracker to poll the latest rigid body positions.

Usage:
    python receive_rigid_bodies.py --motive_version 3
    python receive_rigid_bodies.py --motive_version 2.1.1 --verbose
"""

import argparse
import os
import sys
import time

from loop_rate_limiters import RateLimiter

# Allow running without installing the package (add project root to path)
_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _root not in sys.path:
    sys.path.insert(0, _root)

from motive_sdk_python import MotiveStreamClient, RigidBodyTracker


def main():
    parser = argparse.ArgumentParser(description="Receive and print rigid body positions from Motive")

    parser.add_argument(
        "--server",
        default="127.0.0.1",
        help="Address of the Motive host (default: 127.0.0.1)",
    )

    parser.add_argument(
        "--command_port",
        type=int,
        default=1510,
        help="Motive command port (default: 1510)",
    )

    parser.add_argument(
        "--local_port",
        type=int,
        default=1512,
        help="Local UDP port to receive on (default: 1512)",
    )

    parser.add_argument(
        "--motive_version",
        choices=["1.10.2", "2.1.1", "3"],
        default="2.1.1",
        help="Motive version whose frame layout to decode (default: 2.1.1)",
    )

    parser.add_argument(
        "--poll_hz",
        type=float,
        default=30.0,
        help="Rate at which positions are printed (default: 30)",
    )

    parser.add_argument(
        "--verbose",
        action="store_true",
        default=False,
        help="Print dropped/ignored message diagnostics",
    )

    parser.add_argument(
        "--print_rate",
        action="store_true",
        default=False,
        help="Print receive rate statistics",
    )

    args = parser.parse_args()

    print(f"[Main] Initializing MotiveStreamClient for Motive {args.motive_version}...")
    client = MotiveStreamClient(
        server_address=args.server,
        command_port=args.command_port,
        local_port=args.local_port,
        protocol_version=args.motive_version,
        verbose=args.verbose,
    )
    client.add_error_listener(lambda e: print(f"[Main] Stream error: {e}"))
    tracker = RigidBodyTracker(client)

    client.start()

    rate = RateLimiter(frequency=args.poll_hz, warn=False)
    stats_start_time = time.time()
    stats_display_interval = 2.0

    print("[Main] Press Ctrl+C to stop")

    try:
        while client.is_running:
            frame = tracker.get_latest_frame()

            if frame is not None:
                print(f"\n[Frame {frame['frame_idx']}] Rigid bodies: {len(frame['rigid_bodies'])}")
                for body_id, pos in sorted(frame["rigid_bodies"].items()):
                    print(f"  [{body_id:3d}] pos=({pos[0]:7.3f}, {pos[1]:7.3f}, {pos[2]:7.3f})")

            if args.print_rate:
                current_time = time.time()
                if current_time - stats_start_time >= stats_display_interval:
                    stats = client.get_stats()
                    print(f"[Main] Receive rate: {stats['receive_rate_hz']:.1f} Hz, "
                          f"malformed: {stats['malformed_frames']}, "
                          f"dropped: {stats['dropped_frames']}")
                    stats_start_time = current_time

            rate.sleep()

    except KeyboardInterrupt:
        print("\n[Main] Stopping...")
    finally:
        client.stop()
        print("[Main] Done")


if __name__ == "__main__":
    main()

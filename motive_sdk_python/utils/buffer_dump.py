"""
Hex dump helper for inspecting raw Motive packets.
"""

import numpy as np


SEPARATOR = " ".join(["-"] * 20)


def dump_buffer(data, length=None, width=16):
    """
    Format raw bytes as rows of hex pairs.

    Args:
        data: bytes-like packet data
        length: Number of leading bytes to dump (default: all of ``data``)
        width: Bytes per row (default: 16)

    Returns:
        Multi-line string ending with a separator line
    """
    raw = np.frombuffer(data, dtype=np.uint8)
    if length is not None:
        raw = raw[:length]
    rows = []
    for start in range(0, len(raw), width):
        rows.append(" ".join(f"{b:02X}" for b in raw[start:start + width].tolist()))
    rows.append(SEPARATOR)
    return "\n".join(rows)

"""
Utility functions for the Motive streaming client.

This module provides:
    - buffer_dump: Hex dumps of raw packets for debugging the decoder
"""

from .buffer_dump import dump_buffer

__all__ = [
    "dump_buffer",
]

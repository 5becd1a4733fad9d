import socket
import struct

import pytest


def f32(value):
    """The float32 value Motive would send for ``value``."""
    return struct.unpack("<f", struct.pack("<f", value))[0]


class RecordingSink:
    """Decoder sink that records what it is handed."""

    def __init__(self, reader=None):
        self.events = []
        self.positions = []
        self._reader = reader

    def rigid_body_update(self, update):
        self.events.append(("rb",) + tuple(update))
        if self._reader is not None:
            self.positions.append(self._reader.position)

    def frame_complete(self):
        self.events.append(("frame",))

    def frame_abandoned(self):
        self.events.append(("abandoned",))


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def server_socket():
    """A UDP socket standing in for Motive's command port."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    sock.bind(("127.0.0.1", 0))
    sock.settimeout(2.0)
    yield sock
    sock.close()

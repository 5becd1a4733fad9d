import socket
import threading
import time

import pytest

from motive_sdk_python.stream_client.frame_builder import build_frame_of_data, build_server_info_message
from motive_sdk_python.stream_client.protocol import (
    KEEP_ALIVE_MESSAGE_SIZE,
    MESSAGE_CONNECT,
    MESSAGE_KEEP_ALIVE,
    ConnectionSetupError,
    ProtocolVersion,
    SocketIOError,
    get_message_type,
)
from motive_sdk_python.stream_client import stream_client as stream_client_module
from motive_sdk_python.stream_client.listeners import DispatchQueue
from motive_sdk_python.stream_client.stream_client import ConnectionState, MotiveStreamClient
from motive_sdk_python.utils.buffer_dump import SEPARATOR


def make_client(server_socket, **kwargs):
    kwargs.setdefault("protocol_version", "3")
    kwargs.setdefault("receive_timeout", 0.05)
    return MotiveStreamClient(
        command_port=server_socket.getsockname()[1],
        local_port=0,
        **kwargs,
    )


class Recorder:
    def __init__(self, client, frames_expected=1):
        self.events = []
        self.lock = threading.Lock()
        self.frames_expected = frames_expected
        self.done = threading.Event()
        client.add_rigid_body_listener(self.on_rigid_body)
        client.add_frame_listener(self.on_frame)

    def on_rigid_body(self, body_id, x, y, z):
        with self.lock:
            self.events.append(("rb", body_id, x, y, z))

    def on_frame(self):
        with self.lock:
            self.events.append(("frame",))
            if self.events.count(("frame",)) >= self.frames_expected:
                self.done.set()


def handshake(server_socket, client):
    data, addr = server_socket.recvfrom(1024)
    assert data == b"\x00\x00"
    assert get_message_type(data) == MESSAGE_CONNECT
    assert addr[1] == client.local_port
    return addr


def wait_for(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


@pytest.mark.parametrize("dispatch_queue_size", [0, 4])
def test_end_to_end_single_rigid_body(server_socket, dispatch_queue_size):
    client = make_client(server_socket, dispatch_queue_size=dispatch_queue_size)
    recorder = Recorder(client)
    client.start()
    try:
        assert client.state is ConnectionState.HANDSHAKING
        addr = handshake(server_socket, client)

        server_socket.sendto(build_server_info_message(), addr)
        assert wait_for(lambda: client.state is ConnectionState.LISTENING)

        server_socket.sendto(build_frame_of_data([(5, 1.0, 2.0, 3.0)], version="3"), addr)
        assert recorder.done.wait(2.0)
        time.sleep(0.1)
    finally:
        client.stop()

    assert recorder.events == [("rb", 5, 1.0, 2.0, 3.0), ("frame",)]
    assert client.state is ConnectionState.TERMINATED
    stats = client.get_stats()
    assert stats["frames"] == 1
    assert stats["malformed_frames"] == 0


def test_frames_decoded_before_server_info(server_socket):
    client = make_client(server_socket, dispatch_queue_size=0)
    recorder = Recorder(client)
    client.start()
    try:
        addr = handshake(server_socket, client)
        server_socket.sendto(build_frame_of_data([(1, 0.5, 0.5, 0.5)], version="3"), addr)
        assert recorder.done.wait(2.0)
        assert client.state is ConnectionState.HANDSHAKING
    finally:
        client.stop()


def test_malformed_frame_is_dropped_and_loop_continues(server_socket):
    client = make_client(server_socket, protocol_version="2.1.1", dispatch_queue_size=4)
    recorder = Recorder(client)
    client.start()
    try:
        addr = handshake(server_socket, client)
        good = build_frame_of_data([(2, 4.0, 5.0, 6.0)], version="2.1.1")
        # Cut inside the first body's position: nothing reaches the listeners
        server_socket.sendto(good[:30], addr)
        server_socket.sendto(b"\x07", addr)
        server_socket.sendto(good, addr)
        assert recorder.done.wait(2.0)
        assert wait_for(lambda: client.get_stats()["malformed_frames"] == 2)
    finally:
        client.stop()

    assert recorder.events == [("rb", 2, 4.0, 5.0, 6.0), ("frame",)]
    assert client.get_stats()["frames"] == 1


def test_unknown_message_types_are_ignored(server_socket):
    client = make_client(server_socket, dispatch_queue_size=0)
    recorder = Recorder(client)
    client.start()
    try:
        addr = handshake(server_socket, client)
        server_socket.sendto(b"\x08\x00hello\x00", addr)
        server_socket.sendto(build_frame_of_data([], version="3"), addr)
        assert recorder.done.wait(2.0)
    finally:
        client.stop()

    assert recorder.events == [("frame",)]
    assert client.get_stats()["ignored_messages"] == 1


def test_keep_alives_reach_command_port(server_socket):
    client = make_client(server_socket, keep_alive_interval=0.05)
    client.start()
    try:
        handshake(server_socket, client)
        for _ in range(3):
            data, addr = server_socket.recvfrom(1024)
            assert len(data) == KEEP_ALIVE_MESSAGE_SIZE
            assert get_message_type(data) == MESSAGE_KEEP_ALIVE
            assert addr[1] == client.local_port
    finally:
        client.stop()
    assert client.get_stats()["keep_alives_sent"] >= 3


def test_stop_cancels_keep_alives(server_socket):
    client = make_client(server_socket, keep_alive_interval=0.05)
    client.start()
    handshake(server_socket, client)
    client.stop()
    assert not client.is_running

    # Drain anything sent before stop, then expect silence
    server_socket.settimeout(0.2)
    with pytest.raises(socket.timeout):
        while True:
            server_socket.recvfrom(1024)


def test_context_manager(server_socket):
    with make_client(server_socket) as client:
        handshake(server_socket, client)
        assert client.is_running
    assert client.state is ConnectionState.TERMINATED


def test_registration_after_start_is_rejected(server_socket):
    client = make_client(server_socket)
    client.start()
    try:
        with pytest.raises(RuntimeError):
            client.add_rigid_body_listener(lambda *args: None)
        with pytest.raises(RuntimeError):
            client.add_error_listener(lambda e: None)
        with pytest.raises(RuntimeError):
            client.start()
    finally:
        client.stop()


def test_unresolvable_server_address():
    with pytest.raises(ConnectionSetupError):
        MotiveStreamClient(server_address="motive.invalid", local_port=0)


def test_bind_failure_reported_at_start(server_socket):
    taken = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    taken.bind(("127.0.0.1", 0))
    try:
        client = MotiveStreamClient(
            command_port=server_socket.getsockname()[1],
            local_port=taken.getsockname()[1],
        )
        with pytest.raises(ConnectionSetupError):
            client.start()
        assert client.state is ConnectionState.DISCONNECTED
    finally:
        taken.close()


def test_constructor_validation():
    with pytest.raises(ValueError):
        MotiveStreamClient(protocol_version="2.0")
    with pytest.raises(ValueError):
        MotiveStreamClient(dispatch_queue_size=-1)
    with pytest.raises(ValueError):
        MotiveStreamClient(receive_timeout=0)
    with pytest.raises(ValueError):
        MotiveStreamClient(keep_alive_interval=0)
    client = MotiveStreamClient()
    assert client.protocol_version is ProtocolVersion.V2_1_1
    assert client.state is ConnectionState.DISCONNECTED


class FailingSocket:
    """recv_into raises the queued errors, then returns queued datagrams."""

    def __init__(self, script, client):
        self.script = list(script)
        self.client = client
        self.closed = False

    def recv_into(self, buffer):
        if not self.script:
            self.client.running = False
            raise socket.timeout()
        item = self.script.pop(0)
        if isinstance(item, Exception):
            raise item
        buffer[:len(item)] = item
        return len(item)

    def close(self):
        self.closed = True


def test_persistent_socket_errors_terminate_session(capsys):
    client = MotiveStreamClient(max_retries=2, retry_backoff=0.0)
    errors = []
    client.add_error_listener(errors.append)
    sock = FailingSocket([OSError("connection reset")] * 10, client)
    client.sock = sock
    client.running = True
    client._receive_loop()

    assert len(errors) == 3
    assert all(isinstance(e, SocketIOError) for e in errors)
    assert client.state is ConnectionState.TERMINATED
    assert sock.closed
    assert "Receive loop terminated" in capsys.readouterr().out


def test_transient_socket_error_is_retried():
    client = MotiveStreamClient(protocol_version="3", dispatch_queue_size=0, max_retries=1, retry_backoff=0.0)
    updates = []
    client.add_rigid_body_listener(lambda *args: updates.append(args))
    frame = build_frame_of_data([(8, 1.0, 1.0, 1.0)], version="3")
    client.sock = FailingSocket([OSError("reset"), frame, OSError("reset"), frame], client)
    client.running = True
    client._receive_loop()

    assert updates == [(8, 1.0, 1.0, 1.0), (8, 1.0, 1.0, 1.0)]
    assert client.get_stats()["socket_errors"] == 2
    assert client.state is not ConnectionState.TERMINATED


def test_listener_can_stop_client_from_dispatcher_thread(server_socket, capsys):
    client = make_client(server_socket, dispatch_queue_size=4)
    stopped = threading.Event()

    def stop_on_frame():
        client.stop()
        stopped.set()

    client.add_frame_listener(stop_on_frame)
    client.start()
    addr = handshake(server_socket, client)
    server_socket.sendto(build_frame_of_data([(3, 1.0, 1.0, 1.0)], version="3"), addr)
    assert stopped.wait(5.0)

    assert client.state is ConnectionState.TERMINATED
    assert not client.is_running
    assert client.get_stats()["listener_errors"] == 0
    assert "[MotiveStreamClient] Stopped" in capsys.readouterr().out


class BrokenTicker:
    def __init__(self, *args, **kwargs):
        raise RuntimeError("can't start new thread")


def test_failed_start_rolls_back_and_can_be_retried(server_socket, monkeypatch):
    client = make_client(server_socket, dispatch_queue_size=4)
    monkeypatch.setattr(stream_client_module, "KeepAliveTicker", BrokenTicker)
    with pytest.raises(RuntimeError):
        client.start()

    assert client.sock is None
    assert client._dispatch_queue is None
    assert client._sink is client.registry
    assert client.state is ConnectionState.DISCONNECTED

    monkeypatch.undo()
    client.start()
    try:
        assert client.is_running
        assert client.state is ConnectionState.HANDSHAKING
    finally:
        client.stop()


def test_repeated_server_info_is_logged_once(server_socket, capsys):
    client = make_client(server_socket, dispatch_queue_size=0)
    recorder = Recorder(client)
    client.start()
    try:
        addr = handshake(server_socket, client)
        server_socket.sendto(build_server_info_message(), addr)
        server_socket.sendto(build_server_info_message(), addr)
        server_socket.sendto(build_frame_of_data([], version="3"), addr)
        assert recorder.done.wait(2.0)
        assert client.state is ConnectionState.LISTENING
    finally:
        client.stop()

    assert capsys.readouterr().out.count("Successfully connected to command server") == 1


def test_verbose_malformed_frame_prints_hex_dump(server_socket, capsys):
    client = make_client(server_socket, dispatch_queue_size=0, verbose=True)
    recorder = Recorder(client)
    client.start()
    try:
        addr = handshake(server_socket, client)
        good = build_frame_of_data([(2, 4.0, 5.0, 6.0)], version="3")
        server_socket.sendto(good[:10], addr)
        server_socket.sendto(good, addr)
        assert recorder.done.wait(2.0)
    finally:
        client.stop()

    out = capsys.readouterr().out
    assert "Dropping malformed frame" in out
    assert SEPARATOR in out


def test_terminated_session_stops_dispatcher():
    client = MotiveStreamClient(dispatch_queue_size=4, max_retries=0, retry_backoff=0.0)
    queue = DispatchQueue(client.registry, client.dispatch_queue_size)
    queue.start()
    worker = queue._thread
    client._dispatch_queue = queue
    client._sink = queue
    client.sock = FailingSocket([OSError("connection reset")] * 3, client)
    client.running = True
    client._receive_loop()

    assert client.state is ConnectionState.TERMINATED
    assert queue._thread is None
    assert not worker.is_alive()

"""
MotiveStreamClient - Real-time rigid body stream from Motive over UDP.

This module provides the MotiveStreamClient class, which performs the
CONNECT handshake with Motive's command port, keeps the stream alive and
decodes FRAME_OF_DATA messages into rigid body updates on a background
thread.
"""

import socket
import threading
import time
from enum import Enum

from .frame_decoder import get_frame_decoder
from .keep_alive import KeepAliveTicker
from .listeners import ListenerRegistry, DispatchQueue
from .packet_reader import PacketReader
from .protocol import (
    APPLICATION_PORT,
    DEFAULT_SERVER_ADDRESS,
    KEEP_ALIVE_INTERVAL,
    MESSAGE_FRAME_OF_DATA,
    MESSAGE_NAMES,
    MESSAGE_SERVER_INFO,
    MOTIVE_COMMAND_PORT,
    RECEIVE_BUFFER_SIZE,
    ConnectionSetupError,
    MalformedFrameError,
    ProtocolVersion,
    SocketIOError,
    build_connect_message,
)
from ..utils.buffer_dump import dump_buffer


class ConnectionState(Enum):
    DISCONNECTED = "disconnected"
    HANDSHAKING = "handshaking"
    LISTENING = "listening"
    TERMINATED = "terminated"


class MotiveStreamClient:
    """
    Owns the UDP socket to Motive and drives the receive loop.

    The data flow:
    1. start() binds the local port, sends CONNECT and starts the
       keep-alive ticker and the receive thread
    2. Each datagram is received into one reused 64 KiB buffer
    3. SERVER_INFO marks the session as listening (informational only;
       frames are decoded as soon as they arrive)
    4. FRAME_OF_DATA is decoded with the configured protocol version and
       rigid body updates are handed to the registered listeners
    5. Any other message type is ignored

    Listeners are called on a dispatcher thread behind a bounded queue
    (see DispatchQueue), or inline on the receive thread when
    ``dispatch_queue_size=0``. They must be registered before start().

    Example usage:
        client = MotiveStreamClient(protocol_version="3")
        client.add_rigid_body_listener(lambda id, x, y, z: print(id, x, y, z))
        client.add_frame_listener(lambda: print("frame"))
        client.start()
        ...
        client.stop()
    """

    def __init__(
        self,
        server_address: str = DEFAULT_SERVER_ADDRESS,
        command_port: int = MOTIVE_COMMAND_PORT,
        local_address: str = DEFAULT_SERVER_ADDRESS,
        local_port: int = APPLICATION_PORT,
        protocol_version=ProtocolVersion.V2_1_1,
        keep_alive_interval: float = KEEP_ALIVE_INTERVAL,
        dispatch_queue_size: int = 4,
        receive_timeout: float = 0.5,
        max_retries: int = 3,
        retry_backoff: float = 0.1,
        verbose: bool = False,
    ):
        """
        Initialize the client. Nothing is sent until start().

        Args:
            server_address: Host running Motive (default: 127.0.0.1)
            command_port: Motive's command port (default: 1510)
            local_address: Local interface to bind (default: 127.0.0.1)
            local_port: Local port to bind, 0 for any free port (default: 1512)
            protocol_version: Motive version whose frame layout to decode
                ("1.10.2", "2.1.1" or "3"; default: "2.1.1")
            keep_alive_interval: Seconds between keep-alives (default: 1.0)
            dispatch_queue_size: Frames buffered between the receive thread
                and the listeners; 0 calls listeners inline (default: 4)
            receive_timeout: Socket timeout used to notice stop() (default: 0.5)
            max_retries: Consecutive socket errors tolerated before the
                session terminates (default: 3)
            retry_backoff: Initial delay between retries, doubled each time
            verbose: Print per-message diagnostics

        Raises:
            ConnectionSetupError: If the server address cannot be resolved
            ValueError: If an argument is out of range or the protocol
                version is unsupported
        """
        if dispatch_queue_size < 0:
            raise ValueError(f"dispatch_queue_size must be >= 0, got {dispatch_queue_size}")
        if receive_timeout is None or receive_timeout <= 0:
            raise ValueError(f"receive_timeout must be positive, got {receive_timeout}")
        if max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {max_retries}")
        if keep_alive_interval is None or keep_alive_interval <= 0:
            raise ValueError(f"keep_alive_interval must be positive, got {keep_alive_interval}")

        try:
            self.server_ip = socket.gethostbyname(server_address)
        except OSError as e:
            raise ConnectionSetupError(f"Could not resolve server address {server_address!r}: {e}") from e

        self.server_address = server_address
        self.command_port = command_port
        self.local_address = local_address
        self.requested_local_port = local_port
        self.protocol_version = ProtocolVersion.parse(protocol_version)
        self.decoder = get_frame_decoder(self.protocol_version)
        self.keep_alive_interval = keep_alive_interval
        self.dispatch_queue_size = dispatch_queue_size
        self.receive_timeout = receive_timeout
        self.max_retries = max_retries
        self.retry_backoff = retry_backoff
        self.verbose = verbose

        self.registry = ListenerRegistry(verbose=verbose)
        self._error_listeners = []

        self.sock = None
        self.thread = None
        self.running = False
        self.lock = threading.Lock()
        self._send_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._state = ConnectionState.DISCONNECTED
        self._ticker = None
        self._dispatch_queue = None
        self._sink = self.registry
        self._buffer = bytearray(RECEIVE_BUFFER_SIZE)
        self.local_port = None

        self.datagram_count = 0
        self.frame_count = 0
        self.malformed_count = 0
        self.ignored_count = 0
        self.socket_error_count = 0
        self.recv_count = 0
        self.last_rate_time = time.time()
        self.recv_rate_hz = 0.0

    # ------------------------------------------------------------------
    # Listener registration (before start)
    # ------------------------------------------------------------------

    def add_rigid_body_listener(self, listener):
        """
        Subscribe to rigid body positions.

        Args:
            listener: fn(id, x, y, z), called once per rigid body per frame

        Returns:
            ListenerHandle for the registration
        """
        return self.registry.add_rigid_body_listener(listener)

    def add_frame_listener(self, listener):
        """
        Subscribe to frame completion.

        Args:
            listener: fn(), called after all rigid bodies of a frame

        Returns:
            ListenerHandle for the registration
        """
        return self.registry.add_frame_listener(listener)

    def add_error_listener(self, listener):
        """Subscribe fn(exc) to socket errors raised while streaming."""
        if listener is None or not callable(listener):
            raise TypeError(f"error listener must be callable, got {listener!r}")
        if self.registry.frozen:
            raise RuntimeError("Listeners must be registered before the stream is started")
        self._error_listeners.append(listener)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def state(self):
        with self.lock:
            return self._state

    def _set_state(self, state):
        with self.lock:
            self._state = state

    @property
    def is_running(self):
        return self.thread is not None and self.thread.is_alive()

    def start(self):
        """
        Bind the socket, send CONNECT and start the background threads.

        Does not wait for SERVER_INFO.

        Raises:
            ConnectionSetupError: If the socket cannot be bound or CONNECT
                cannot be sent
            RuntimeError: If the client was already started
        """
        if self.state is not ConnectionState.DISCONNECTED:
            raise RuntimeError(f"Client cannot be started from state {self.state.value}")
        self.registry.freeze()

        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_RCVBUF, 8 * 1024 * 1024)
        except OSError:
            pass
        try:
            sock.bind((self.local_address, self.requested_local_port))
        except OSError as e:
            sock.close()
            print(f"[MotiveStreamClient] Could not bind {self.local_address}:{self.requested_local_port}: {e}")
            raise ConnectionSetupError(
                f"Could not bind {self.local_address}:{self.requested_local_port}: {e}"
            ) from e
        sock.settimeout(self.receive_timeout)
        self.sock = sock
        self.local_port = sock.getsockname()[1]

        try:
            self._send(build_connect_message())
        except OSError as e:
            self._close_socket()
            print(f"[MotiveStreamClient] Could not send CONNECT to {self.server_ip}:{self.command_port}: {e}")
            raise ConnectionSetupError(f"Could not send CONNECT: {e}") from e
        self._set_state(ConnectionState.HANDSHAKING)

        try:
            if self.dispatch_queue_size > 0:
                self._dispatch_queue = DispatchQueue(self.registry, self.dispatch_queue_size)
                self._dispatch_queue.start()
                self._sink = self._dispatch_queue

            self._ticker = KeepAliveTicker(self._send, self.keep_alive_interval, verbose=self.verbose)
            self._ticker.start()

            self.running = True
            self._stop_event.clear()
            self.thread = threading.Thread(target=self._receive_loop, name="motive-receive", daemon=True)
            self.thread.start()
        except Exception as e:
            print(f"[MotiveStreamClient] Start failed, rolling back: {e}")
            self._abort_start()
            raise
        print(f"[MotiveStreamClient] Listening on UDP port {self.local_port} "
              f"(Motive {self.protocol_version.value} at {self.server_ip}:{self.command_port})")

    def _abort_start(self):
        # Leaves the client in DISCONNECTED so start() can be called again.
        self.running = False
        self._stop_event.set()
        if self._ticker is not None:
            self._ticker.stop()
            self._ticker = None
        if self._dispatch_queue is not None:
            self._dispatch_queue.stop()
            self._dispatch_queue = None
        self._sink = self.registry
        self.thread = None
        self._close_socket()
        self._set_state(ConnectionState.DISCONNECTED)

    def stop(self):
        """Stop the receive loop, the keep-alive ticker and the dispatcher."""
        self.running = False
        self._stop_event.set()
        self._set_state(ConnectionState.TERMINATED)
        if self._ticker is not None:
            self._ticker.stop()
        if self.thread is not None and self.thread is not threading.current_thread():
            self.thread.join(timeout=self.receive_timeout + 2.0)
        self._close_socket()
        if self._dispatch_queue is not None:
            self._dispatch_queue.stop()
        print("[MotiveStreamClient] Stopped")

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.stop()
        return False

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def get_receive_rate(self):
        """
        Get the current frame receive rate.

        Returns:
            Receive rate in Hz (frames per second)
        """
        return self.recv_rate_hz

    def get_stats(self):
        with self.lock:
            stats = {
                "state": self._state.value,
                "protocol_version": self.protocol_version.value,
                "datagrams": self.datagram_count,
                "frames": self.frame_count,
                "malformed_frames": self.malformed_count,
                "ignored_messages": self.ignored_count,
                "socket_errors": self.socket_error_count,
                "receive_rate_hz": self.recv_rate_hz,
            }
        stats["keep_alives_sent"] = self._ticker.sent_count if self._ticker else 0
        stats["keep_alive_errors"] = self._ticker.error_count if self._ticker else 0
        stats["listener_errors"] = self.registry.listener_error_count
        stats["dropped_frames"] = self._dispatch_queue.dropped_frames if self._dispatch_queue else 0
        return stats

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _send(self, data):
        """Send to Motive's command port. Serialised across threads."""
        with self._send_lock:
            if self.sock is None:
                raise OSError("socket is closed")
            self.sock.sendto(data, (self.server_ip, self.command_port))

    def _close_socket(self):
        with self._send_lock:
            sock, self.sock = self.sock, None
        if sock is not None:
            try:
                sock.close()
            except OSError:
                pass

    def _report_error(self, error):
        for listener in self._error_listeners:
            try:
                listener(error)
            except Exception as e:
                print(f"[MotiveStreamClient] Error listener raised: {e}")

    def _receive_loop(self):
        """Background thread that receives datagrams and decodes frames."""
        sock = self.sock
        buffer = self._buffer
        reader = PacketReader(buffer, 0)
        failures = 0

        while self.running:
            try:
                nbytes = sock.recv_into(buffer)
            except socket.timeout:
                continue
            except OSError as e:
                if not self.running:
                    break
                failures += 1
                self.socket_error_count += 1
                error = SocketIOError(f"Receive failed ({failures}/{self.max_retries + 1}): {e}")
                print(f"[MotiveStreamClient] {error}")
                self._report_error(error)
                if failures > self.max_retries:
                    self._terminate(error)
                    break
                if self._stop_event.wait(self.retry_backoff * 2 ** (failures - 1)):
                    break
                continue

            failures = 0
            self._handle_datagram(reader, nbytes)
            reader.reset()

    def _terminate(self, error):
        print(f"[MotiveStreamClient] Receive loop terminated: {error}")
        self.running = False
        self._set_state(ConnectionState.TERMINATED)
        if self._ticker is not None:
            self._ticker.stop()
        self._close_socket()
        if self._dispatch_queue is not None:
            self._dispatch_queue.stop()

    def _handle_datagram(self, reader, nbytes):
        self.datagram_count += 1
        reader.reset(nbytes)
        try:
            message_type = reader.read_uint16()
        except MalformedFrameError:
            self.malformed_count += 1
            return

        if message_type == MESSAGE_SERVER_INFO:
            self._on_server_info()
        elif message_type == MESSAGE_FRAME_OF_DATA:
            self._on_frame_of_data(reader, nbytes)
        else:
            self.ignored_count += 1
            if self.verbose:
                name = MESSAGE_NAMES.get(message_type, "unknown")
                print(f"[MotiveStreamClient] Ignoring message type {message_type} ({name})")

    def _on_server_info(self):
        with self.lock:
            if self._state is not ConnectionState.HANDSHAKING:
                return
            self._state = ConnectionState.LISTENING
        print("[MotiveStreamClient] Successfully connected to command server")

    def _on_frame_of_data(self, reader, nbytes):
        try:
            self.decoder.decode(reader, self._sink)
        except MalformedFrameError as e:
            self._sink.frame_abandoned()
            self.malformed_count += 1
            if self.verbose:
                print(f"[MotiveStreamClient] Dropping malformed frame: {e}")
                print(dump_buffer(self._buffer, nbytes))
            return

        self.frame_count += 1
        now = time.time()
        with self.lock:
            self.recv_count += 1
            dt = now - self.last_rate_time
            if dt >= 1.0:
                self.recv_rate_hz = self.recv_count / dt
                self.recv_count = 0
                self.last_rate_time = now

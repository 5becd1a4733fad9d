"""
Listener registration and dispatch for decoded frames.

ListenerRegistry holds the rigid body and frame callbacks and calls them
in registration order. DispatchQueue puts a bounded hand-off between the
receive thread and those callbacks so a slow consumer cannot stall the
socket.
"""

import threading
import traceback
from collections import deque


RIGID_BODY_LISTENER = "rigid_body"
FRAME_LISTENER = "frame"


class ListenerHandle:
    """Opaque token returned by a registration."""

    __slots__ = ("kind", "index")

    def __init__(self, kind, index):
        self.kind = kind
        self.index = index

    def __repr__(self):
        return f"ListenerHandle({self.kind!r}, {self.index})"


class ListenerRegistry:
    """
    Ordered rigid body and frame listeners.

    Listeners must be registered before the receive loop starts; the
    session freezes the registry on start and later registrations raise.
    There is no lock around the lists.

    Listener signatures:
        rigid body: fn(id, x, y, z)
        frame:      fn()

    The registry is also a decoder sink: rigid_body_update() and
    frame_complete() dispatch inline on the calling thread.
    """

    def __init__(self, verbose=False):
        self._rigid_body_listeners = []
        self._frame_listeners = []
        self._frozen = False
        self.verbose = verbose
        self.listener_error_count = 0

    def _add(self, listeners, kind, listener):
        if listener is None or not callable(listener):
            raise TypeError(f"{kind} listener must be callable, got {listener!r}")
        if self._frozen:
            raise RuntimeError("Listeners must be registered before the stream is started")
        listeners.append(listener)
        return ListenerHandle(kind, len(listeners) - 1)

    def add_rigid_body_listener(self, listener):
        """Register fn(id, x, y, z), called once per rigid body per frame."""
        return self._add(self._rigid_body_listeners, RIGID_BODY_LISTENER, listener)

    def add_frame_listener(self, listener):
        """Register fn(), called once after each frame's rigid bodies."""
        return self._add(self._frame_listeners, FRAME_LISTENER, listener)

    def freeze(self):
        self._frozen = True

    @property
    def frozen(self):
        return self._frozen

    @property
    def rigid_body_listener_count(self):
        return len(self._rigid_body_listeners)

    @property
    def frame_listener_count(self):
        return len(self._frame_listeners)

    def _listener_failed(self, listener):
        self.listener_error_count += 1
        if self.verbose:
            print(f"[ListenerRegistry] Listener {listener!r} raised:")
            traceback.print_exc()

    def rigid_body_update(self, update):
        for listener in self._rigid_body_listeners:
            try:
                listener(update.id, update.x, update.y, update.z)
            except Exception:
                self._listener_failed(listener)

    def frame_complete(self):
        for listener in self._frame_listeners:
            try:
                listener()
            except Exception:
                self._listener_failed(listener)

    def frame_abandoned(self):
        # Updates already dispatched for the frame are not retracted.
        pass


class DispatchQueue:
    """
    Bounded hand-off from the receive thread to a dispatcher thread.

    Rigid body updates are collected per frame on the receive thread and
    queued as one batch when the frame completes. When the queue is full
    the oldest queued frame is dropped, so consumers always catch up to
    the newest pose. Abandoned (malformed) frames are never queued.

    Example usage:
        queue = DispatchQueue(registry, maxsize=4)
        queue.start()
        decoder.decode(reader, queue)
        queue.stop()
    """

    def __init__(self, registry, maxsize=4):
        if maxsize < 1:
            raise ValueError(f"maxsize must be >= 1, got {maxsize}")
        self.registry = registry
        self.maxsize = maxsize
        self._pending = []
        self._frames = deque()
        self._cond = threading.Condition()
        self._running = False
        self._thread = None
        self.dropped_frames = 0
        self.dispatched_frames = 0

    # ------------------------------------------------------------------
    # Sink interface (receive thread)
    # ------------------------------------------------------------------

    def rigid_body_update(self, update):
        self._pending.append(update)

    def frame_complete(self):
        batch = self._pending
        self._pending = []
        with self._cond:
            if len(self._frames) >= self.maxsize:
                self._frames.popleft()
                self.dropped_frames += 1
            self._frames.append(batch)
            self._cond.notify()

    def frame_abandoned(self):
        self._pending = []

    # ------------------------------------------------------------------
    # Dispatcher thread
    # ------------------------------------------------------------------

    def start(self):
        if self._thread is not None:
            raise RuntimeError("DispatchQueue already started")
        self._running = True
        self._thread = threading.Thread(target=self._dispatch_loop, name="motive-dispatch", daemon=True)
        self._thread.start()

    def stop(self, timeout=2.0):
        """Deliver frames still queued, then stop the dispatcher thread."""
        with self._cond:
            self._running = False
            self._cond.notify_all()
        if self._thread is not None:
            if self._thread is not threading.current_thread():
                self._thread.join(timeout=timeout)
                if self._thread.is_alive():
                    print("[DispatchQueue] Dispatcher thread did not stop in time")
            self._thread = None

    @property
    def pending_frames(self):
        with self._cond:
            return len(self._frames)

    def _dispatch_loop(self):
        while True:
            with self._cond:
                while not self._frames and self._running:
                    self._cond.wait()
                if not self._frames:
                    return
                batch = self._frames.popleft()
            for update in batch:
                self.registry.rigid_body_update(update)
            self.registry.frame_complete()
            self.dispatched_frames += 1

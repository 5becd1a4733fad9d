"""
KeepAliveTicker - Periodic KEEP_ALIVE datagrams to the Motive command port.

Motive keeps streaming to a client only while it hears from it, so a
background thread sends a KEEP_ALIVE once per interval for as long as
the session lives.
"""

import threading
import time

from .protocol import KEEP_ALIVE_INTERVAL, build_keep_alive_message


class KeepAliveTicker:
    """
    Sends a KEEP_ALIVE every ``interval`` seconds until stopped.

    Ticks are scheduled against absolute times, so a slow send does not
    push later ticks back. A failed send is logged and counted; the next
    tick goes out on schedule.

    Example usage:
        ticker = KeepAliveTicker(client_send)
        ticker.start()
        ...
        ticker.stop()
    """

    def __init__(self, send, interval=KEEP_ALIVE_INTERVAL, clock=time.monotonic, wait=None, verbose=False):
        """
        Initialize the ticker.

        Args:
            send: Callable taking the datagram bytes (e.g. a locked socket send)
            interval: Seconds between keep-alives (default: 1.0)
            clock: Monotonic clock used for scheduling
            wait: fn(timeout) -> bool, returns True when the ticker should
                stop (default: the ticker's stop event)
            verbose: Print every send failure, not only the first
        """
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self._send = send
        self.interval = interval
        self._clock = clock
        self._stop_event = threading.Event()
        self._wait = wait or self._stop_event.wait
        self._message = build_keep_alive_message()
        self.verbose = verbose
        self.thread = None
        self.sent_count = 0
        self.error_count = 0

    def start(self):
        """Start the ticker thread."""
        if self.thread is not None:
            raise RuntimeError("KeepAliveTicker already started")
        self._stop_event.clear()
        self.thread = threading.Thread(target=self.run, name="motive-keep-alive", daemon=True)
        self.thread.start()

    def stop(self, timeout=2.0):
        """Signal the ticker to stop and wait for its thread."""
        self._stop_event.set()
        if self.thread is not None:
            self.thread.join(timeout=timeout)
            self.thread = None

    @property
    def is_running(self):
        return self.thread is not None and self.thread.is_alive()

    def run(self):
        """Tick until the wait function reports a stop request."""
        next_tick = self._clock() + self.interval
        while not self._wait(max(0.0, next_tick - self._clock())):
            self._tick()
            next_tick += self.interval

    def _tick(self):
        try:
            self._send(self._message)
        except OSError as e:
            self.error_count += 1
            if self.verbose or self.error_count == 1:
                print(f"[KeepAlive] Send failed: {e}")
            return
        self.sent_count += 1

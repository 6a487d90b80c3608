"""Inbound "advance" triggers and the single loop that consumes them.

Triggers carry no payload: what they do depends only on the run state when
they are handled. Producers (SIGUSR1, the display's SPACE key) post into one
bounded queue; a full queue drops the trigger, which the state machine's
no-op rules tolerate. The queue is a SimpleQueue so that a signal handler
can post while the main thread is itself posting.
"""
from __future__ import annotations

import queue
import signal
import threading
import traceback
from typing import Callable, Optional

ADVANCE = "advance"
_STOP = object()


class AdvanceChannel:
    def __init__(self, maxsize: int = 64) -> None:
        self.maxsize = maxsize
        self._queue: queue.SimpleQueue = queue.SimpleQueue()
        self.dropped = 0

    def post(self) -> bool:
        """Queue one trigger; returns False if it was dropped."""
        if self._queue.qsize() >= self.maxsize:
            self.dropped += 1
            return False
        self._queue.put(ADVANCE)
        return True

    def get(self, timeout: Optional[float] = None):
        """Next item, or None on timeout."""
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def get_nowait(self):
        try:
            return self._queue.get_nowait()
        except queue.Empty:
            return None

    def close(self) -> None:
        self._queue.put(_STOP)

    def pending(self) -> int:
        return self._queue.qsize()


def install_signal_trigger(channel: AdvanceChannel, signum: Optional[int] = None):
    """Route *signum* (default SIGUSR1) into *channel*. Main thread only.

    Returns the previous handler.
    """
    if signum is None:
        signum = getattr(signal, "SIGUSR1", None)
        if signum is None:
            raise RuntimeError("SIGUSR1 is not available on this platform")

    def _handler(_signum, _frame):
        channel.post()

    return signal.signal(signum, _handler)


class EventLoop:
    """Consume an AdvanceChannel on one thread, calling *handler* per trigger."""

    def __init__(self, channel: AdvanceChannel, handler: Callable[[], object]) -> None:
        self.channel = channel
        self.handler = handler
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._thread = threading.Thread(target=self._run, name="speedy-events", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 2.0) -> None:
        if self._thread is None:
            return
        self.channel.close()
        self._thread.join(timeout)
        self._thread = None

    def pump(self) -> int:
        """Handle every queued trigger on the calling thread."""
        handled = 0
        while True:
            item = self.channel.get_nowait()
            if item is None or item is _STOP:
                return handled
            self._dispatch()
            handled += 1

    def _run(self) -> None:
        while True:
            item = self.channel.get()
            if item is _STOP:
                return
            self._dispatch()

    def _dispatch(self) -> None:
        try:
            self.handler()
        except Exception:
            print("[ERROR] advance handler failed")
            traceback.print_exc()

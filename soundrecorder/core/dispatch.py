"""Hand-off of backend callbacks to the thread that owns a session.

Device backends report completion, errors and info from their own audio
threads.  The session controller is not thread-safe, so those callbacks are
posted to a :class:`CallbackQueue` and run later by the owning thread,
typically from its polling loop::

    callbacks = CallbackQueue()
    recorder = Recorder(dispatch=callbacks.post, ...)
    while running:
        callbacks.drain()
        time.sleep(0.1)
"""

import queue
from typing import Callable

Dispatch = Callable[[Callable[[], None]], None]


def dispatch_inline(fn: Callable[[], None]) -> None:
    """Run *fn* immediately on the calling thread."""
    fn()


class CallbackQueue:
    """Thread-safe FIFO of callables, drained by a single owner."""

    def __init__(self) -> None:
        self._queue: "queue.SimpleQueue[Callable[[], None]]" = queue.SimpleQueue()

    def post(self, fn: Callable[[], None]) -> None:
        """Schedule *fn*; safe to call from any thread."""
        self._queue.put(fn)

    def drain(self) -> int:
        """Run every pending callable on the calling thread.

        Returns:
            Number of callables run.
        """
        count = 0
        while True:
            try:
                fn = self._queue.get_nowait()
            except queue.Empty:
                return count
            fn()
            count += 1

    def __len__(self) -> int:
        return self._queue.qsize()

"""
connmgrd Main Loop

Single dispatch thread for all daemon work: registry events, status
notifications and RPC command handling run one at a time, in submission
order, so the core needs no locking of its own.

Features:
- Thread-safe callback submission
- One-shot and periodic timeouts with cancellation
- Synchronous calls from foreign threads (RPC server threads)
- Injectable clock for deterministic tests
"""

import logging
import threading
import time
from collections import deque
from concurrent.futures import Future
from typing import Any, Callable, Deque, List, Optional, Tuple


logger = logging.getLogger("connmgrd.mainloop")

# Longest the loop sleeps without re-checking for stop requests (seconds)
MAX_IDLE_WAIT = 1.0


class TimeoutHandle:
    """
    Handle to a scheduled timeout.

    Cancelling removes the timeout from the loop's scheduler.
    """

    def __init__(
        self,
        loop: 'MainLoop',
        deadline: float,
        interval: Optional[float],
        callback: Callable[..., Any],
        args: tuple,
    ):
        self._loop = loop
        self.deadline = deadline
        self.interval = interval
        self.callback = callback
        self.args = args
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def periodic(self) -> bool:
        return self.interval is not None

    def cancel(self) -> None:
        """Cancel the timeout. Safe to call more than once."""
        if self._cancelled:
            return
        self._cancelled = True
        self._loop._remove_timeout(self)

    def __repr__(self) -> str:
        return (
            f"<TimeoutHandle callback={getattr(self.callback, '__name__', self.callback)} "
            f"deadline={self.deadline:.3f} interval={self.interval} cancelled={self._cancelled}>"
        )


class MainLoop:
    """
    Callback-driven event loop.

    Usage:
        loop = MainLoop()

        loop.call_soon(handle_event, event)
        poll = loop.call_every(0.5, check_for_device)
        ...
        poll.cancel()

        # From another thread
        result = loop.run_sync(handler, params)

        loop.run()      # blocks until loop.stop()
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        """
        Initialize main loop.

        Args:
            clock: Monotonic time source in seconds
        """
        self._clock = clock
        self._ready: Deque[Tuple[Callable[..., Any], tuple]] = deque()
        self._timeouts: List[TimeoutHandle] = []
        self._lock = threading.Lock()
        self._wakeup = threading.Condition(self._lock)
        self._running = False
        self._thread_id: Optional[int] = None

    def time(self) -> float:
        """Current loop time."""
        return self._clock()

    @property
    def is_running(self) -> bool:
        return self._running

    def in_loop_thread(self) -> bool:
        """Whether the caller runs on the loop thread."""
        return self._thread_id == threading.get_ident()

    # === Scheduling ===

    def call_soon(self, callback: Callable[..., Any], *args: Any) -> None:
        """Queue a callback for the next loop iteration. Thread-safe."""
        with self._lock:
            self._ready.append((callback, args))
            self._wakeup.notify()

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> TimeoutHandle:
        """
        Run a callback once after a delay.

        Args:
            delay: Delay in seconds
            callback: Function to call

        Returns:
            TimeoutHandle that can cancel the call
        """
        handle = TimeoutHandle(self, self.time() + delay, None, callback, args)
        self._add_timeout(handle)
        return handle

    def call_every(self, interval: float, callback: Callable[..., Any], *args: Any) -> TimeoutHandle:
        """
        Run a callback periodically until the handle is cancelled.

        Args:
            interval: Period in seconds (must be > 0)
            callback: Function to call

        Returns:
            TimeoutHandle that stops the polling
        """
        if interval <= 0:
            raise ValueError(f"Invalid interval: {interval}")

        handle = TimeoutHandle(self, self.time() + interval, interval, callback, args)
        self._add_timeout(handle)
        return handle

    def run_sync(
        self,
        callback: Callable[..., Any],
        *args: Any,
        timeout: Optional[float] = None,
    ) -> Any:
        """
        Run a callback on the loop thread and wait for its result.

        Runs inline when called from the loop thread. From any other
        thread the call is queued, so calls made before run() wait for the
        loop to start.

        Args:
            callback: Function to call
            timeout: Seconds to wait for the loop (None = forever)

        Returns:
            The callback's return value

        Raises:
            Whatever the callback raised
            concurrent.futures.TimeoutError: If the loop did not get to it
        """
        if self.in_loop_thread():
            return callback(*args)

        future: Future = Future()
        self.call_soon(self._run_into_future, future, callback, args)
        return future.result(timeout)

    @staticmethod
    def _run_into_future(future: Future, callback: Callable[..., Any], args: tuple) -> None:
        if not future.set_running_or_notify_cancel():
            return
        try:
            future.set_result(callback(*args))
        except BaseException as e:
            future.set_exception(e)

    def _add_timeout(self, handle: TimeoutHandle) -> None:
        with self._lock:
            self._timeouts.append(handle)
            self._wakeup.notify()

    def _remove_timeout(self, handle: TimeoutHandle) -> None:
        with self._lock:
            if handle in self._timeouts:
                self._timeouts.remove(handle)

    def pending_timeouts(self) -> List[TimeoutHandle]:
        """Scheduled, uncancelled timeouts."""
        with self._lock:
            return list(self._timeouts)

    # === Running ===

    def run_pending(self) -> int:
        """
        Run all due timeouts and queued callbacks once, without blocking.

        Returns:
            Number of callbacks run
        """
        now = self.time()
        with self._lock:
            due = sorted(
                (h for h in self._timeouts if h.deadline <= now),
                key=lambda h: h.deadline,
            )
            for handle in due:
                if handle.periodic:
                    handle.deadline = now + handle.interval
                else:
                    self._timeouts.remove(handle)
            ready = list(self._ready)
            self._ready.clear()

        count = 0
        for handle in due:
            if handle.cancelled:
                continue
            self._invoke(handle.callback, handle.args)
            count += 1

        for callback, args in ready:
            self._invoke(callback, args)
            count += 1

        return count

    def _invoke(self, callback: Callable[..., Any], args: tuple) -> None:
        try:
            callback(*args)
        except Exception:
            logger.exception(f"Unhandled error in loop callback {callback!r}")

    def _next_wait(self) -> float:
        """Seconds until the next timeout is due (lock held)."""
        if self._ready:
            return 0.0
        if not self._timeouts:
            return MAX_IDLE_WAIT
        earliest = min(h.deadline for h in self._timeouts)
        return max(0.0, min(earliest - self.time(), MAX_IDLE_WAIT))

    def run(self) -> None:
        """Run the loop in the calling thread until stop() is called."""
        self._thread_id = threading.get_ident()
        self._running = True
        logger.debug("Main loop running")

        try:
            while self._running:
                with self._lock:
                    wait = self._next_wait()
                    if wait > 0 and self._running:
                        self._wakeup.wait(wait)
                if not self._running:
                    break
                self.run_pending()
        finally:
            self._running = False
            self._thread_id = None
            logger.debug("Main loop stopped")

    def stop(self) -> None:
        """Ask the loop to return from run(). Thread-safe."""
        with self._lock:
            self._running = False
            self._wakeup.notify()

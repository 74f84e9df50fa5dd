"""
Run Control

Job states and the cancellation token shared by the engine loop and
whoever controls it (CLI signal handler, UI thread, test).

The engine checks the token at each suspension point: before every row,
while paused, during the inter-row delay and during retry backoff. An
in-flight HTTP call is never aborted; a stop takes effect at the next
check.
"""

import threading
import time
from enum import Enum


class JobState(str, Enum):
    """
    Lifecycle of a classification job.

    IDLE -> RUNNING -> (PAUSED <-> RUNNING) -> COMPLETED | STOPPED | FATAL
    """

    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    STOPPED = "stopped"
    FATAL = "fatal"

    @property
    def is_terminal(self) -> bool:
        return self in (JobState.COMPLETED, JobState.STOPPED, JobState.FATAL)


class RunControl:
    """
    Pause / resume / stop requests for one run.

    All request_* methods are safe to call from any thread at any time.

    Attributes:
        poll_interval: Seconds between flag checks while paused or sleeping
    """

    def __init__(self, poll_interval: float = 0.1):
        self.poll_interval = poll_interval
        self._stop = threading.Event()
        self._pause = threading.Event()
        self._wake = threading.Event()

    # -------------------------------------------------------------------------
    # Requests (caller side)
    # -------------------------------------------------------------------------

    def request_pause(self) -> None:
        self._pause.set()
        self._wake.set()

    def request_resume(self) -> None:
        self._pause.clear()
        self._wake.set()

    def request_stop(self) -> None:
        self._stop.set()
        self._wake.set()

    @property
    def stop_requested(self) -> bool:
        return self._stop.is_set()

    @property
    def pause_requested(self) -> bool:
        return self._pause.is_set()

    # -------------------------------------------------------------------------
    # Suspension points (engine side)
    # -------------------------------------------------------------------------

    def _wait(self, timeout: float) -> None:
        self._wake.wait(timeout)
        self._wake.clear()

    def wait_while_paused(self) -> bool:
        """
        Block while a pause is in effect.

        Returns:
            False if a stop was requested (while paused or before), else True
        """
        while self.pause_requested and not self.stop_requested:
            self._wait(self.poll_interval)
        return not self.stop_requested

    def sleep(self, seconds: float, interrupt_on_pause: bool = True) -> bool:
        """
        Sleep in poll_interval slices, returning early on a stop request.

        Args:
            seconds: Total time to sleep
            interrupt_on_pause: Also return early when a pause is requested

        Returns:
            True if the full delay elapsed, False if it was interrupted
        """
        deadline = time.monotonic() + seconds
        while True:
            if self.stop_requested or (interrupt_on_pause and self.pause_requested):
                return False
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return True
            self._wait(min(remaining, self.poll_interval))

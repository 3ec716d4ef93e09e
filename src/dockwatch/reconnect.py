"""
Automatic reconnection with exponential backoff.

The supervisor runs one monitoring session at a time. When a session ends
with a TransportError it waits and starts a new one:

  - the delay starts at min_delay, doubles after every failure, and is capped
    at max_delay
  - a session that stayed up for the stability window (60s by default) before
    failing resets the attempt counter and the delay, so only rapid repeated
    failures escalate
  - max_retries bounds the number of retries (0 = forever); running out
    raises RetryExhausted with the last error attached
  - a stop request is checked before and after every session and interrupts
    the backoff wait; it raises Cancelled and is never retried

Any exception other than TransportError (a failing callback, Cancelled)
passes straight through.
"""

import logging
import threading
import time
from typing import Callable, Optional

from .config import ReconnectConfig
from .errors import Cancelled, RetryExhausted, TransportError

logger = logging.getLogger(__name__)


class Backoff:
    """Attempt counter and current delay."""

    def __init__(self, min_delay: float, max_delay: float):
        self.min_delay = min_delay
        self.max_delay = max_delay
        self.attempt = 0
        self.delay = min_delay

    def reset(self) -> None:
        self.attempt = 0
        self.delay = self.min_delay

    def failed(self) -> float:
        """Count one failure and return the delay to wait before retrying."""
        self.attempt += 1
        delay = self.delay
        self.delay = min(self.delay * 2, self.max_delay)
        return delay


class ReconnectSupervisor:
    def __init__(self, config: ReconnectConfig, stop_event: threading.Event,
                 clock: Callable[[], float] = time.monotonic,
                 wait: Optional[Callable[[float], bool]] = None,
                 log: Optional[logging.Logger] = None):
        self.config = config
        self.stop_event = stop_event
        self.clock = clock
        # wait(delay) returns True when interrupted by a stop request
        self.wait = wait or stop_event.wait
        self.log = log or logger
        self.backoff = Backoff(config.min_delay, config.max_delay)
        self.sessions = 0

    def _check_stop(self) -> None:
        if self.stop_event.is_set():
            raise Cancelled("monitor stopped")

    def run(self, session: Callable[[], None]) -> None:
        """Run `session` until it is cancelled or retries are exhausted."""
        while True:
            self._check_stop()
            started = self.clock()
            self.sessions += 1
            try:
                session()
                error = TransportError("session ended without error")
            except TransportError as e:
                error = e
            self._check_stop()

            if self.clock() - started >= self.config.stability_window:
                self.backoff.reset()

            delay = self.backoff.failed()
            max_retries = self.config.max_retries
            if max_retries > 0 and self.backoff.attempt > max_retries:
                self.log.error(f"Maximum reconnect attempts exceeded ({self.backoff.attempt - 1}), giving up: {error}")
                raise RetryExhausted(error, self.sessions) from error

            self.log.warning(
                f"Event stream disconnected ({error}), reconnecting in {delay:.1f}s "
                f"(attempt {self.backoff.attempt})"
            )
            if self.wait(delay):
                raise Cancelled("monitor stopped")
            self.log.info("Reconnecting to docker event stream")

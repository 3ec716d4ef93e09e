"""
Exception hierarchy for dockwatch.

  - WatchError: base class for everything raised by the package
  - TransportError: the Docker daemon could not be reached, the event stream
    broke, or a pull failed or timed out. Ends the current session and is
    retried when auto-reconnect is enabled.
  - RetryExhausted: reconnect gave up; wraps the last TransportError
  - Cancelled: the monitor was stopped on purpose. Never retried.
  - ConfigError: invalid durations or filter definitions

A single container failing to inspect is not an error at this level: the
backend logs it and the container is left out of the snapshot.
"""

from typing import Optional


class WatchError(Exception):
    """Base class for dockwatch errors."""


class TransportError(WatchError):
    """Communication with the state source failed."""


class RetryExhausted(TransportError):
    """Raised when the reconnect supervisor runs out of attempts."""

    def __init__(self, last_error: Optional[BaseException], attempts: int):
        self.last_error = last_error
        self.attempts = attempts
        super().__init__(f"giving up after {attempts} attempts: {last_error}")


class Cancelled(WatchError):
    """The monitor was stopped."""


class ConfigError(WatchError, ValueError):
    """Invalid configuration value."""

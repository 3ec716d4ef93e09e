"""
Refresh gate: decides when a burst of Docker events should turn into a pull.

The gate is a plain state object driven by explicit timestamps, so it can be
exercised with a virtual clock. The monitor feeds it arrivals, asks it how
long it may block (``timeout``), and calls ``poll`` after every wake-up.

States:
  - IDLE: nothing pending
  - PENDING: at least one event arrived, waiting for things to quiet down

Deadlines:
  - debounce (D): re-armed by every arrival; fires once events stop for D
  - max debounce (M): armed when leaving IDLE and never extended, so a
    continuous stream of events still produces a refresh every M
  - idle (I): reset by every arrival and every refresh; fires when the
    stream has been silent for I, covering a feed that stalls without error

Transitions:
  IDLE    + arrival       -> PENDING  (arm D and M)
  PENDING + arrival       -> PENDING  (re-arm D)
  PENDING + D or M fires  -> IDLE     (refresh)
  any     + I fires       -> IDLE     (refresh, drop the pending window)
"""

import enum
from typing import Optional


class GateState(enum.Enum):
    IDLE = "idle"
    PENDING = "pending"


class Trigger(enum.Enum):
    DEBOUNCE = "debounce"
    MAX_DEBOUNCE = "max_debounce"
    IDLE = "idle"


class RefreshGate:
    """Three-timer debounce state machine. Times are seconds on any monotonic clock."""

    def __init__(self, debounce: float, max_debounce: float, max_idle: float, now: float):
        self.debounce = debounce
        self.max_debounce = max_debounce
        self.max_idle = max_idle

        self.state = GateState.IDLE
        self.debounce_deadline: Optional[float] = None
        self.max_debounce_deadline: Optional[float] = None
        self.idle_deadline: float = now + max_idle

    @property
    def pending(self) -> bool:
        return self.state is GateState.PENDING

    def arrival(self, now: float) -> None:
        """Record one incoming event, of any kind."""
        self.idle_deadline = now + self.max_idle
        self.debounce_deadline = now + self.debounce
        if self.state is GateState.IDLE:
            self.max_debounce_deadline = now + self.max_debounce
            self.state = GateState.PENDING

    def next_deadline(self) -> float:
        deadlines = [self.idle_deadline]
        if self.debounce_deadline is not None:
            deadlines.append(self.debounce_deadline)
        if self.max_debounce_deadline is not None:
            deadlines.append(self.max_debounce_deadline)
        return min(deadlines)

    def timeout(self, now: float) -> float:
        """Seconds until the next deadline, never negative."""
        return max(0.0, self.next_deadline() - now)

    def poll(self, now: float) -> Optional[Trigger]:
        """Fire the earliest expired deadline, if any.

        Returns the trigger that should cause a refresh. The gate is back in
        IDLE with a fresh idle deadline afterwards, whichever timer fired.
        """
        expired = []
        if self.debounce_deadline is not None and now >= self.debounce_deadline:
            expired.append((self.debounce_deadline, Trigger.DEBOUNCE))
        if self.max_debounce_deadline is not None and now >= self.max_debounce_deadline:
            expired.append((self.max_debounce_deadline, Trigger.MAX_DEBOUNCE))
        if now >= self.idle_deadline:
            expired.append((self.idle_deadline, Trigger.IDLE))
        if not expired:
            return None

        # ties go to the order above: debounce, max debounce, idle
        trigger = min(expired, key=lambda item: item[0])[1]
        self._reset(now)
        return trigger

    def _reset(self, now: float) -> None:
        self.state = GateState.IDLE
        self.debounce_deadline = None
        self.max_debounce_deadline = None
        self.idle_deadline = now + self.max_idle

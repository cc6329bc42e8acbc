"""
Time sources for the ledgers.

The clock is the only non-deterministic input of the staking rules, so every
ledger reads time through one of these objects. Tests and simulations use
ManualClock and fast-forward explicitly instead of sleeping.
"""
import time
import threading


class SystemClock:
    """Wall clock, whole seconds."""

    def now(self) -> int:
        return int(time.time())


class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self, start: int = None):
        self._now = int(time.time()) if start is None else int(start)
        self._lock = threading.Lock()

    def now(self) -> int:
        with self._lock:
            return self._now

    def increase_time(self, seconds: int) -> int:
        if seconds < 0:
            raise ValueError(f"Cannot move clock backwards by {seconds}s")
        with self._lock:
            self._now += int(seconds)
            return self._now

    def set_time(self, timestamp: int) -> int:
        with self._lock:
            if timestamp < self._now:
                raise ValueError(f"Timestamp {timestamp} is before current time {self._now}")
            self._now = int(timestamp)
            return self._now

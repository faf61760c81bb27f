"""Schedulers that drive the simulated delays between pipeline steps."""

import threading
import time


class VirtualClock:
    """Simulated time that advances instantly on ``sleep``.

    Full runs execute synchronously with no wall-clock waits.
    """

    def __init__(self, start: float = 0.0):
        self._now = start
        self.slept_ms = 0

    def now(self) -> float:
        """Elapsed simulated time in seconds."""
        return self._now

    def sleep(self, ms: int) -> None:
        if ms < 0:
            raise ValueError("cannot sleep for a negative duration")
        self.slept_ms += ms
        self._now += ms / 1000.0


class WallClock:
    """Real time, optionally sped up by ``speed`` (2.0 runs twice as fast)."""

    def __init__(self, speed: float = 1.0):
        if speed <= 0:
            raise ValueError("speed must be greater than 0")
        self.speed = speed
        self._started = time.monotonic()

    def now(self) -> float:
        return time.monotonic() - self._started

    def sleep(self, ms: int) -> None:
        if ms < 0:
            raise ValueError("cannot sleep for a negative duration")
        time.sleep(ms / 1000.0 / self.speed)


class CancelToken:
    """Cooperative stop signal; safe to trigger from another thread."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

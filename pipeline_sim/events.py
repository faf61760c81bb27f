"""Run state owned by the engine and published to subscribers.

The recorder holds the narrative log (most recent first, capped), the
timeline, the progress percentage and the running flag. Presentation code
subscribes with a callable ``listener(kind, payload)`` where ``kind`` is one
of ``log``, ``timeline``, ``progress``, ``metrics`` or ``running``.
"""

from collections import deque
from typing import Callable, List

from pipeline_sim.models import LOG_CAPACITY, LogEntry, Metrics, TimelineEvent


Listener = Callable[[str, object], None]


class RunRecorder:
    def __init__(self, clock, capacity: int = LOG_CAPACITY):
        self.clock = clock
        self.capacity = capacity
        self._logs = deque(maxlen=capacity)
        self._timeline: List[TimelineEvent] = []
        self._listeners: List[Listener] = []
        self.progress = 0
        self.running = False

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a function that removes it again."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    @property
    def logs(self) -> List[LogEntry]:
        """Log entries, most recent first."""
        return list(self._logs)

    @property
    def timeline(self) -> List[TimelineEvent]:
        return list(self._timeline)

    def reset(self) -> None:
        self._logs.clear()
        self._timeline.clear()
        self.progress = 0
        self.running = False
        self._emit("progress", 0)
        self._emit("running", False)

    def log(self, text: str) -> LogEntry:
        entry = LogEntry(ts=self.clock.now(), text=text)
        # appendleft on a bounded deque evicts the oldest entry
        self._logs.appendleft(entry)
        self._emit("log", entry)
        return entry

    def mark(self, label: str) -> TimelineEvent:
        event = TimelineEvent(ts=self.clock.now(), label=label)
        self._timeline.append(event)
        self._emit("timeline", event)
        return event

    def advance(self, percent: float) -> int:
        """Raise progress to ``percent``; progress never moves backwards."""
        value = max(0, min(100, int(percent)))
        if value > self.progress:
            self.progress = value
            self._emit("progress", value)
        return self.progress

    def set_running(self, running: bool) -> None:
        self.running = running
        self._emit("running", running)

    def publish_metrics(self, metrics: Metrics) -> None:
        self._emit("metrics", metrics.snapshot())

    def _emit(self, kind: str, payload) -> None:
        for listener in list(self._listeners):
            listener(kind, payload)

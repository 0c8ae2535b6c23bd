"""Running average of latencies in milliseconds."""

from __future__ import annotations

import threading


def _trunc_div(a: int, b: int) -> int:
    q = abs(a) // abs(b)
    return q if (a >= 0) == (b >= 0) else -q


class DelayStat:
    """Accumulates latencies; the sample count is folded back to one past 100."""

    def __init__(self) -> None:
        self.d = 0
        self.c = 0
        self._lock = threading.Lock()

    def add(self, duration: float) -> None:
        """Record a latency given in seconds."""
        ms = int(duration * 1000)
        with self._lock:
            self.d += ms
            self.c += 1
            if self.c > 100:
                self.d = _trunc_div(self.d, self.c)
                self.c = 1

    def avg(self) -> int:
        """Return the average latency in milliseconds, folding the samples into one."""
        with self._lock:
            if self.c == 0:
                return 0
            self.d = _trunc_div(self.d, self.c)
            self.c = 1
            return self.d
"""Token pool that rate-limits uploads and downloads and tunes its own rate."""

from __future__ import annotations

import json
import logging
import threading
import time
from dataclasses import replace
from pathlib import Path
from typing import Any, Callable, Mapping

from .delay_stat import DelayStat
from .gconfig import DEFAULTS, GConfig, Gcfg
from .token import Token
from .token_queue import TokenQueue

log = logging.getLogger(__name__)

_NS = 1_000_000_000
DEFAULT_SIZE = 500
# An unset interval or ttl falls back to ten nanoseconds.
_FALLBACK = 10 / _NS


class TokenBusyError(RuntimeError):
    """Raised when too many callers already wait for a token."""


def _ns(seconds: float) -> int:
    return int(round(seconds * _NS))


def _lookup(data: Mapping[str, Any], key: str) -> Any:
    if key in data:
        return data[key]
    for k, v in data.items():
        if str(k).lower() == key.lower():
            return v
    return None


class TaskPool:
    """Issues tokens at a fill interval and adapts it to how many are used.

    Durations are in seconds. Tuning values come from ``gconfig``.
    """

    def __init__(
        self,
        name: str,
        size: int = DEFAULT_SIZE,
        ttl: float = 10.0,
        fill_interval: float = 0.01,
        gconfig: GConfig | Gcfg | None = None,
        state_dir: str | Path | None = None,
    ) -> None:
        self.name = name
        self.size = size or DEFAULT_SIZE
        if gconfig is None:
            gconfig = GConfig(replace(DEFAULTS))
        elif isinstance(gconfig, Gcfg):
            gconfig = GConfig(gconfig)
        self._gconfig = gconfig
        self.state_dir = Path(state_dir) if state_dir is not None else None
        self.fill_interval = fill_interval
        self.ttl = ttl
        self.net_latency = DelayStat()
        self.disk_latency = DelayStat()
        self._lock = threading.Lock()
        self._sent_token = 0
        self._request_count = 0
        self._wait_count = 0
        self._change_handler: Callable[[TaskPool], None] | None = None

        self.load()
        if self.fill_interval == 0:
            self.fill_interval = _FALLBACK
        if self.ttl == 0:
            self.ttl = _FALLBACK
        self.ttl = float(self._g.ttl)

        self._queue = TokenQueue(self._g.max_token)
        self._stop = threading.Event()
        self._runner = threading.Thread(target=self._queue.run, args=(self._stop,), daemon=True)
        self._runner.start()

    @property
    def _g(self) -> Gcfg:
        return self._gconfig.cfg

    def close(self) -> None:
        """Stop the dispatcher thread."""
        self._stop.set()
        self._runner.join(2.0)

    def __enter__(self) -> "TaskPool":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def get(self, pid: str, level: int = 0, timeout: float | None = None) -> Token:
        """Wait for a token for peer ``pid``.

        Raises TokenBusyError when the wait queue is full and TimeoutError when
        no token arrives in time. The default timeout is the configured token wait.
        """
        if timeout is None:
            timeout = self._g.token_wait / 1000 if self._g.token_wait else 1.0
        with self._lock:
            self._wait_count += 1
            waiting = self._wait_count
        try:
            ql = (self._g.token_wait * 1_000_000 // max(1, _ns(self.fill_interval))) // 2
            ql = max(ql, 1)
            if waiting > ql:
                raise TokenBusyError(f"token busy queue len ({waiting}/{ql})")
            tk = self._queue.get(level).wait(timeout)
            if tk is None:
                raise TimeoutError("ctx time out")
            tk.pid = pid
            tk.reset()
            with self._lock:
                self._sent_token += 1
            return tk
        finally:
            with self._lock:
                self._wait_count -= 1

    def check(self, tk: Token) -> bool:
        """Return True if the token was issued within the time to live."""
        return tk.tm is not None and time.time() - tk.tm < self.ttl

    def delete(self, tk: Token) -> bool:
        """Count a token as used; always returns False."""
        with self._lock:
            if self._sent_token < 1:
                return False
            self._request_count += 1
        return False

    def fill_once(self, elapsed: float) -> int:
        """Add the tokens owed for ``elapsed`` seconds; return how many were added."""
        count = 0
        remaining = elapsed
        while True:
            self._queue.add()
            count += 1
            remaining -= self.fill_interval
            half = self.fill_interval / 2
            if half <= 0 or remaining < half:
                return count

    def fill_tokens(self, stop_event: threading.Event) -> None:
        """Fill tokens at the current interval until stopped, tuning the rate meanwhile."""
        self.auto_change_token_interval(stop_event)
        while not stop_event.is_set():
            start = time.monotonic()
            if stop_event.wait(self.fill_interval):
                return
            self.fill_once(time.monotonic() - start)

    def decrease_check(self) -> bool:
        """Slow the fill rate if too many issued tokens went unused."""
        sent, used = self.params()
        unused = sent - used
        if sent > 100 and unused > sent * (100 - self._g.decrease_threshold) // 100:
            log.info("[token] decreasing tokens [%d,%d]", sent, used)
            self.change_fill_interval(self.fill_interval + self.fill_interval * unused / sent)
            return True
        return False

    def increase_check(self) -> bool:
        """Speed the fill rate up if nearly every issued token was used."""
        sent, used = self.params()
        if sent - used < sent * self._g.increase_threshold // 100:
            log.info("[token] increasing tokens [%d,%d]", sent, used)
            self.change_fill_interval(self.fill_interval - self.fill_interval / 5)
            return True
        log.info("[token] no increase %d,%d,%d", sent, used, self._g.increase_threshold)
        return False

    def auto_change_token_interval(self, stop_event: threading.Event) -> list[threading.Thread]:
        """Start the periodic decrease and increase checks; return their threads."""

        def loop(minutes: Callable[[], int], check: Callable[[], bool]) -> None:
            while not stop_event.wait(minutes() * 60):
                check()

        threads = [
            threading.Thread(target=loop, args=(lambda: self._g.decrease, self.decrease_check), daemon=True),
            threading.Thread(target=loop, args=(lambda: self._g.increase, self.increase_check), daemon=True),
        ]
        for t in threads:
            t.start()
        return threads

    def change_fill_interval(self, duration: float) -> None:
        """Set the fill interval within the configured token-rate limits.

        An unclamped change resets the counters and notifies the change handler.
        """
        make_zero = True
        longest = 1 / self._g.min_token
        shortest = 1 / self._g.max_token
        if duration > longest:
            duration = longest
            make_zero = False
        if duration < shortest:
            duration = shortest
            make_zero = False
        self.fill_interval = duration
        if make_zero:
            with self._lock:
                self._sent_token = 0
                self._request_count = 0
            if self._change_handler is not None:
                self._change_handler(self)
        self.save()

    def on_change(self, handler: Callable[["TaskPool"], None]) -> None:
        """Register a callback run after an unclamped interval change."""
        self._change_handler = handler

    def free_token_len(self) -> int:
        """Return the number of tokens waiting to be issued."""
        return len(self._queue)

    def fill_speed(self) -> int:
        """Return the fill rate in tokens per second."""
        return _NS // max(1, _ns(self.fill_interval))

    def _state_path(self) -> Path | None:
        return self.state_dir / self.name if self.state_dir is not None else None

    def save(self) -> None:
        """Persist the interval, time to live and latency stats; failures are logged."""
        path = self._state_path()
        if path is None:
            return
        state = {
            "ttl": _ns(self.ttl),
            "fillTokenInterval": _ns(self.fill_interval),
            "NetLatency": {"D": self.net_latency.d, "C": self.net_latency.c},
            "DiskLatency": {"D": self.disk_latency.d, "C": self.disk_latency.c},
        }
        try:
            path.write_text(json.dumps(state) + "\n", encoding="utf-8")
        except OSError as exc:
            log.warning("[task pool] %s", exc)

    def load(self) -> None:
        """Restore persisted state; failures are logged."""
        path = self._state_path()
        if path is None:
            return
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            if not isinstance(data, Mapping):
                raise ValueError("state must be a JSON object")
        except (OSError, ValueError) as exc:
            log.info("[task pool] %s", exc)
            return
        ttl = _lookup(data, "ttl")
        if isinstance(ttl, int):
            self.ttl = ttl / _NS
        interval = _lookup(data, "fillTokenInterval")
        if isinstance(interval, int):
            self.fill_interval = interval / _NS
        for key, stat in (("NetLatency", self.net_latency), ("DiskLatency", self.disk_latency)):
            saved = _lookup(data, key)
            if isinstance(saved, Mapping):
                stat.d = int(_lookup(saved, "D") or 0)
                stat.c = int(_lookup(saved, "C") or 0)
        log.info("[task pool] loaded state of %s", self.name)

    def params(self) -> tuple[int, int]:
        """Return (tokens issued, tokens used)."""
        with self._lock:
            return self._sent_token, self._request_count
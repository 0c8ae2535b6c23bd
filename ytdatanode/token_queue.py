"""Bounded token supply handed out to prioritised waiting requests."""

from __future__ import annotations

import logging
import queue
import threading
import time
from collections import deque

from .token import Token

log = logging.getLogger(__name__)

RESET_AFTER = 60.0
POLL_INTERVAL = 0.05


class TokenRequest:
    """A pending request for one token."""

    def __init__(self, level: int) -> None:
        self.level = level
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._token: Token | None = None
        self._cancelled = False

    def deliver(self, tk: Token) -> bool:
        """Hand a token over; returns False if the requester has given up."""
        with self._lock:
            if self._cancelled or self._event.is_set():
                return False
            self._token = tk
            self._event.set()
            return True

    def cancel(self) -> None:
        """Stop accepting a token."""
        with self._lock:
            self._cancelled = True

    def wait(self, timeout: float | None = None) -> Token | None:
        """Wait for a token; return None and cancel on timeout."""
        if self._event.wait(timeout):
            return self._token
        with self._lock:
            if self._event.is_set():
                return self._token
            self._cancelled = True
            return None


class TokenQueue:
    """Holds up to ``max_size`` tokens and serves them to requests in priority order."""

    def __init__(self, max_size: int) -> None:
        self.max_size = max_size
        self._lock = threading.Lock()
        self._tokens: queue.Queue[Token] = queue.Queue(max_size)
        self._requests: deque[TokenRequest] = deque()

    def __len__(self) -> int:
        return self._tokens.qsize()

    def get(self, level: int = 0) -> TokenRequest:
        """Register a request; a higher level than the last waiter jumps to the front."""
        req = TokenRequest(level)
        with self._lock:
            if self._requests and self._requests[-1].level < level:
                self._requests.appendleft(req)
            else:
                self._requests.append(req)
        return req

    def add(self) -> None:
        """Add a fresh token unless the queue is full."""
        try:
            self._tokens.put_nowait(Token.new())
        except queue.Full:
            pass

    def dispatch(self, timeout: float | None = 0) -> bool:
        """Take one token and give it to the first waiting request.

        The token is dropped when nobody is waiting. Returns False if no token
        arrived within ``timeout`` seconds.
        """
        with self._lock:
            tokens = self._tokens
        try:
            if timeout is not None and timeout <= 0:
                tk = tokens.get_nowait()
            else:
                tk = tokens.get(timeout=timeout)
        except queue.Empty:
            return False
        with self._lock:
            if self._requests:
                self._requests.popleft().deliver(tk)
        return True

    def run(self, stop_event: threading.Event) -> None:
        """Dispatch tokens until stopped, resetting after a minute without tokens."""
        idle_since = time.monotonic()
        while not stop_event.is_set():
            if self.dispatch(POLL_INTERVAL):
                idle_since = time.monotonic()
            elif time.monotonic() - idle_since >= RESET_AFTER:
                self.reset()
                idle_since = time.monotonic()

    def reset(self) -> None:
        """Drop every stored token and every pending request."""
        log.info("[token queue]reset")
        with self._lock:
            self._tokens = queue.Queue(self.max_size)
            self._requests = deque()
"""Rotating file log and a TCP service that streams log output to a client."""

from __future__ import annotations

import logging
import socket
import sys
import threading
import time
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TextIO

LOG_FILE = "output.log"
MAX_BYTES = 128 * 1024 * 1024
BACKUP_COUNT = 30
MAX_AGE = 7 * 24 * 3600
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 9003


class _Formatter(logging.Formatter):
    def __init__(self) -> None:
        super().__init__("%(asctime)s %(filename)s:%(lineno)d: %(message)s")

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        return datetime.fromtimestamp(record.created).strftime("%Y/%m/%d %H:%M:%S.%f")


class _RotatingLog(RotatingFileHandler):
    """Size-rotated log that also drops backups older than a week."""

    def doRollover(self) -> None:
        super().doRollover()
        base = Path(self.baseFilename)
        cutoff = time.time() - MAX_AGE
        for backup in base.parent.glob(base.name + ".*"):
            try:
                if backup.stat().st_mtime < cutoff:
                    backup.unlink()
            except OSError:
                pass


def configure_file_log(ytfs_path: str | Path) -> logging.Handler:
    """Send all log records to a rotating ``output.log`` under ``ytfs_path``."""
    directory = Path(ytfs_path)
    directory.mkdir(parents=True, exist_ok=True)
    handler = _RotatingLog(
        directory / LOG_FILE, maxBytes=MAX_BYTES, backupCount=BACKUP_COUNT, encoding="utf-8"
    )
    handler.setFormatter(_Formatter())
    root = logging.getLogger()
    root.addHandler(handler)
    if root.level == logging.NOTSET or root.level > logging.INFO:
        root.setLevel(logging.INFO)
    return handler


class _ConnectionHandler(logging.Handler):
    def __init__(self, server: "LogStreamServer") -> None:
        super().__init__()
        self._server = server
        self.setFormatter(_Formatter())

    def emit(self, record: logging.LogRecord) -> None:
        try:
            line = self.format(record) + "\n"
        except Exception:
            self.handleError(record)
            return
        self._server._send(line.encode("utf-8"))


class LogStreamServer:
    """Accepts TCP clients and mirrors every log record to the latest one."""

    def __init__(self, host: str = DEFAULT_HOST, port: int = DEFAULT_PORT) -> None:
        self.host = host
        self.port = port
        self.connected = threading.Event()
        self._lock = threading.Lock()
        self._listener: socket.socket | None = None
        self._conn: socket.socket | None = None
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._handler = _ConnectionHandler(self)

    def start(self) -> None:
        """Bind, attach to the root logger and start accepting clients."""
        listener = socket.create_server((self.host, self.port))
        listener.settimeout(0.2)
        self._listener = listener
        self.port = listener.getsockname()[1]
        self._stop.clear()
        logging.getLogger().addHandler(self._handler)
        self._thread = threading.Thread(target=self._accept_loop, daemon=True)
        self._thread.start()

    def _accept_loop(self) -> None:
        assert self._listener is not None
        while not self._stop.is_set():
            try:
                conn, _ = self._listener.accept()
            except socket.timeout:
                continue
            except OSError:
                return
            with self._lock:
                previous, self._conn = self._conn, conn
            if previous is not None:
                previous.close()
            self.connected.set()

    def _send(self, data: bytes) -> None:
        with self._lock:
            conn = self._conn
            if conn is None:
                return
            try:
                conn.sendall(data)
            except OSError:
                self._conn = None
                conn.close()

    def stop(self) -> None:
        """Detach from the logger and close the listener and any client."""
        logging.getLogger().removeHandler(self._handler)
        self._stop.set()
        if self._thread is not None:
            self._thread.join(2.0)
        if self._listener is not None:
            self._listener.close()
        with self._lock:
            conn, self._conn = self._conn, None
        if conn is not None:
            try:
                conn.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
            conn.close()

    def __enter__(self) -> "LogStreamServer":
        self.start()
        return self

    def __exit__(self, *exc: object) -> None:
        self.stop()


def follow_log(host: str = DEFAULT_HOST, port: int = DEFAULT_PORT, out: TextIO | None = None) -> None:
    """Print lines streamed by a log service until it closes the connection."""
    stream = out if out is not None else sys.stdout
    with socket.create_connection((host, port)) as sock:
        with sock.makefile("r", encoding="utf-8", errors="replace") as reader:
            for line in reader:
                stream.write(line.rstrip("\r\n") + "\n")
                stream.flush()
"""Upload and download tokens handed to clients before a shard transfer."""

from __future__ import annotations

import struct
import time
import uuid
from dataclasses import dataclass, field

ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
_INDEX = {ch: i for i, ch in enumerate(ALPHABET)}

_UUID_SIZE = 16
_PID_LEN = struct.Struct(">H")
_TIME = struct.Struct(">q")


def b58encode(data: bytes) -> str:
    """Encode bytes with the Bitcoin base58 alphabet."""
    data = bytes(data)
    zeros = len(data) - len(data.lstrip(b"\x00"))
    number = int.from_bytes(data, "big")
    digits = []
    while number:
        number, rem = divmod(number, 58)
        digits.append(ALPHABET[rem])
    return "1" * zeros + "".join(reversed(digits))


def b58decode(text: str) -> bytes:
    """Decode a base58 string; raises ValueError on characters outside the alphabet."""
    zeros = len(text) - len(text.lstrip("1"))
    number = 0
    for ch in text:
        try:
            number = number * 58 + _INDEX[ch]
        except KeyError:
            raise ValueError(f"invalid base58 character {ch!r}") from None
    body = number.to_bytes((number.bit_length() + 7) // 8, "big") if number else b""
    return b"\x00" * zeros + body


@dataclass
class Token:
    """A token identified by a UUID, bound to a peer and stamped when issued.

    ``tm`` is a wall-clock timestamp in seconds, or None while unissued.
    """

    uuid: uuid.UUID = field(default_factory=uuid.uuid4)
    pid: str = ""
    tm: float | None = None

    @classmethod
    def new(cls) -> "Token":
        """Return a fresh token with a random UUID and no timestamp."""
        return cls(uuid=uuid.uuid4())

    def to_bytes(self) -> bytes:
        """Serialise the token."""
        pid = self.pid.encode("utf-8")
        if len(pid) > 0xFFFF:
            raise ValueError("peer id too long")
        stamp = 0 if self.tm is None else int(round(self.tm * 1_000_000_000))
        return self.uuid.bytes + _PID_LEN.pack(len(pid)) + pid + _TIME.pack(stamp)

    @classmethod
    def from_bytes(cls, data: bytes) -> "Token":
        """Parse a serialised token; raises ValueError if malformed."""
        data = bytes(data)
        head = _UUID_SIZE + _PID_LEN.size
        if len(data) < head + _TIME.size:
            raise ValueError(f"token data too short: {len(data)} bytes")
        (pid_len,) = _PID_LEN.unpack_from(data, _UUID_SIZE)
        if len(data) != head + pid_len + _TIME.size:
            raise ValueError("token data has wrong length")
        pid = data[head : head + pid_len].decode("utf-8")
        (stamp,) = _TIME.unpack_from(data, head + pid_len)
        tm = None if stamp == 0 else stamp / 1_000_000_000
        return cls(uuid=uuid.UUID(bytes=data[:_UUID_SIZE]), pid=pid, tm=tm)

    @classmethod
    def from_string(cls, text: str) -> "Token":
        """Parse the base58 form produced by ``str(token)``."""
        return cls.from_bytes(b58decode(text))

    def __str__(self) -> str:
        return b58encode(self.to_bytes())

    def is_outtime(self, ttl: float) -> bool:
        """Return True if the token was issued more than ``ttl`` seconds ago."""
        return self.tm is not None and time.time() - self.tm > ttl

    def reset(self) -> None:
        """Stamp the token with the current time."""
        self.tm = time.time()
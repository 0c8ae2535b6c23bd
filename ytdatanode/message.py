"""Message identifiers, wire headers and shard hash checks."""

from __future__ import annotations

import hashlib
from enum import IntEnum

HEADER_SIZE = 2


class MsgType(IntEnum):
    """Message identifiers exchanged between nodes."""

    NODE_CAPACITY_REQUEST = 0xC487
    NODE_CAPACITY_RESPONSE = 0xE684
    UPLOAD_SHARD_REQUEST = 0xCB05
    UPLOAD_SHARD_RESPONSE = 0x870B
    VOID_RESPONSE = 0xE64F
    UPLOAD_SHARD_2C_RESPONSE = 0x1978
    DOWNLOAD_SHARD_REQUEST = 0x1757
    DOWNLOAD_SHARD_RESPONSE = 0x7A56
    NODE_REG_REQ = 0x12AA
    NODE_REG_RESP = 0xFB92
    STATUS_REP_REQ = 0xC9A9
    STATUS_REP_RESP = 0xFA09
    TASK_DESCRIPT = 0xD761
    TASK_DESCRIPT_CP = 0xC258
    TASK_OP_RESULT = 0x16F3
    SPOT_CHECK_TASK_LIST = 0x903A
    SPOT_CHECK_STATUS = 0xA583
    STRING = 0x0011
    MULTI_TASK_DESCRIPTION = 0x2CB0
    LRC_TASK_DESCRIPTION = 0x68B3
    MULTI_TASK_OP_RESULT = 0x1B31
    LIST_DNI_REQ = 0x4BC6
    LIST_DNI_RESP = 0xD6CB
    DOWNLOAD_YTFS_FILE = 0x1B32
    DEBUG = 0x1B33
    SLEEP_RETURN = 0xE75C
    SELF_VERIFY_REQ = 0xD97A
    SELF_VERIFY_RESP = 0x58B7

    def header(self) -> bytes:
        """Return the two-byte big-endian prefix that tags a message of this type."""
        return (self.value & 0xFFFF).to_bytes(HEADER_SIZE, "big")


def verify_vhf(data: bytes, vhf: bytes) -> bool:
    """Return True when the MD5 digest of ``data`` equals ``vhf``."""
    return hashlib.md5(bytes(data)).digest() == bytes(vhf)


def parse_header(data: bytes) -> tuple[MsgType | int, bytes]:
    """Split a framed message into its identifier and payload.

    Known identifiers are returned as :class:`MsgType`, unknown ones as int.
    """
    if len(data) < HEADER_SIZE:
        raise ValueError(f"message too short: {len(data)} bytes, need {HEADER_SIZE}")
    raw = int.from_bytes(bytes(data[:HEADER_SIZE]), "big")
    try:
        msg_id: MsgType | int = MsgType(raw)
    except ValueError:
        msg_id = raw
    return msg_id, bytes(data[HEADER_SIZE:])
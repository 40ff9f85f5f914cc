from __future__ import annotations

from enum import IntEnum


class CallType(IntEnum):
    STREAM_ALL = 1
    RESEND = 2


class RequestError(ValueError):
    pass


def max_fetch_sequence(seq_bytes: int = 1) -> int:
    if seq_bytes not in (1, 4):
        raise RequestError("seq_bytes must be 1 or 4")
    return (1 << (8 * seq_bytes)) - 1


def build_stream_all_request() -> bytes:
    return bytes([CallType.STREAM_ALL, 0])


def build_fetch_request(seq: int, seq_bytes: int = 1) -> bytes:
    """
    Resend request for one sequence number.

    The stock protocol carries the sequence in a single byte. `seq_bytes=4`
    is a protocol extension (unsigned 32-bit big-endian) for servers that
    accept it.
    """
    limit = max_fetch_sequence(seq_bytes)
    if not (0 <= seq <= limit):
        raise RequestError(f"seq must be 0..{limit}")
    return bytes([CallType.RESEND]) + int(seq).to_bytes(seq_bytes, "big")

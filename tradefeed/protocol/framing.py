from __future__ import annotations

import warnings
from typing import Callable, Iterable, Iterator


class ShortTailWarning(UserWarning):
    pass


class FrameReassembler:
    """
    Cuts a byte stream into fixed-size frames.

    Chunk boundaries from the transport carry no meaning: a chunk may hold
    several frames, part of one, or both. Residual bytes stay buffered until
    the next `feed`.
    """

    def __init__(self, packet_size: int) -> None:
        if packet_size <= 0:
            raise ValueError("packet_size must be > 0")
        self._packet_size = int(packet_size)
        self._buf = bytearray()

    @property
    def packet_size(self) -> int:
        return self._packet_size

    def feed(self, data: bytes) -> None:
        if data:
            self._buf.extend(data)

    def pop(self) -> bytes | None:
        if len(self._buf) < self._packet_size:
            return None
        frame = bytes(self._buf[: self._packet_size])
        del self._buf[: self._packet_size]
        return frame

    def frames(self, data: bytes) -> Iterator[bytes]:
        self.feed(data)
        while True:
            frame = self.pop()
            if frame is None:
                return
            yield frame

    def buffered_bytes(self) -> int:
        return len(self._buf)

    def drain_tail(self) -> bytes:
        tail = bytes(self._buf)
        self._buf.clear()
        return tail


def reassemble(
    chunks: Iterable[bytes],
    packet_size: int,
    on_tail: Callable[[bytes], None] | None = None,
) -> Iterator[bytes]:
    reassembler = FrameReassembler(packet_size)
    for chunk in chunks:
        yield from reassembler.frames(chunk)
    tail = reassembler.drain_tail()
    if tail:
        if on_tail is not None:
            on_tail(tail)
        else:
            warnings.warn(
                f"stream ended with {len(tail)} trailing bytes (< {packet_size})",
                ShortTailWarning,
                stacklevel=2,
            )

from __future__ import annotations

import random
from collections import deque
from itertools import cycle
from typing import Deque, Dict, Iterable, List, Literal, Mapping, Sequence

from tradefeed.protocol.packet import TRADE_PACKET_SPEC, Packet, PacketSpec, encode
from tradefeed.protocol.request import CallType
from tradefeed.runtime.scheduler import Clock, RealClock
from tradefeed.transport.base import IStreamTransport, TransportError, TransportTimeout

Outcome = Literal["ok", "timeout", "reset", "close", "corrupt", "short", "wrong_seq"]
OUTCOMES = ("ok", "timeout", "reset", "close", "corrupt", "short", "wrong_seq")


class MockFeedServer:
    """
    In-memory feed server.

    `connect()` hands out a fresh MockTransport, so the bound method works as a
    transport factory. Stream-all replies with every frame (minus `omit`),
    split into chunks, then closes. Resend replies follow `resend_script`:
    one outcome per attempt for a sequence, "ok" once the script runs out.
    """

    def __init__(
        self,
        packets: Sequence[Packet | bytes],
        clock: Clock | None = None,
        *,
        omit: Iterable[int] = (),
        chunk_sizes: Sequence[int] | None = None,
        seed: int | None = None,
        max_chunk: int = 64,
        stream_tail: bytes = b"",
        resend_script: Mapping[int, Sequence[Outcome]] | None = None,
        refuse_connects: int = 0,
        latency_ms: int = 0,
        connect_latency_ms: int = 0,
        packet_spec: PacketSpec = TRADE_PACKET_SPEC,
    ) -> None:
        if chunk_sizes is not None and any(size <= 0 for size in chunk_sizes):
            raise ValueError("chunk sizes must be > 0")
        if max_chunk <= 0:
            raise ValueError("max_chunk must be > 0")
        self._clock = clock or RealClock()
        self._spec = packet_spec
        self._items = list(packets)
        self._omit = set(omit)
        self._chunk_sizes = list(chunk_sizes) if chunk_sizes else None
        self._rng = random.Random(seed) if seed is not None else None
        self._max_chunk = max_chunk
        self._stream_tail = stream_tail
        self._script: Dict[int, Deque[str]] = {}
        for seq, outcomes in (resend_script or {}).items():
            for outcome in outcomes:
                if outcome not in OUTCOMES:
                    raise ValueError(f"unknown outcome: {outcome}")
            self._script[int(seq)] = deque(outcomes)
        self._refuse_connects = refuse_connects
        self.latency_ms = latency_ms
        self.connect_latency_ms = connect_latency_ms
        self.requests: List[bytes] = []
        self.connects = 0
        self.closes = 0

    @property
    def clock(self) -> Clock:
        return self._clock

    def open_connections(self) -> int:
        return self.connects - self.closes

    def _by_sequence(self) -> Dict[int, Packet]:
        return {item.sequence: item for item in self._items if isinstance(item, Packet)}

    def stream_bytes(self) -> bytes:
        out = bytearray()
        for item in self._items:
            if isinstance(item, Packet):
                if item.sequence in self._omit:
                    continue
                out.extend(encode(item, self._spec))
            else:
                out.extend(item)
        out.extend(self._stream_tail)
        return bytes(out)

    def _chunk(self, data: bytes) -> List[bytes]:
        if self._chunk_sizes is None and self._rng is None:
            return [data] if data else []
        sizes = cycle(self._chunk_sizes) if self._chunk_sizes else None
        chunks = []
        pos = 0
        while pos < len(data):
            if sizes is not None:
                size = next(sizes)
            else:
                size = self._rng.randint(1, self._max_chunk)  # type: ignore[union-attr]
            chunks.append(data[pos : pos + size])
            pos += size
        return chunks

    def _on_connect(self) -> None:
        if self._refuse_connects > 0:
            self._refuse_connects -= 1
            raise TransportError("connection refused")
        self.connects += 1

    def _on_close(self) -> None:
        self.closes += 1

    def _respond(self, request: bytes, conn: "MockTransport") -> None:
        self.requests.append(bytes(request))
        if not request:
            return
        call_type = request[0]
        if call_type == CallType.STREAM_ALL:
            conn._queue.extend(self._chunk(self.stream_bytes()))
            conn._peer_closed = True
            return
        if call_type != CallType.RESEND or len(request) < 2:
            conn._peer_closed = True
            return
        seq = int.from_bytes(request[1:], "big")
        packet = self._by_sequence().get(seq)
        script = self._script.get(seq)
        outcome = script.popleft() if script else "ok"
        if packet is None or outcome == "timeout":
            return
        frame = encode(packet, self._spec)
        if outcome == "ok":
            conn._queue.append(frame)
        elif outcome == "reset":
            conn._reset = True
        elif outcome == "close":
            conn._peer_closed = True
        elif outcome == "corrupt":
            conn._queue.append(frame[:4] + b"X" + frame[5:])
        elif outcome == "short":
            conn._queue.append(frame[: len(frame) // 2])
        elif outcome == "wrong_seq":
            other = Packet(packet.symbol, packet.side, packet.quantity, packet.price, seq + 1)
            conn._queue.append(encode(other, self._spec))

    def connect(self) -> "MockTransport":
        return MockTransport(self)


class MockTransport(IStreamTransport):
    def __init__(self, server: MockFeedServer) -> None:
        self._server = server
        self._queue: Deque[bytes] = deque()
        self._connected = False
        self._peer_closed = False
        self._reset = False
        self.sent: List[bytes] = []

    def connect(self, timeout_ms: int | None = None) -> None:
        clock = self._server.clock
        latency = self._server.connect_latency_ms
        if timeout_ms is not None and latency >= timeout_ms:
            clock.sleep_ms(timeout_ms)
            raise TransportTimeout(f"connect timed out after {timeout_ms} ms")
        clock.sleep_ms(latency)
        self._server._on_connect()
        self._connected = True

    def send(self, data: bytes) -> None:
        if not self._connected:
            raise TransportError("not connected")
        self.sent.append(bytes(data))
        self._server._respond(data, self)

    def recv(self, timeout_ms: int | None) -> bytes | None:
        if not self._connected:
            raise TransportError("not connected")
        clock = self._server.clock
        latency = self._server.latency_ms
        if self._queue:
            if timeout_ms is not None and latency > timeout_ms:
                clock.sleep_ms(timeout_ms)
                return None
            clock.sleep_ms(latency)
            return self._queue.popleft()
        if self._reset:
            raise TransportError("connection reset by peer")
        if self._peer_closed:
            return b""
        if timeout_ms is None:
            raise TransportError("mock peer sent nothing and no timeout was given")
        clock.sleep_ms(timeout_ms)
        return None

    def close(self) -> None:
        if self._connected:
            self._connected = False
            self._server._on_close()
        return None

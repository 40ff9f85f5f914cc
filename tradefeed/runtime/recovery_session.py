from __future__ import annotations

from tradefeed.protocol.packet import (
    TRADE_PACKET_SPEC,
    FrameSizeError,
    Packet,
    PacketSpec,
    PacketValidationError,
    check,
    decode,
)
from tradefeed.protocol.request import build_fetch_request
from tradefeed.runtime.logging import EventLogger
from tradefeed.runtime.scheduler import Clock, RealClock
from tradefeed.transport.base import (
    IStreamTransport,
    TransportError,
    TransportFactory,
    TransportTimeout,
)

DEFAULT_TIMEOUT_MS = 5000


class RecoverySession:
    """
    One resend exchange per call: connect, ask for a single sequence, take the
    single frame the server answers with, hang up.

    The server leaves the connection open after answering, so the client
    closes as soon as a full frame is in hand. The whole exchange, connect
    included, is bounded by `timeout_ms`; bytes split over several reads
    inside that window are joined, anything beyond one frame is rejected.
    """

    def __init__(
        self,
        transport_factory: TransportFactory,
        logger: EventLogger,
        packet_spec: PacketSpec = TRADE_PACKET_SPEC,
        clock: Clock | None = None,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        validate: bool = True,
        seq_bytes: int = 1,
    ) -> None:
        if timeout_ms <= 0:
            raise ValueError("timeout_ms must be > 0")
        self._transport_factory = transport_factory
        self._logger = logger
        self._spec = packet_spec
        self._clock = clock or RealClock()
        self._timeout_ms = int(timeout_ms)
        self._validate = bool(validate)
        self._seq_bytes = seq_bytes

    @property
    def seq_bytes(self) -> int:
        return self._seq_bytes

    def _read_frame(self, transport: IStreamTransport, seq: int, deadline_ms: int) -> bytes:
        size = self._spec.packet_size
        buf = bytearray()
        while len(buf) < size:
            remaining = deadline_ms - self._clock.now_ms()
            if remaining <= 0:
                raise TransportTimeout(f"timeout requesting packet {seq}")
            chunk = transport.recv(remaining)
            if chunk is None:
                raise TransportTimeout(f"timeout requesting packet {seq}")
            if not chunk:
                raise TransportError(
                    f"peer closed after {len(buf)} of {size} bytes for packet {seq}"
                )
            buf.extend(chunk)
        if len(buf) != size:
            raise FrameSizeError(
                f"resend reply for packet {seq} is {len(buf)} bytes, expected {size}"
            )
        return bytes(buf)

    def fetch_one(self, seq: int) -> Packet:
        request = build_fetch_request(seq, self._seq_bytes)
        transport = self._transport_factory()
        deadline_ms = self._clock.now_ms() + self._timeout_ms
        try:
            transport.connect(timeout_ms=self._timeout_ms)
            transport.send(request)
            frame = self._read_frame(transport, seq, deadline_ms)
        finally:
            transport.close()
        packet = decode(frame, self._spec)
        if self._validate:
            check(packet)
            if packet.sequence != seq:
                raise PacketValidationError(
                    f"requested packet {seq} but received {packet.sequence}"
                )
        return packet

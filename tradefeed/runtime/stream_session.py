from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, List

from tradefeed.protocol.framing import reassemble
from tradefeed.protocol.packet import (
    TRADE_PACKET_SPEC,
    Packet,
    PacketError,
    PacketSpec,
    check,
    decode,
)
from tradefeed.protocol.request import build_stream_all_request
from tradefeed.runtime.logging import EventLogger
from tradefeed.transport.base import IStreamTransport, TransportFactory, TransportTimeout


@dataclass(frozen=True)
class Anomaly:
    kind: str
    reason: str
    frame_index: int | None
    raw: str


@dataclass
class StreamResult:
    packets: List[Packet] = field(default_factory=list)
    anomalies: List[Anomaly] = field(default_factory=list)
    bytes_received: int = 0
    tail_bytes: int = 0

    def sequences(self) -> List[int]:
        return [packet.sequence for packet in self.packets]


class StreamSession:
    def __init__(
        self,
        transport_factory: TransportFactory,
        logger: EventLogger,
        packet_spec: PacketSpec = TRADE_PACKET_SPEC,
        recv_timeout_ms: int | None = None,
    ) -> None:
        if recv_timeout_ms is not None and recv_timeout_ms <= 0:
            raise ValueError("recv_timeout_ms must be > 0 (or None)")
        self._transport_factory = transport_factory
        self._logger = logger
        self._spec = packet_spec
        self._recv_timeout_ms = recv_timeout_ms

    def _chunks(self, transport: IStreamTransport, result: StreamResult) -> Iterator[bytes]:
        while True:
            chunk = transport.recv(self._recv_timeout_ms)
            if chunk is None:
                raise TransportTimeout(
                    f"no stream data within {self._recv_timeout_ms} ms"
                )
            if not chunk:
                return
            result.bytes_received += len(chunk)
            yield chunk

    def _on_tail(self, result: StreamResult, tail: bytes) -> None:
        result.tail_bytes = len(tail)
        result.anomalies.append(
            Anomaly(
                kind="short_tail",
                reason=f"{len(tail)} trailing bytes (< {self._spec.packet_size})",
                frame_index=None,
                raw=tail.hex(),
            )
        )
        self._logger.log_event("stream_short_tail", {"tail_bytes": len(tail)})

    def run_stream_all(self) -> StreamResult:
        result = StreamResult()
        transport = self._transport_factory()
        try:
            transport.connect()
            self._logger.log_event("stream_connected", {})
            transport.send(build_stream_all_request())
            frames = reassemble(
                self._chunks(transport, result),
                self._spec.packet_size,
                on_tail=lambda tail: self._on_tail(result, tail),
            )
            for index, frame in enumerate(frames):
                try:
                    packet = check(decode(frame, self._spec))
                except PacketError as exc:
                    result.anomalies.append(
                        Anomaly(
                            kind="invalid_packet",
                            reason=str(exc),
                            frame_index=index,
                            raw=frame.hex(),
                        )
                    )
                    self._logger.log_event(
                        "stream_invalid_packet",
                        {"frame_index": index, "reason": str(exc), "raw": frame.hex()},
                    )
                    continue
                result.packets.append(packet)
        finally:
            transport.close()
        self._logger.log_event(
            "stream_closed",
            {
                "packets": len(result.packets),
                "anomalies": len(result.anomalies),
                "bytes_received": result.bytes_received,
            },
        )
        return result

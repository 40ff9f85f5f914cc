from __future__ import annotations

from tradefeed.config.clientspec import ClientSpec
from tradefeed.protocol.packet import TRADE_PACKET_SPEC, PacketSpec
from tradefeed.runtime.assembler import AssemblyResult, assemble
from tradefeed.runtime.gap_resolver import GapResolver
from tradefeed.runtime.logging import EventLogger
from tradefeed.runtime.recovery_session import RecoverySession
from tradefeed.runtime.scheduler import Clock, RealClock, RetryPolicy
from tradefeed.runtime.stream_session import StreamResult, StreamSession
from tradefeed.transport.base import IStreamTransport, TransportFactory
from tradefeed.transport.tcp import TcpTransport


class FeedClient:
    """Stream everything, recover the gaps, return the ordered dataset."""

    def __init__(
        self,
        spec: ClientSpec,
        logger: EventLogger,
        transport_factory: TransportFactory | None = None,
        clock: Clock | None = None,
        packet_spec: PacketSpec = TRADE_PACKET_SPEC,
    ) -> None:
        self._spec = spec
        self._logger = logger
        self._clock = clock or RealClock()
        self._transport_factory = transport_factory or self._tcp_transport
        self._stream = StreamSession(
            self._transport_factory,
            logger,
            packet_spec=packet_spec,
            recv_timeout_ms=spec.stream.idle_timeout_ms,
        )
        recovery = spec.recovery
        self._resolver = GapResolver(
            RecoverySession(
                self._transport_factory,
                logger,
                packet_spec=packet_spec,
                clock=self._clock,
                timeout_ms=recovery.timeout_ms,
                validate=recovery.validate,
                seq_bytes=recovery.fetch_seq_bytes,
            ),
            logger,
            retry=RetryPolicy(
                max_attempts=recovery.max_attempts,
                backoff_ms=recovery.backoff_ms,
                jitter_ms=recovery.jitter_ms,
            ),
            clock=self._clock,
        )
        self.stream_result: StreamResult | None = None

    def _tcp_transport(self) -> IStreamTransport:
        server = self._spec.server
        return TcpTransport(
            server.host,
            server.port,
            connect_timeout_ms=server.connect_timeout_ms,
            recv_bytes=self._spec.stream.recv_bytes,
        )

    @property
    def resolver(self) -> GapResolver:
        return self._resolver

    def run(self) -> AssemblyResult:
        self.stream_result = self._stream.run_stream_all()
        received = self.stream_result.packets
        recovered = self._resolver.resolve(received)
        return assemble(
            received,
            recovered,
            logger=self._logger,
            strict=self._spec.strict_completeness,
        )

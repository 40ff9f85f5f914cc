from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List

from tradefeed.protocol.packet import Packet, PacketError
from tradefeed.protocol.request import RequestError, max_fetch_sequence
from tradefeed.runtime.logging import EventLogger
from tradefeed.runtime.recovery_session import RecoverySession
from tradefeed.runtime.scheduler import Clock, RealClock, RetryPolicy
from tradefeed.transport.base import TransportError

RECOVERABLE_ERRORS = (TransportError, PacketError)


def find_missing(sequences: Iterable[int], limit: int | None = None) -> List[int]:
    """Sequences absent from `1..max`, ascending; `limit` caps the scanned range."""
    present = set(sequences)
    if not present:
        return []
    max_seq = max(present)
    if limit is not None:
        max_seq = min(max_seq, limit)
    if max_seq <= 0:
        return []
    return [seq for seq in range(1, max_seq + 1) if seq not in present]


def count_missing(sequences: Iterable[int], first: int, last: int) -> int:
    """Number of sequences in `first..last` that are absent, without listing them."""
    if last < first:
        return 0
    present = {seq for seq in set(sequences) if first <= seq <= last}
    return (last - first + 1) - len(present)


@dataclass(frozen=True)
class LostSequence:
    seq: int
    attempts: int
    reason: str


@dataclass(frozen=True)
class LostRange:
    first: int
    last: int
    count: int
    reason: str


class GapResolver:
    def __init__(
        self,
        session: RecoverySession,
        logger: EventLogger,
        retry: RetryPolicy | None = None,
        clock: Clock | None = None,
        max_fetch_seq: int | None = None,
    ) -> None:
        self._session = session
        self._logger = logger
        self._retry = retry or RetryPolicy()
        self._clock = clock or RealClock()
        if max_fetch_seq is None:
            max_fetch_seq = max_fetch_sequence(session.seq_bytes)
        self._max_fetch_seq = max_fetch_seq
        self.missing: List[int] = []
        self.missing_count = 0
        self.lost: Dict[int, LostSequence] = {}
        self.lost_ranges: List[LostRange] = []
        self.recovered_count = 0
        self.attempts_total = 0

    def fetch_with_retries(self, seq: int) -> Packet:
        max_attempts = self._retry.max_attempts
        for attempt in range(1, max_attempts + 1):
            self.attempts_total += 1
            started_ms = self._clock.now_ms()
            self._logger.log_event(
                "recovery_attempt",
                {"seq": seq, "attempt": attempt, "max_attempts": max_attempts},
            )
            try:
                packet = self._session.fetch_one(seq)
            except RECOVERABLE_ERRORS as exc:
                self._logger.log_event(
                    "recovery_failed",
                    {
                        "seq": seq,
                        "attempt": attempt,
                        "max_attempts": max_attempts,
                        "error": type(exc).__name__,
                        "reason": str(exc),
                    },
                )
                if attempt == max_attempts:
                    raise
                self._clock.sleep_ms(self._retry.delay_ms(attempt))
                continue
            self._logger.log_event(
                "recovery_ok",
                {
                    "seq": seq,
                    "attempt": attempt,
                    "latency_ms": self._clock.now_ms() - started_ms,
                },
            )
            return packet
        raise AssertionError("unreachable")  # pragma: no cover

    def _mark_lost(self, seq: int, attempts: int, reason: str) -> None:
        self.lost[seq] = LostSequence(seq=seq, attempts=attempts, reason=reason)
        self._logger.log_event(
            "recovery_lost", {"seq": seq, "attempts": attempts, "reason": reason}
        )

    def _mark_unrequestable(self, first: int, last: int, count: int) -> None:
        lost = LostRange(first=first, last=last, count=count, reason="unrequestable")
        self.lost_ranges.append(lost)
        self._logger.log_event(
            "recovery_lost",
            {"first": first, "last": last, "count": count, "attempts": 0, "reason": lost.reason},
        )

    def resolve(self, received: Iterable[Packet]) -> List[Packet]:
        sequences = {packet.sequence for packet in received}
        max_seq = max(sequences, default=0)
        # Gaps past the request width cannot be asked for; keep them as one range.
        self.missing = find_missing(sequences, limit=self._max_fetch_seq)
        beyond = count_missing(sequences, self._max_fetch_seq + 1, max_seq)
        self.missing_count = len(self.missing) + beyond
        self._logger.log_event(
            "gaps_detected",
            {"missing": list(self.missing), "count": self.missing_count, "unrequestable": beyond},
        )
        if beyond:
            self._mark_unrequestable(self._max_fetch_seq + 1, max_seq, beyond)
        recovered: List[Packet] = []
        for seq in self.missing:
            try:
                packet = self.fetch_with_retries(seq)
            except RequestError as exc:
                self._mark_lost(seq, 0, str(exc))
                continue
            except RECOVERABLE_ERRORS as exc:
                self._mark_lost(seq, self._retry.max_attempts, str(exc))
                continue
            recovered.append(packet)
        self.recovered_count = len(recovered)
        return recovered

    def metrics(self) -> dict:
        return {
            "missing_count": self.missing_count,
            "recovered_count": self.recovered_count,
            "lost_count": len(self.lost) + sum(r.count for r in self.lost_ranges),
            "attempts_total": self.attempts_total,
            "lost": sorted(self.lost),
            "lost_ranges": [
                {"first": r.first, "last": r.last, "count": r.count, "reason": r.reason}
                for r in self.lost_ranges
            ],
        }

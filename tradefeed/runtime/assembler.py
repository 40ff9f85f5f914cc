from __future__ import annotations

from dataclasses import dataclass, field
from typing import Container, Dict, Iterable, List

from tradefeed.protocol.packet import Packet
from tradefeed.runtime.logging import EventLogger

# Longest list of missing sequences kept on a result or in a log event.
MISSING_LIST_LIMIT = 1000


class IncompleteDatasetError(RuntimeError):
    def __init__(
        self, missing: List[int], max_sequence: int, missing_count: int | None = None
    ) -> None:
        if missing_count is None:
            missing_count = len(missing)
        super().__init__(
            f"{missing_count} of {max_sequence} sequences missing: {missing[:20]}"
        )
        self.missing = list(missing)
        self.missing_count = missing_count
        self.max_sequence = max_sequence


@dataclass
class AssemblyResult:
    """
    Ordered dataset plus what is still absent from `1..max_sequence`.

    `missing` lists at most MISSING_LIST_LIMIT sequences (the lowest ones);
    `missing_count` is always exact.
    """

    packets: List[Packet] = field(default_factory=list)
    max_sequence: int = 0
    missing: List[int] = field(default_factory=list)
    recovered_count: int = 0
    missing_count: int = 0

    @property
    def complete(self) -> bool:
        return self.missing_count == 0

    def sequences(self) -> List[int]:
        return [packet.sequence for packet in self.packets]


def _lowest_missing(present: Container[int], max_sequence: int, limit: int) -> List[int]:
    out: List[int] = []
    seq = 1
    while seq <= max_sequence and len(out) < limit:
        if seq not in present:
            out.append(seq)
        seq += 1
    return out


def assemble(
    received: Iterable[Packet],
    recovered: Iterable[Packet],
    logger: EventLogger | None = None,
    strict: bool = False,
) -> AssemblyResult:
    received = list(received)
    recovered = list(recovered)
    max_sequence = max((packet.sequence for packet in received), default=0)

    by_sequence: Dict[int, Packet] = {}
    for packet in (*received, *recovered):
        by_sequence[packet.sequence] = packet
    packets = [by_sequence[seq] for seq in sorted(by_sequence)]
    in_range = sum(1 for seq in by_sequence if 1 <= seq <= max_sequence)
    missing_count = max(0, max_sequence) - in_range
    missing = _lowest_missing(by_sequence, max_sequence, MISSING_LIST_LIMIT)

    result = AssemblyResult(
        packets=packets,
        max_sequence=max_sequence,
        missing=missing,
        recovered_count=len(recovered),
        missing_count=missing_count,
    )
    if missing_count:
        if logger is not None:
            logger.log_event(
                "completeness_warning",
                {
                    "missing": missing,
                    "missing_count": missing_count,
                    "max_sequence": max_sequence,
                },
            )
        if strict:
            raise IncompleteDatasetError(missing, max_sequence, missing_count)
    if logger is not None:
        logger.log_event(
            "assembled",
            {
                "packets": len(packets),
                "max_sequence": max_sequence,
                "complete": result.complete,
            },
        )
    return result

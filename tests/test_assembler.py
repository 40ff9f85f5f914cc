import pytest

from tradefeed.protocol.packet import Packet
from tradefeed.runtime.assembler import MISSING_LIST_LIMIT, IncompleteDatasetError, assemble


class _MemLogger:
    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, object]]] = []

    def log_event(self, event: str, payload: dict[str, object]) -> None:
        self.events.append((event, payload))

    def names(self) -> list[str]:
        return [name for name, _ in self.events]


def _pkt(seq: int, price: int = 100) -> Packet:
    return Packet("TSLA", "B", 1, price, seq)


def test_assemble_sorts_and_merges() -> None:
    logger = _MemLogger()
    result = assemble([_pkt(3), _pkt(1), _pkt(5)], [_pkt(4), _pkt(2)], logger=logger)
    assert result.sequences() == [1, 2, 3, 4, 5]
    assert result.complete
    assert result.missing == []
    assert result.max_sequence == 5
    assert result.recovered_count == 2
    assert logger.names() == ["assembled"]


def test_assemble_flags_incomplete() -> None:
    logger = _MemLogger()
    result = assemble([_pkt(1), _pkt(4)], [_pkt(2)], logger=logger)
    assert result.sequences() == [1, 2, 4]
    assert not result.complete
    assert result.missing == [3]
    assert logger.events[0] == (
        "completeness_warning", {"missing": [3], "missing_count": 1, "max_sequence": 4}
    )
    assert logger.events[-1][1]["complete"] is False


def test_assemble_strict_raises() -> None:
    with pytest.raises(IncompleteDatasetError, match="1 of 3 sequences missing") as info:
        assemble([_pkt(1), _pkt(3)], [], strict=True)
    assert info.value.missing == [2]
    assert info.value.max_sequence == 3


def test_assemble_strict_complete_passes() -> None:
    result = assemble([_pkt(1)], [], strict=True)
    assert result.complete


def test_duplicate_sequence_last_write_wins() -> None:
    result = assemble([_pkt(1, price=10), _pkt(2), _pkt(1, price=11)], [_pkt(2, price=99)])
    assert result.sequences() == [1, 2]
    assert result.packets[0].price == 11
    assert result.packets[1].price == 99


def test_assemble_empty() -> None:
    result = assemble([], [])
    assert result.packets == []
    assert result.max_sequence == 0
    assert result.complete


def test_assemble_huge_gap_keeps_missing_list_short() -> None:
    logger = _MemLogger()
    result = assemble([_pkt(1), _pkt(2_000_000_000)], [], logger=logger)
    assert result.missing_count == 1_999_999_998
    assert len(result.missing) == MISSING_LIST_LIMIT
    assert result.missing[:3] == [2, 3, 4]
    assert not result.complete
    warning = logger.events[0][1]
    assert warning["missing_count"] == 1_999_999_998
    assert len(warning["missing"]) == MISSING_LIST_LIMIT


def test_assemble_strict_reports_full_count() -> None:
    with pytest.raises(IncompleteDatasetError, match="1999999998 of 2000000000") as info:
        assemble([_pkt(1), _pkt(2_000_000_000)], [], strict=True)
    assert info.value.missing_count == 1_999_999_998
    assert len(info.value.missing) == MISSING_LIST_LIMIT


def test_missing_count_ignores_packets_outside_range() -> None:
    result = assemble([_pkt(3)], [_pkt(9)])
    assert result.missing == [1, 2]
    assert result.missing_count == 2
    assert result.sequences() == [3, 9]

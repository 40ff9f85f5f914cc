import pytest

from tradefeed.protocol.packet import Packet
from tradefeed.runtime.gap_resolver import GapResolver, LostRange, count_missing, find_missing
from tradefeed.runtime.recovery_session import RecoverySession
from tradefeed.runtime.scheduler import FakeClock, RetryPolicy
from tradefeed.transport.base import TransportError, TransportTimeout
from tradefeed.transport.mock import MockFeedServer


class _MemLogger:
    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, object]]] = []

    def log_event(self, event: str, payload: dict[str, object]) -> None:
        self.events.append((event, payload))

    def of(self, name: str) -> list[dict[str, object]]:
        return [payload for event, payload in self.events if event == name]


def _pkt(seq: int) -> Packet:
    return Packet("AMZN", "S", 3, 3300, seq)


def _resolver(server: MockFeedServer, clock: FakeClock, logger: _MemLogger, **kwargs) -> GapResolver:  # type: ignore[no-untyped-def]
    session = RecoverySession(server.connect, logger, clock=clock)
    return GapResolver(session, logger, clock=clock, **kwargs)


@pytest.mark.parametrize(
    "sequences,expected",
    [
        ([1, 2, 4, 5], [3]),
        ([5, 1, 4, 2], [3]),
        ([1, 2, 3], []),
        ([3], [1, 2]),
        ([], []),
        ([0], []),
        ([-3], []),
        ([2, 2, 6], [1, 3, 4, 5]),
    ],
)
def test_find_missing(sequences: list[int], expected: list[int]) -> None:
    assert find_missing(sequences) == expected


def test_no_gaps_no_requests() -> None:
    clock = FakeClock()
    server = MockFeedServer([_pkt(1), _pkt(2)], clock)
    logger = _MemLogger()
    recovered = _resolver(server, clock, logger).resolve([_pkt(1), _pkt(2)])
    assert recovered == []
    assert server.requests == []


def test_empty_received_no_requests() -> None:
    clock = FakeClock()
    server = MockFeedServer([], clock)
    resolver = _resolver(server, clock, _MemLogger())
    assert resolver.resolve([]) == []
    assert resolver.metrics()["missing_count"] == 0
    assert server.connects == 0


def test_recovers_missing_in_ascending_order() -> None:
    clock = FakeClock()
    server = MockFeedServer([_pkt(s) for s in range(1, 7)], clock)
    logger = _MemLogger()
    recovered = _resolver(server, clock, logger).resolve([_pkt(6), _pkt(1), _pkt(4)])
    assert [p.sequence for p in recovered] == [2, 3, 5]
    assert server.requests == [b"\x02\x02", b"\x02\x03", b"\x02\x05"]
    assert logger.of("gaps_detected") == [{"missing": [2, 3, 5], "count": 3, "unrequestable": 0}]


def test_fails_twice_then_succeeds() -> None:
    clock = FakeClock()
    server = MockFeedServer(
        [_pkt(s) for s in range(1, 4)], clock, resend_script={2: ["timeout", "reset"]}
    )
    logger = _MemLogger()
    resolver = _resolver(server, clock, logger)
    recovered = resolver.resolve([_pkt(1), _pkt(3)])
    assert recovered == [_pkt(2)]
    assert server.connects == 3
    assert [e["attempt"] for e in logger.of("recovery_attempt")] == [1, 2, 3]
    assert [e["error"] for e in logger.of("recovery_failed")] == ["TransportTimeout", "TransportError"]
    assert logger.of("recovery_ok")[0]["attempt"] == 3
    assert resolver.metrics()["attempts_total"] == 3
    assert resolver.lost == {}


def test_exhausted_retries_skip_and_continue() -> None:
    clock = FakeClock()
    server = MockFeedServer(
        [_pkt(s) for s in range(1, 6)],
        clock,
        resend_script={2: ["timeout", "timeout", "timeout"]},
    )
    logger = _MemLogger()
    resolver = _resolver(server, clock, logger)
    recovered = resolver.resolve([_pkt(1), _pkt(5)])
    assert [p.sequence for p in recovered] == [3, 4]
    assert list(resolver.lost) == [2]
    assert resolver.lost[2].attempts == 3
    assert "timeout requesting packet 2" in resolver.lost[2].reason
    assert clock.now_ms() == 3 * 5000
    assert resolver.metrics() == {
        "missing_count": 3,
        "recovered_count": 2,
        "lost_count": 1,
        "attempts_total": 5,
        "lost": [2],
        "lost_ranges": [],
    }
    assert logger.of("recovery_lost") == [
        {"seq": 2, "attempts": 3, "reason": "timeout requesting packet 2"}
    ]


def test_fetch_with_retries_reraises_last_error() -> None:
    clock = FakeClock()
    server = MockFeedServer(
        [_pkt(1)], clock, resend_script={1: ["reset", "timeout"]}
    )
    resolver = _resolver(server, clock, _MemLogger(), retry=RetryPolicy(max_attempts=2))
    with pytest.raises(TransportTimeout):
        resolver.fetch_with_retries(1)


def test_single_attempt_policy() -> None:
    clock = FakeClock()
    server = MockFeedServer([_pkt(1), _pkt(2)], clock, resend_script={1: ["reset"]})
    resolver = _resolver(server, clock, _MemLogger(), retry=RetryPolicy(max_attempts=1))
    with pytest.raises(TransportError):
        resolver.fetch_with_retries(1)
    assert server.connects == 1


def test_backoff_between_attempts() -> None:
    clock = FakeClock()
    server = MockFeedServer(
        [_pkt(1)], clock, resend_script={1: ["close", "close"]}
    )
    resolver = _resolver(server, clock, _MemLogger(), retry=RetryPolicy(backoff_ms=100))
    assert resolver.fetch_with_retries(1) == _pkt(1)
    assert clock.now_ms() == 100 + 200


def test_sequences_beyond_request_width_are_lost_unrequested() -> None:
    clock = FakeClock()
    server = MockFeedServer([_pkt(s) for s in range(250, 260)], clock)
    logger = _MemLogger()
    resolver = _resolver(server, clock, logger)
    received = [_pkt(s) for s in range(1, 260) if s not in (254, 257)]
    recovered = resolver.resolve(received)
    assert [p.sequence for p in recovered] == [254]
    assert 257 not in resolver.lost
    assert resolver.lost_ranges == [LostRange(first=256, last=259, count=1, reason="unrequestable")]
    assert server.requests == [b"\x02\xfe"]
    assert resolver.metrics()["missing_count"] == 2
    assert resolver.metrics()["lost_count"] == 1


def test_explicit_max_fetch_seq() -> None:
    clock = FakeClock()
    server = MockFeedServer([_pkt(s) for s in range(1, 5)], clock)
    resolver = _resolver(server, clock, _MemLogger(), max_fetch_seq=2)
    recovered = resolver.resolve([_pkt(4)])
    assert [p.sequence for p in recovered] == [1, 2]
    assert resolver.lost == {}
    assert resolver.lost_ranges == [LostRange(first=3, last=4, count=1, reason="unrequestable")]


def test_huge_sequence_is_one_lost_range() -> None:
    clock = FakeClock()
    server = MockFeedServer([_pkt(s) for s in range(1, 256)], clock)
    logger = _MemLogger()
    resolver = _resolver(server, clock, logger)
    received = [_pkt(s) for s in range(1, 256) if s != 2] + [_pkt(2_000_000_000)]
    recovered = resolver.resolve(received)
    assert recovered == [_pkt(2)]
    assert server.requests == [b"\x02\x02"]
    assert logger.of("recovery_lost") == [
        {
            "first": 256,
            "last": 2_000_000_000,
            "count": 1_999_999_744,
            "attempts": 0,
            "reason": "unrequestable",
        }
    ]
    assert logger.of("gaps_detected") == [
        {"missing": [2], "count": 1_999_999_745, "unrequestable": 1_999_999_744}
    ]
    metrics = resolver.metrics()
    assert metrics["missing_count"] == 1_999_999_745
    assert metrics["lost_count"] == 1_999_999_744
    assert metrics["lost"] == []


def test_largest_int32_sequence_completes() -> None:
    clock = FakeClock()
    server = MockFeedServer([_pkt(1)], clock)
    logger = _MemLogger()
    resolver = _resolver(server, clock, logger, max_fetch_seq=1)
    assert resolver.resolve([_pkt(2**31 - 1)]) == [_pkt(1)]
    assert resolver.lost_ranges[0].count == 2**31 - 3
    assert len(logger.of("recovery_lost")) == 1


@pytest.mark.parametrize(
    "sequences,first,last,expected",
    [
        ([1, 5, 9], 2, 9, 6),
        ([1, 5, 9], 5, 5, 0),
        ([1, 5, 9], 10, 9, 0),
        ([2_000_000_000], 256, 2_000_000_000, 1_999_999_744),
    ],
)
def test_count_missing(sequences: list[int], first: int, last: int, expected: int) -> None:
    assert count_missing(sequences, first, last) == expected


def test_find_missing_limit() -> None:
    assert find_missing([1, 2_000_000_000], limit=4) == [2, 3, 4]
    assert find_missing([3], limit=0) == []

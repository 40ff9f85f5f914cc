import random

import pytest

from tradefeed.protocol.framing import FrameReassembler, ShortTailWarning, reassemble
from tradefeed.protocol.packet import PACKET_SIZE, Packet, decode, encode


def _stream(count: int) -> bytes:
    return b"".join(encode(Packet("AAPL", "B", 10 + i, 100 + i, i + 1)) for i in range(count))


def test_single_chunk_many_frames() -> None:
    data = _stream(5)
    frames = list(reassemble([data], PACKET_SIZE))
    assert len(frames) == 5
    assert all(len(frame) == PACKET_SIZE for frame in frames)
    assert [decode(frame).sequence for frame in frames] == [1, 2, 3, 4, 5]


def test_one_byte_chunks_match_single_chunk() -> None:
    data = _stream(7)
    whole = list(reassemble([data], PACKET_SIZE))
    bytewise = list(reassemble([data[i : i + 1] for i in range(len(data))], PACKET_SIZE))
    assert bytewise == whole


@pytest.mark.parametrize("seed", [0, 1, 2, 3])
def test_random_chunk_boundaries_match_single_chunk(seed: int) -> None:
    data = _stream(20)
    rng = random.Random(seed)
    chunks = []
    pos = 0
    while pos < len(data):
        size = rng.randint(1, 40)
        chunks.append(data[pos : pos + size])
        pos += size
    assert list(reassemble(chunks, PACKET_SIZE)) == list(reassemble([data], PACKET_SIZE))


def test_reassemble_is_lazy() -> None:
    consumed = []

    def _chunks():  # type: ignore[no-untyped-def]
        for chunk in (_stream(1), _stream(1)):
            consumed.append(chunk)
            yield chunk

    frames = reassemble(_chunks(), PACKET_SIZE)
    first = next(frames)
    assert len(first) == PACKET_SIZE
    assert len(consumed) == 1


def test_tail_reported_to_callback() -> None:
    data = _stream(2) + b"\x01\x02\x03"
    tails = []
    frames = list(reassemble([data], PACKET_SIZE, on_tail=tails.append))
    assert len(frames) == 2
    assert tails == [b"\x01\x02\x03"]


def test_tail_warns_without_callback() -> None:
    with pytest.warns(ShortTailWarning, match="3 trailing bytes"):
        frames = list(reassemble([_stream(1) + b"abc"], PACKET_SIZE))
    assert len(frames) == 1


def test_no_tail_no_callback() -> None:
    tails = []
    list(reassemble([_stream(3)], PACKET_SIZE, on_tail=tails.append))
    assert tails == []


def test_empty_chunks_are_ignored() -> None:
    data = _stream(1)
    frames = list(reassemble([b"", data[:5], b"", data[5:], b""], PACKET_SIZE))
    assert frames == [data]


def test_reassembler_pop_and_buffer() -> None:
    r = FrameReassembler(4)
    r.feed(b"abcdef")
    assert r.pop() == b"abcd"
    assert r.pop() is None
    assert r.buffered_bytes() == 2
    assert list(r.frames(b"ghij")) == [b"efgh"]
    assert r.drain_tail() == b"ij"
    assert r.buffered_bytes() == 0
    assert r.packet_size == 4


def test_reassembler_rejects_bad_size() -> None:
    with pytest.raises(ValueError, match="packet_size must be > 0"):
        FrameReassembler(0)

from __future__ import annotations

import json
import math
from pathlib import Path
from typing import Any, Dict, Iterable, List, Sequence


def _to_float(value: object) -> float | None:
    try:
        return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None


def _to_int(value: object) -> int | None:
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None


def _quantile(sorted_values: Sequence[float], q: float) -> float:
    if not sorted_values:
        raise ValueError("quantile requires non-empty list")
    if q <= 0:
        return float(sorted_values[0])
    if q >= 1:
        return float(sorted_values[-1])
    k = (len(sorted_values) - 1) * q
    f = int(math.floor(k))
    c = int(math.ceil(k))
    if f == c:
        return float(sorted_values[f])
    d = k - f
    return float(sorted_values[f] * (1.0 - d) + sorted_values[c] * d)


def _summary_stats(values: List[float]) -> Dict[str, Any] | None:
    if not values:
        return None
    values_sorted = sorted(values)
    total = float(sum(values_sorted))
    count = len(values_sorted)
    return {
        "count": count,
        "min": float(values_sorted[0]),
        "p50": _quantile(values_sorted, 0.5),
        "p90": _quantile(values_sorted, 0.9),
        "max": float(values_sorted[-1]),
        "mean": total / count,
    }


def _lost_weight(event: Dict[str, Any]) -> int:
    # Range entries carry a count; single-sequence entries count once.
    if "count" in event:
        return _to_int(event.get("count")) or 0
    return 1


def load_events(path: str | Path) -> List[Dict[str, Any]]:
    path = Path(path)
    events = []
    for line in path.read_text(encoding="utf-8").splitlines():
        if not line.strip():
            continue
        events.append(json.loads(line))
    return events


def compute_metrics(events: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
    events = list(events)

    def _of(name: str) -> List[Dict[str, Any]]:
        return [e for e in events if e.get("event") == name]

    stream_closed = _of("stream_closed")
    invalid = _of("stream_invalid_packet")
    short_tail = _of("stream_short_tail")
    gaps = _of("gaps_detected")
    attempts = _of("recovery_attempt")
    ok = _of("recovery_ok")
    failed = _of("recovery_failed")
    lost = _of("recovery_lost")
    assembled = _of("assembled")

    stream_packets = sum(_to_int(e.get("packets")) or 0 for e in stream_closed)
    bytes_received = sum(_to_int(e.get("bytes_received")) or 0 for e in stream_closed)
    missing_count = sum(_to_int(e.get("count")) or 0 for e in gaps)
    retries = sum(1 for e in attempts if (_to_int(e.get("attempt")) or 1) > 1)

    latency_values: List[float] = []
    for event in ok:
        latency = _to_float(event.get("latency_ms"))
        if latency is not None:
            latency_values.append(latency)

    failure_kinds: Dict[str, int] = {}
    for event in failed:
        kind = str(event.get("error", "unknown"))
        failure_kinds[kind] = failure_kinds.get(kind, 0) + 1

    complete: bool | None = None
    if assembled:
        complete = bool(assembled[-1].get("complete"))

    return {
        "stream_packets": stream_packets,
        "bytes_received": bytes_received,
        "invalid_packets": len(invalid),
        "short_tails": len(short_tail),
        "missing_count": missing_count,
        "recovery_attempts": len(attempts),
        "retries": retries,
        "recovered_count": len(ok),
        "failed_attempts": len(failed),
        "failure_kinds": failure_kinds,
        "lost_count": sum(_lost_weight(e) for e in lost),
        "lost": sorted(_to_int(e.get("seq")) for e in lost if _to_int(e.get("seq")) is not None),
        "lost_ranges": [
            {"first": e.get("first"), "last": e.get("last"), "count": _lost_weight(e)}
            for e in lost
            if "first" in e
        ],
        "recovery_rate": (len(ok) / missing_count) if missing_count else None,
        "recovery_latency_ms": _summary_stats(latency_values),
        "complete": complete,
    }

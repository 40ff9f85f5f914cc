from __future__ import annotations

import random
import time
from dataclasses import dataclass, field
from typing import Protocol


class Clock(Protocol):
    def now_ms(self) -> int:
        ...

    def sleep_ms(self, ms: int) -> None:
        ...


class RealClock:
    def now_ms(self) -> int:
        return int(time.monotonic() * 1000)

    def sleep_ms(self, ms: int) -> None:
        time.sleep(ms / 1000.0)


class FakeClock:
    def __init__(self, start_ms: int = 0) -> None:
        self._now = start_ms

    def now_ms(self) -> int:
        return self._now

    def sleep_ms(self, ms: int) -> None:
        self._now += max(0, int(ms))


@dataclass
class RetryPolicy:
    """
    Bounded retry schedule for single-packet recovery.

    Delay before attempt n+1 is `backoff_ms * 2**(n-1)` plus up to
    `jitter_ms` of seeded random jitter. The defaults retry three times with
    no delay.
    """

    max_attempts: int = 3
    backoff_ms: int = 0
    jitter_ms: int = 0
    seed: int = 0
    _rng: random.Random = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.max_attempts <= 0:
            raise ValueError("max_attempts must be > 0")
        if self.backoff_ms < 0 or self.jitter_ms < 0:
            raise ValueError("backoff_ms and jitter_ms must be >= 0")
        self._rng = random.Random(self.seed)

    def delay_ms(self, attempt: int) -> int:
        if attempt <= 0:
            raise ValueError("attempt must be >= 1")
        delay = self.backoff_ms * (2 ** (attempt - 1)) if self.backoff_ms else 0
        if self.jitter_ms:
            delay += self._rng.randint(0, self.jitter_ms)
        return delay

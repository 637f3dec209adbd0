from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Protocol


class Clock(Protocol):
    def now_ms(self) -> int: ...

    def monotonic(self) -> float: ...

    def sleep(self, seconds: float) -> None: ...


class SystemClock:
    def now_ms(self) -> int:
        return int(time.time() * 1000)

    def monotonic(self) -> float:
        return time.monotonic()

    def sleep(self, seconds: float) -> None:
        time.sleep(max(0.0, seconds))


class FakeClock:
    """
    Deterministic clock for tests and dry runs.

    sleep() advances both wall and monotonic time, so a sched-based loop
    driven by this clock never actually blocks.
    """

    def __init__(self, start_ms: int = 1_700_000_000_000):
        self._wall_ms = float(start_ms)
        self._mono = 0.0

    def now_ms(self) -> int:
        return int(self._wall_ms)

    def monotonic(self) -> float:
        return self._mono

    def sleep(self, seconds: float) -> None:
        self.advance(seconds)

    def advance(self, seconds: float) -> None:
        if seconds <= 0:
            return
        self._mono += seconds
        self._wall_ms += seconds * 1000.0


def iso_ms(epoch_ms: int) -> str:
    # Same shape as JS Date.toISOString(): millisecond precision, Z suffix.
    secs, millis = divmod(int(epoch_ms), 1000)
    dt = datetime.fromtimestamp(secs, tz=timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{millis:03d}Z"

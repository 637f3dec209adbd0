from __future__ import annotations

import logging
import sched
from typing import Any, Callable, Optional

from .clock import Clock, SystemClock

logger = logging.getLogger(__name__)


class Scheduler:
    """
    Single-threaded timer loop (setTimeout/setInterval) on top of sched.

    Callbacks run one at a time on the thread that drives the loop. Timers
    stay armed until shutdown(), which stands for page teardown.
    """

    def __init__(self, clock: Optional[Clock] = None):
        self.clock = clock or SystemClock()
        self._sched = sched.scheduler(self.clock.monotonic, self.clock.sleep)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _run_task(self, fn: Callable[..., Any], *args: Any) -> None:
        try:
            fn(*args)
        except Exception:  # noqa: BLE001
            logger.exception("Scheduled task %s failed", getattr(fn, "__name__", fn))

    def call_later(self, delay_s: float, fn: Callable[..., Any], *args: Any) -> Optional[sched.Event]:
        if self._closed:
            return None
        return self._sched.enter(max(0.0, delay_s), 0, self._run_task, (fn, *args))

    def call_every(self, interval_s: float, fn: Callable[[], Any]) -> None:
        if interval_s <= 0:
            raise ValueError("interval must be > 0")

        def tick() -> None:
            if self._closed:
                return
            # Re-arm first so a failing task keeps its cadence.
            self._sched.enter(interval_s, 0, tick)
            self._run_task(fn)

        if not self._closed:
            self._sched.enter(interval_s, 0, tick)

    def pending(self) -> int:
        return len(self._sched.queue)

    def run_for(self, seconds: float) -> None:
        deadline = self.clock.monotonic() + seconds
        while not self._closed:
            queue = self._sched.queue
            if not queue or queue[0].time > deadline:
                break
            delay = queue[0].time - self.clock.monotonic()
            if delay > 0:
                self.clock.sleep(delay)
            self._sched.run(blocking=False)
        remaining = deadline - self.clock.monotonic()
        if remaining > 0:
            self.clock.sleep(remaining)

    def run_forever(self) -> None:
        self._sched.run()

    def shutdown(self) -> None:
        self._closed = True
        for event in self._sched.queue:
            try:
                self._sched.cancel(event)
            except ValueError:
                continue

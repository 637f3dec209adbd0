from __future__ import annotations

import logging
import math
from typing import Callable, Iterable, List, Optional, Set, Tuple

from .emitter import EventEmitter
from .events import EventFactory
from .page import FormInfo, LinkInfo, Page
from .scheduler import Scheduler

logger = logging.getLogger(__name__)

SCROLL_THRESHOLDS: Tuple[int, ...] = (25, 50, 75, 90, 100)
TIME_THRESHOLDS_S: Tuple[int, ...] = (10, 30, 60, 120, 300)
CLICK_SAMPLE_EVERY = 5
SCROLL_SAMPLE_EVERY = 10
TEXT_INPUT_TAGS = frozenset({"INPUT", "TEXTAREA"})


def round_half_up(x: float) -> int:
    # Math.round semantics; Python's round() is banker's rounding.
    return int(math.floor(x + 0.5))


def scroll_percent(scroll_top: float, scroll_height: float, viewport_height: float) -> Optional[int]:
    scrollable = scroll_height - viewport_height
    if scrollable <= 0:
        return None
    return round_half_up(scroll_top / scrollable * 100)


class ScrollDepthTracker:
    """Running maximum of scroll depth; each threshold reported once, ascending."""

    def __init__(self, thresholds: Iterable[int] = SCROLL_THRESHOLDS):
        self.thresholds = sorted(thresholds)
        self.max_depth = 0
        self.reported: Set[int] = set()

    def update(self, percent: int) -> List[int]:
        if percent <= self.max_depth:
            return []
        self.max_depth = percent
        crossed = [t for t in self.thresholds if percent >= t and t not in self.reported]
        self.reported.update(crossed)
        return crossed


class SampledCounter:
    def __init__(self, every: int):
        if every < 1:
            raise ValueError("every must be >= 1")
        self.every = every
        self.count = 0

    def hit(self) -> Optional[int]:
        """Count one occurrence; return the running count when it is due for reporting."""
        self.count += 1
        if self.count % self.every == 0:
            return self.count
        return None


class ListenerRegistrar:
    """Turns page events into tracking events."""

    def __init__(
        self,
        page: Page,
        factory: EventFactory,
        emitter: EventEmitter,
        scheduler: Scheduler,
        *,
        scroll_thresholds: Iterable[int] = SCROLL_THRESHOLDS,
        time_thresholds_s: Iterable[int] = TIME_THRESHOLDS_S,
        click_sample_every: int = CLICK_SAMPLE_EVERY,
        scroll_sample_every: int = SCROLL_SAMPLE_EVERY,
        on_return: Optional[Callable[[], None]] = None,
    ):
        self.page = page
        self.factory = factory
        self.emitter = emitter
        self.scheduler = scheduler
        self.scroll_depth = ScrollDepthTracker(scroll_thresholds)
        self.time_thresholds_s = tuple(time_thresholds_s)
        self.reported_times: Set[int] = set()
        self.clicks = SampledCounter(click_sample_every)
        self.scrolls = SampledCounter(scroll_sample_every)
        self.on_return = on_return

    # -------- registration groups (called in this order by the tracker) --------
    def register_content_tracking(self) -> None:
        self.page.add_listener("click", self._on_link_click)
        self.page.add_listener("submit", self._on_submit)
        self.page.add_listener("scroll", self._on_scroll_depth)
        for seconds in self.time_thresholds_s:
            self.scheduler.call_later(seconds, self._report_time_threshold, seconds)
        self.page.add_listener("beforeunload", self._on_unload_time)

    def register_visibility_tracking(self) -> None:
        self.page.add_listener("visibilitychange", self._on_visibility_change)
        self.page.add_listener("beforeunload", self._on_unload_exit)

    def register_interaction_tracking(self) -> None:
        self.page.add_listener("click", self._on_click_sample)
        self.page.add_listener("scroll", self._on_scroll_sample)
        self.page.add_listener("input", self._on_input)

    def register_navigation_tracking(self) -> None:
        self.page.add_listener("popstate", lambda *_: self._navigation("popstate"))
        self.page.add_listener("beforeunload", lambda *_: self._navigation("beforeunload"))
        self.page.add_listener("focus", lambda *_: self._focus(True))
        self.page.add_listener("blur", lambda *_: self._focus(False))

    def register_all(self) -> None:
        self.register_content_tracking()
        self.register_visibility_tracking()
        self.register_interaction_tracking()
        self.register_navigation_tracking()

    # -------- handlers --------
    def _on_link_click(self, link: Optional[LinkInfo] = None) -> None:
        if link is None:
            return
        self.emitter.send(self.factory.link_click(link))

    def _on_submit(self, form: FormInfo) -> None:
        self.emitter.send(self.factory.form_submission(form))

    def _on_scroll_depth(self, *_: object) -> None:
        m = self.page.scroll_metrics()
        percent = scroll_percent(m.scroll_top, m.scroll_height, m.viewport_height)
        if percent is None:
            return
        for threshold in self.scroll_depth.update(percent):
            self.emitter.send(self.factory.scroll_depth(threshold))

    def _report_time_threshold(self, seconds: int) -> None:
        if seconds in self.reported_times:
            return
        self.reported_times.add(seconds)
        self.emitter.send(self.factory.time_on_page(seconds))

    def _on_unload_time(self, *_: object) -> None:
        spent = round_half_up(self.factory.elapsed_seconds())
        self.emitter.send(self.factory.time_on_page(spent, is_exit=True))

    def _on_visibility_change(self, *_: object) -> None:
        if self.page.hidden:
            self.track_exit()
            return
        self.emitter.send(self.factory.track_return())
        if self.on_return is not None:
            self.on_return()

    def _on_unload_exit(self, *_: object) -> None:
        self.track_exit()

    def track_exit(self) -> None:
        self.emitter.send_exit(self.factory.track_exit())

    def _on_click_sample(self, *_: object) -> None:
        count = self.clicks.hit()
        if count is not None:
            self.emitter.send(self.factory.interaction("click", count))

    def _on_scroll_sample(self, *_: object) -> None:
        count = self.scrolls.hit()
        if count is not None:
            self.emitter.send(self.factory.interaction("scroll", count))

    def _on_input(self, tag_name: str = "") -> None:
        if tag_name.upper() in TEXT_INPUT_TAGS:
            self.emitter.send(self.factory.interaction("form_input", 1))

    def _navigation(self, event_type: str) -> None:
        self.emitter.send(self.factory.navigation(event_type))

    def _focus(self, has_focus: bool) -> None:
        self.emitter.send(self.factory.focus_change(has_focus))

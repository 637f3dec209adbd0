from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from jinja2 import Environment

from .dom import Anchor, Document

logger = logging.getLogger(__name__)

WIDGET_ID = "liveVisitorCounter"
STYLE_ID = "liveTrackerStyles"
LIVE_COUNT_ID = "liveCount"
TOTAL_VISITORS_ID = "totalVisitors"
NEW_TODAY_ID = "newVisitorsToday"

# Counters the host page may already carry in its own markup.
PAGE_COUNTER_IDS = {
    "live": "liveVisitorsCount",
    "total": "totalVisitorsCount",
    "new_today": "newVisitorsTodayCount",
}

CONTAINER_SELECTOR = ".live-counter-container"
HERO_SELECTOR = ".hero-buttons"


@dataclass(frozen=True)
class LiveCountSnapshot:
    live: int
    total: int
    new_today: int


FALLBACK_SNAPSHOT = LiveCountSnapshot(1, 1, 1)

_env = Environment(autoescape=True)

WIDGET_TEMPLATE = _env.from_string(
    """\
<div id="{{ widget_id }}" class="live-visitor-counter">
  <div class="live-counter-content">
    <div class="live-indicator">
      <span class="pulse-dot"></span>
      <span class="live-text">LIVE</span>
    </div>
    <div class="counter-stats">
      <div class="stat-item">
        <span class="stat-number" id="{{ live_id }}">{{ snap.live }}</span>
        <span class="stat-label">Online Now</span>
      </div>
      <div class="stat-item">
        <span class="stat-number" id="{{ total_id }}">{{ snap.total }}</span>
        <span class="stat-label">Total Visitors</span>
      </div>
      <div class="stat-item">
        <span class="stat-number" id="{{ new_id }}">{{ snap.new_today }}</span>
        <span class="stat-label">New Today</span>
      </div>
    </div>
  </div>
</div>
"""
)

WIDGET_CSS = """\
.live-visitor-counter {
  position: relative;
  background: rgba(255, 255, 255, 0.15);
  backdrop-filter: blur(10px);
  border: 1px solid rgba(255, 255, 255, 0.2);
  color: white;
  padding: 20px;
  border-radius: 15px;
  box-shadow: 0 8px 25px rgba(102, 126, 234, 0.2);
  font-family: 'Segoe UI', Tahoma, Geneva, Verdana, sans-serif;
  animation: slideInUp 0.5s ease-out;
  min-width: 280px;
  margin-bottom: 20px;
}
.live-counter-content { display: flex; flex-direction: column; align-items: center; gap: 10px; }
.live-indicator {
  display: flex; align-items: center; gap: 8px;
  font-size: 12px; font-weight: 600; text-transform: uppercase; letter-spacing: 1px;
}
.pulse-dot { width: 8px; height: 8px; background: #10b981; border-radius: 50%; animation: pulse 2s infinite; }
.counter-stats { display: flex; gap: 20px; align-items: center; }
.stat-item { text-align: center; display: flex; flex-direction: column; align-items: center; }
.stat-number { font-size: 18px; font-weight: 700; line-height: 1; color: #fbbf24; }
.stat-label { font-size: 10px; opacity: 0.8; text-transform: uppercase; letter-spacing: 0.5px; margin-top: 2px; }
@keyframes pulse {
  0% { transform: scale(1); opacity: 1; }
  50% { transform: scale(1.2); opacity: 0.7; }
  100% { transform: scale(1); opacity: 1; }
}
@keyframes slideInUp {
  from { transform: translateY(20px); opacity: 0; }
  to { transform: translateY(0); opacity: 1; }
}
@media (max-width: 768px) {
  .live-visitor-counter { padding: 12px 15px; font-size: 14px; }
  .counter-stats { gap: 15px; }
  .stat-number { font-size: 16px; }
  .stat-label { font-size: 9px; }
}
"""


def render_widget_html(snap: LiveCountSnapshot) -> str:
    return WIDGET_TEMPLATE.render(
        widget_id=WIDGET_ID,
        live_id=LIVE_COUNT_ID,
        total_id=TOTAL_VISITORS_ID,
        new_id=NEW_TODAY_ID,
        snap=snap,
    )


class WidgetRenderer:
    def __init__(self, document: Document):
        self.document = document
        self.last_snapshot: Optional[LiveCountSnapshot] = None

    def _update_page_counters(self, snap: LiveCountSnapshot) -> None:
        values = {"live": snap.live, "total": snap.total, "new_today": snap.new_today}
        for key, element_id in PAGE_COUNTER_IDS.items():
            if not self.document.set_text(element_id, str(values[key])):
                logger.warning("Page counter element #%s not found", element_id)

    def _ensure_styles(self) -> None:
        if self.document.has_style(STYLE_ID):
            return
        self.document.add_style(STYLE_ID, WIDGET_CSS)

    def _insert(self, html: str) -> None:
        if self.document.matches(CONTAINER_SELECTOR):
            self.document.insert_html(html, anchor=Anchor.CONTAINER_START, selector=CONTAINER_SELECTOR)
            return
        logger.warning("No %s on page, trying %s", CONTAINER_SELECTOR, HERO_SELECTOR)
        if self.document.matches(HERO_SELECTOR):
            self.document.insert_html(html, anchor=Anchor.AFTER, selector=HERO_SELECTOR)
            return
        logger.warning("No %s on page, appending widget to body", HERO_SELECTOR)
        self.document.insert_html(html, anchor=Anchor.BODY_END)

    def render(self, snap: LiveCountSnapshot) -> bool:
        """Create the widget on first call, then update its numbers in place. True if created."""
        self.last_snapshot = snap
        self._update_page_counters(snap)

        if self.document.has_element(WIDGET_ID):
            self.document.set_text(LIVE_COUNT_ID, str(snap.live))
            self.document.set_text(TOTAL_VISITORS_ID, str(snap.total))
            self.document.set_text(NEW_TODAY_ID, str(snap.new_today))
            return False

        self._ensure_styles()
        self._insert(render_widget_html(snap))
        return True

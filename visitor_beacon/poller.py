from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Optional

import requests

from .clock import Clock, iso_ms
from .events import WIRE_TYPE
from .transport import Transport
from .widget import FALLBACK_SNAPSHOT, LiveCountSnapshot, WidgetRenderer

logger = logging.getLogger(__name__)

POST_COUNT_ACTION = "get_centralized_counts"
GET_COUNT_ACTION = "get_live_count"


class CountMethod(str, Enum):
    POST = "post"
    GET = "get"


def _count(data: dict, key: str) -> int:
    value = data.get(key)
    if value is None or value == 0:
        return 1
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise ValueError(f"{key} is not a number: {value!r}")
    return int(value) or 1


def parse_counts(data: Any, *, method: CountMethod) -> Optional[LiveCountSnapshot]:
    """Snapshot from a count reply, or None when the reply is not usable."""
    if not isinstance(data, dict) or not data.get("success"):
        return None
    if method is CountMethod.POST and not data.get("isCentralized"):
        return None
    try:
        return LiveCountSnapshot(
            live=_count(data, "liveCount"),
            total=_count(data, "totalVisitors"),
            new_today=_count(data, "newVisitorsToday"),
        )
    except ValueError as e:
        logger.warning("Malformed count reply: %s", e)
        return None


class CountPoller:
    def __init__(
        self,
        transport: Transport,
        renderer: WidgetRenderer,
        clock: Clock,
        *,
        method: CountMethod = CountMethod.GET,
    ):
        self.transport = transport
        self.renderer = renderer
        self.clock = clock
        self.method = method

    def _request(self) -> Any:
        if self.method is CountMethod.POST:
            return self.transport.post_json(
                {
                    "type": POST_COUNT_ACTION,
                    "action": POST_COUNT_ACTION,
                    "timestamp": iso_ms(self.clock.now_ms()),
                }
            )
        return self.transport.get_json({"action": GET_COUNT_ACTION, "type": WIRE_TYPE})

    def fetch(self) -> LiveCountSnapshot:
        try:
            data = self._request()
        except (requests.RequestException, ValueError) as e:
            logger.error("Error fetching live count: %s", e)
            return FALLBACK_SNAPSHOT

        snap = parse_counts(data, method=self.method)
        if snap is None:
            logger.warning("Count endpoint returned no usable counts: %r", data)
            return FALLBACK_SNAPSHOT
        logger.info("Live count: %d live, %d total, %d new today", snap.live, snap.total, snap.new_today)
        return snap

    def poll(self) -> LiveCountSnapshot:
        snap = self.fetch()
        self.renderer.render(snap)
        return snap

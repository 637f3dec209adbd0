from __future__ import annotations

import json
import logging

from .events import TrackingEvent
from .page import Page
from .shadow_log import ShadowLog
from .transport import Delivery, Transport

logger = logging.getLogger(__name__)


class EventEmitter:
    def __init__(self, transport: Transport, shadow_log: ShadowLog, page: Page):
        self.transport = transport
        self.shadow_log = shadow_log
        self.page = page

    def send(self, event: TrackingEvent) -> Delivery:
        payload = event.to_wire()
        logger.debug("Tracking %s: %s", event.action, payload)
        self.shadow_log.append(payload)
        return self.transport.deliver(payload)

    def send_exit(self, event: TrackingEvent) -> Delivery:
        """Prefer the page's beacon so the request can outlive the page."""
        if not self.page.supports_beacon:
            return self.send(event)
        body = json.dumps(event.to_wire())
        if self.page.send_beacon(self.transport.endpoint, body):
            return Delivery.ASSUMED
        logger.warning("Beacon refused %s", event.action)
        return Delivery.FAILED

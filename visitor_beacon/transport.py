from __future__ import annotations

import json
import logging
from enum import Enum
from typing import Any, Dict, Optional

import requests

logger = logging.getLogger(__name__)


class DeliveryMode(str, Enum):
    # Response is never inspected; only a raised transport error counts as failure.
    BEST_EFFORT = "best_effort"
    # Success requires a 2xx response.
    OBSERVABLE = "observable"


class Delivery(Enum):
    DELIVERED = "delivered"
    ASSUMED = "assumed"
    FAILED = "failed"

    @property
    def ok(self) -> bool:
        return self is not Delivery.FAILED


class Transport:
    """JSON over HTTP to the collection endpoint. One attempt per call."""

    def __init__(
        self,
        endpoint: str,
        *,
        mode: DeliveryMode = DeliveryMode.OBSERVABLE,
        timeout_s: Optional[float] = 10.0,
        session: Optional[requests.Session] = None,
    ):
        self.endpoint = endpoint
        self.mode = mode
        self.timeout_s = timeout_s
        self.session = session or requests.Session()

    def deliver(self, payload: Dict[str, Any]) -> Delivery:
        action = payload.get("action")
        try:
            resp = self.session.post(
                self.endpoint,
                data=json.dumps(payload),
                headers={"Content-Type": "application/json"},
                timeout=self.timeout_s,
            )
        except requests.RequestException as e:
            logger.error("Error sending tracking data (%s): %s", action, e)
            return Delivery.FAILED

        if self.mode is DeliveryMode.BEST_EFFORT:
            logger.debug("Tracking data sent (outcome unknown): %s", action)
            return Delivery.ASSUMED
        if not resp.ok:
            logger.warning("Collector rejected %s: HTTP %s", action, resp.status_code)
            return Delivery.FAILED
        logger.debug("Tracking data delivered: %s", action)
        return Delivery.DELIVERED

    def send_beacon(self, url: str, body: str) -> bool:
        """
        sendBeacon() stand-in: text/plain body, response ignored, never raises.
        Returns whether the request went out.
        """
        try:
            self.session.post(
                url,
                data=body.encode("utf-8"),
                headers={"Content-Type": "text/plain;charset=UTF-8"},
                timeout=self.timeout_s,
            )
        except requests.RequestException as e:
            logger.warning("Beacon to %s failed: %s", url, e)
            return False
        return True

    def post_json(self, payload: Dict[str, Any]) -> Any:
        """POST and decode the JSON reply. Raises on transport, HTTP or decode errors."""
        resp = self.session.post(
            self.endpoint,
            data=json.dumps(payload),
            headers={"Content-Type": "application/json"},
            timeout=self.timeout_s,
        )
        resp.raise_for_status()
        return resp.json()

    def get_json(self, params: Dict[str, str]) -> Any:
        resp = self.session.get(
            self.endpoint,
            params=params,
            headers={"Cache-Control": "no-cache"},
            timeout=self.timeout_s,
        )
        resp.raise_for_status()
        return resp.json()

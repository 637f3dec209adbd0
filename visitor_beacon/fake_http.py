"""
Test support: a recording requests adapter that stands in for the collection
endpoint. Mount it on a requests.Session with session_with().
"""

from __future__ import annotations

import json
from typing import Any, Callable, Dict, List, Optional, Tuple, Union
from urllib.parse import parse_qs, urlparse

import requests
from requests.adapters import BaseAdapter

Reply = Union[Tuple[int, Any], Exception]
Responder = Callable[[requests.PreparedRequest], Reply]

COUNT_ACTIONS = ("get_centralized_counts", "get_live_count")


def _ok(_: requests.PreparedRequest) -> Reply:
    return 200, {"success": True}


class RecordingAdapter(BaseAdapter):
    def __init__(self, responder: Optional[Responder] = None):
        super().__init__()
        self.responder = responder or _ok
        self.sent: List[requests.PreparedRequest] = []

    def send(self, request: requests.PreparedRequest, **kwargs: Any) -> requests.Response:
        self.sent.append(request)
        reply = self.responder(request)
        if isinstance(reply, Exception):
            raise reply
        status, body = reply
        if isinstance(body, bytes):
            content = body
        elif isinstance(body, str):
            content = body.encode("utf-8")
        else:
            content = json.dumps(body).encode("utf-8")

        resp = requests.Response()
        resp.status_code = status
        resp.reason = "OK" if status < 400 else "Error"
        resp._content = content
        resp.encoding = "utf-8"
        resp.headers["Content-Type"] = "application/json"
        resp.url = request.url or ""
        resp.request = request
        return resp

    def close(self) -> None:
        pass

    # -------- inspection helpers --------
    def bodies(self) -> List[Dict[str, Any]]:
        out: List[Dict[str, Any]] = []
        for req in self.sent:
            if req.method != "POST" or not req.body:
                continue
            raw = req.body.decode("utf-8") if isinstance(req.body, bytes) else req.body
            try:
                data = json.loads(raw)
            except json.JSONDecodeError:
                continue
            if isinstance(data, dict):
                out.append(data)
        return out

    def events(self) -> List[Dict[str, Any]]:
        """Tracking payloads only (count requests filtered out)."""
        return [b for b in self.bodies() if b.get("action") not in COUNT_ACTIONS]

    def actions(self) -> List[str]:
        return [str(b.get("action")) for b in self.events()]

    def count_requests(self) -> int:
        n = 0
        for req in self.sent:
            if req.method == "GET":
                qs = parse_qs(urlparse(req.url or "").query)
                if qs.get("action") == ["get_live_count"]:
                    n += 1
        return n + sum(1 for b in self.bodies() if b.get("action") in COUNT_ACTIONS)


def session_with(adapter: RecordingAdapter) -> requests.Session:
    s = requests.Session()
    s.mount("http://", adapter)
    s.mount("https://", adapter)
    return s


def count_responder(counts: Any, *, status: int = 200) -> Responder:
    """Answer count requests with `counts`, acknowledge everything else."""

    def respond(req: requests.PreparedRequest) -> Reply:
        if req.method == "GET":
            return status, counts
        raw = req.body.decode("utf-8") if isinstance(req.body, bytes) else (req.body or "")
        try:
            action = json.loads(raw).get("action")
        except (json.JSONDecodeError, AttributeError):
            action = None
        if action in COUNT_ACTIONS:
            return status, counts
        return 200, {"success": True}

    return respond

from __future__ import annotations

import base64
import hashlib
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Protocol

logger = logging.getLogger(__name__)

# Events the tracker listens for (document and window targets merged).
PAGE_EVENTS = (
    "click",
    "submit",
    "scroll",
    "visibilitychange",
    "focus",
    "blur",
    "beforeunload",
    "popstate",
    "input",
)

Handler = Callable[..., None]


@dataclass(frozen=True)
class LinkInfo:
    href: str
    text: str = ""
    target: str = ""


@dataclass(frozen=True)
class FormInfo:
    action: str = ""
    method: str = "get"
    form_id: str = ""
    class_name: str = ""


@dataclass(frozen=True)
class ScrollMetrics:
    scroll_top: float
    scroll_height: float
    viewport_height: float


class Page(Protocol):
    """Everything the tracker reads from, or hooks into, the host page."""

    user_agent: str
    language: str
    screen_width: int
    screen_height: int
    timezone_offset_minutes: int
    timezone: str
    referrer: str
    url: str
    origin: str
    title: str
    connection_type: str
    hidden: bool

    def canvas_fingerprint(self) -> str: ...

    def scroll_metrics(self) -> ScrollMetrics: ...

    def load_time_ms(self) -> float: ...

    def add_listener(self, event: str, handler: Handler) -> None: ...

    def dispatch(self, event: str, *args: Any) -> None: ...

    @property
    def supports_beacon(self) -> bool: ...

    def send_beacon(self, url: str, body: str) -> bool: ...


def raster_fingerprint(*, text: str, font: str, renderer: str) -> str:
    """
    Stand-in for canvas.toDataURL(): a stable serialization of fixed text
    drawn with a given font by a given rendering stack.
    """
    digest = hashlib.sha256(f"{renderer}\n{font}\n{text}".encode("utf-8")).digest()
    return "data:image/png;base64," + base64.b64encode(digest).decode("ascii")


@dataclass
class HeadlessPage:
    """
    In-memory page: static navigator/screen/location values plus a listener
    table that callers drive with dispatch().
    """

    url: str = "http://localhost/"
    title: str = ""
    referrer: str = ""
    user_agent: str = "visitor-beacon/headless"
    language: str = "en-US"
    screen_width: int = 1920
    screen_height: int = 1080
    timezone_offset_minutes: int = 0
    timezone: str = "UTC"
    connection_type: str = "unknown"
    renderer: str = "headless"
    hidden: bool = False
    load_ms: float = 0.0
    scroll_top: float = 0.0
    scroll_height: float = 0.0
    viewport_height: float = 0.0
    beacon: Optional[Callable[[str, str], bool]] = None
    _listeners: Dict[str, List[Handler]] = field(default_factory=lambda: defaultdict(list), init=False, repr=False)

    @property
    def origin(self) -> str:
        # scheme://host[:port], no trailing slash
        parts = self.url.split("/")
        if len(parts) >= 3 and parts[0].endswith(":"):
            return "/".join(parts[:3])
        return ""

    def canvas_fingerprint(self) -> str:
        return raster_fingerprint(text="Visitor fingerprint", font="14px Arial", renderer=self.renderer)

    def scroll_metrics(self) -> ScrollMetrics:
        return ScrollMetrics(self.scroll_top, self.scroll_height, self.viewport_height)

    def load_time_ms(self) -> float:
        return self.load_ms

    def add_listener(self, event: str, handler: Handler) -> None:
        if event not in PAGE_EVENTS:
            raise ValueError(f"Unsupported page event: {event!r}")
        self._listeners[event].append(handler)

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, []))

    @property
    def supports_beacon(self) -> bool:
        return self.beacon is not None

    def send_beacon(self, url: str, body: str) -> bool:
        if self.beacon is None:
            return False
        return bool(self.beacon(url, body))

    def dispatch(self, event: str, *args: Any) -> None:
        # A failing listener must not stop the others, as in a browser.
        for handler in list(self._listeners.get(event, [])):
            try:
                handler(*args)
            except Exception:  # noqa: BLE001
                logger.exception("listener for %r failed", event)

    # convenience drivers
    def scroll_to(self, scroll_top: float) -> None:
        self.scroll_top = scroll_top
        self.dispatch("scroll")

    def set_hidden(self, hidden: bool) -> None:
        self.hidden = hidden
        self.dispatch("visibilitychange")

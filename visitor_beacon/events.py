"""
Tracking event records.

One frozen dataclass per wire action. Field names are Pythonic; the
camelCase wire names live in field metadata and are only applied by
to_wire(), right before the payload leaves the process.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Optional

from .clock import Clock, iso_ms
from .identity import VisitorIdentity
from .page import FormInfo, LinkInfo, Page

WIRE_TYPE = "visitor_tracking"


def wire(name: str, **kwargs: Any) -> Any:
    return field(metadata={"wire": name}, **kwargs)


def flattened(**kwargs: Any) -> Any:
    return field(metadata={"flatten": True}, **kwargs)


def _flatten_into(obj: Any, out: Dict[str, Any]) -> None:
    for f in dataclasses.fields(obj):
        value = getattr(obj, f.name)
        if f.metadata.get("flatten"):
            _flatten_into(value, out)
            continue
        name = f.metadata.get("wire")
        if name is None:
            continue
        if value is None:
            continue
        out[name] = value


@dataclass(frozen=True, kw_only=True)
class PageInfo:
    referrer: str = wire("referrer")
    url: str = wire("url")
    page_title: str = wire("pageTitle")


@dataclass(frozen=True, kw_only=True)
class ClientInfo:
    user_agent: str = wire("userAgent")
    language: str = wire("language")
    screen_resolution: str = wire("screenResolution")
    timezone: str = wire("timezone")


@dataclass(frozen=True, kw_only=True)
class TrackingEvent:
    ACTION: ClassVar[str] = ""

    session_id: str = wire("sessionId")
    timestamp: str = wire("timestamp")

    @property
    def action(self) -> str:
        return self.ACTION

    def to_wire(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"type": WIRE_TYPE, "action": self.action}
        _flatten_into(self, out)
        return out


@dataclass(frozen=True, kw_only=True)
class PageEvent(TrackingEvent):
    """Events that carry the visitor id and where on the site they happened."""

    visitor_id: str = wire("visitorId")
    page: PageInfo = flattened()


@dataclass(frozen=True, kw_only=True)
class TrackVisit(PageEvent):
    ACTION: ClassVar[str] = "track_visit"

    is_new_visitor: bool = wire("isNewVisitor")
    client: ClientInfo = flattened()


@dataclass(frozen=True, kw_only=True)
class PageLoad(TrackVisit):
    ACTION: ClassVar[str] = "page_load"

    load_time: float = wire("loadTime")
    connection_type: str = wire("connectionType", default="unknown")


@dataclass(frozen=True, kw_only=True)
class LinkClick(PageEvent):
    ACTION: ClassVar[str] = "link_click"

    link_url: str = wire("linkUrl")
    link_text: str = wire("linkText")
    link_target: str = wire("linkTarget", default="_self")
    is_external: bool = wire("isExternal")


@dataclass(frozen=True, kw_only=True)
class FormSubmission(PageEvent):
    ACTION: ClassVar[str] = "form_submission"

    form_action: str = wire("formAction")
    form_method: str = wire("formMethod")
    form_id: str = wire("formId", default="unnamed")
    form_class: str = wire("formClass", default="")


@dataclass(frozen=True, kw_only=True)
class ScrollDepth(PageEvent):
    ACTION: ClassVar[str] = "scroll_depth"

    scroll_percent: int = wire("scrollPercent")


@dataclass(frozen=True, kw_only=True)
class TimeOnPage(PageEvent):
    ACTION: ClassVar[str] = "time_on_page"

    time_spent: int = wire("timeSpent")


@dataclass(frozen=True, kw_only=True)
class PageExit(TimeOnPage):
    ACTION: ClassVar[str] = "page_exit"


@dataclass(frozen=True, kw_only=True)
class NavigationEvent(PageEvent):
    ACTION: ClassVar[str] = "navigation_event"

    event_type: str = wire("eventType")


@dataclass(frozen=True, kw_only=True)
class FocusChange(PageEvent):
    has_focus: bool = wire("hasFocus")

    @property
    def action(self) -> str:
        return "page_focus" if self.has_focus else "page_blur"


@dataclass(frozen=True, kw_only=True)
class UpdateSession(TrackingEvent):
    ACTION: ClassVar[str] = "update_session"

    duration: int = wire("duration")


@dataclass(frozen=True, kw_only=True)
class TrackExit(TrackingEvent):
    ACTION: ClassVar[str] = "track_exit"

    duration: int = wire("duration")


@dataclass(frozen=True, kw_only=True)
class TrackReturn(TrackingEvent):
    ACTION: ClassVar[str] = "track_return"


@dataclass(frozen=True, kw_only=True)
class TrackInteraction(TrackingEvent):
    ACTION: ClassVar[str] = "track_interaction"

    interaction_type: str = wire("interactionType")
    interaction_count: int = wire("interactionCount")


class EventFactory:
    """Builds events stamped with the current identity, time and page state."""

    def __init__(self, identity: VisitorIdentity, page: Page, clock: Clock):
        self.identity = identity
        self.page = page
        self.clock = clock

    def _now(self) -> str:
        return iso_ms(self.clock.now_ms())

    def _page_info(self) -> PageInfo:
        return PageInfo(
            referrer=self.page.referrer or "direct",
            url=self.page.url,
            page_title=self.page.title,
        )

    def _client_info(self) -> ClientInfo:
        return ClientInfo(
            user_agent=self.page.user_agent,
            language=self.page.language,
            screen_resolution=f"{self.page.screen_width}x{self.page.screen_height}",
            timezone=self.page.timezone,
        )

    def _page_common(self) -> Dict[str, Any]:
        return {
            "session_id": self.identity.session_id,
            "timestamp": self._now(),
            "visitor_id": self.identity.visitor_id,
            "page": self._page_info(),
        }

    def elapsed_seconds(self) -> float:
        return max(0.0, (self.clock.now_ms() - self.identity.session_start_ms) / 1000.0)

    def track_visit(self) -> TrackVisit:
        return TrackVisit(
            **self._page_common(),
            is_new_visitor=self.identity.is_new_visitor,
            client=self._client_info(),
        )

    def page_load(self) -> PageLoad:
        return PageLoad(
            **self._page_common(),
            is_new_visitor=self.identity.is_new_visitor,
            client=self._client_info(),
            load_time=self.page.load_time_ms(),
            connection_type=self.page.connection_type or "unknown",
        )

    def link_click(self, link: LinkInfo) -> LinkClick:
        return LinkClick(
            **self._page_common(),
            link_url=link.href,
            link_text=link.text.strip(),
            link_target=link.target or "_self",
            is_external=not link.href.startswith(self.page.origin),
        )

    def form_submission(self, form: FormInfo) -> FormSubmission:
        return FormSubmission(
            **self._page_common(),
            form_action=form.action,
            form_method=form.method,
            form_id=form.form_id or "unnamed",
            form_class=form.class_name,
        )

    def scroll_depth(self, percent: int) -> ScrollDepth:
        return ScrollDepth(**self._page_common(), scroll_percent=percent)

    def time_on_page(self, seconds: int, *, is_exit: bool = False) -> TimeOnPage:
        cls = PageExit if is_exit else TimeOnPage
        return cls(**self._page_common(), time_spent=seconds)

    def navigation(self, event_type: str) -> NavigationEvent:
        return NavigationEvent(**self._page_common(), event_type=event_type)

    def focus_change(self, has_focus: bool) -> FocusChange:
        return FocusChange(**self._page_common(), has_focus=has_focus)

    def update_session(self) -> UpdateSession:
        return UpdateSession(
            session_id=self.identity.session_id,
            timestamp=self._now(),
            duration=int(self.elapsed_seconds()),
        )

    def track_exit(self) -> TrackExit:
        return TrackExit(
            session_id=self.identity.session_id,
            timestamp=self._now(),
            duration=int(self.elapsed_seconds()),
        )

    def track_return(self) -> TrackReturn:
        return TrackReturn(session_id=self.identity.session_id, timestamp=self._now())

    def interaction(self, interaction_type: str, count: int) -> TrackInteraction:
        return TrackInteraction(
            session_id=self.identity.session_id,
            timestamp=self._now(),
            interaction_type=interaction_type,
            interaction_count=count,
        )

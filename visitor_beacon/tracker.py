from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

import requests

from .clock import Clock, SystemClock
from .config import TrackerConfig
from .dom import Document, MemoryDocument
from .emitter import EventEmitter
from .events import EventFactory
from .identity import VisitorIdentity, create_identity
from .listeners import ListenerRegistrar
from .page import Page
from .poller import CountPoller
from .scheduler import Scheduler
from .shadow_log import ShadowLog
from .storage import MemoryStorage, Storage
from .transport import Delivery, Transport
from .widget import LiveCountSnapshot, WidgetRenderer

logger = logging.getLogger(__name__)


@dataclass
class TrackerContext:
    """Everything one page-load of the tracker shares. Built once, passed explicitly."""

    config: TrackerConfig
    page: Page
    storage: Storage
    document: Document
    clock: Clock
    scheduler: Scheduler
    transport: Transport
    identity: Optional[VisitorIdentity] = field(default=None)


class Tracker:
    def __init__(self, ctx: TrackerContext):
        self.ctx = ctx
        cfg = ctx.config
        self.shadow_log = ShadowLog(ctx.storage, ctx.clock, limit=cfg.shadow_log_limit)
        self.emitter = EventEmitter(ctx.transport, self.shadow_log, ctx.page)
        self.renderer = WidgetRenderer(ctx.document)
        self.poller = CountPoller(ctx.transport, self.renderer, ctx.clock, method=cfg.count_method)
        self.factory: Optional[EventFactory] = None
        self.listeners: Optional[ListenerRegistrar] = None
        self.started = False

    @property
    def identity(self) -> VisitorIdentity:
        if self.ctx.identity is None:
            raise RuntimeError("tracker not started")
        return self.ctx.identity

    def start(self) -> None:
        """Runs once per page load; after teardown() the page is gone for good."""
        if self.started:
            return
        ctx, cfg = self.ctx, self.ctx.config
        if ctx.scheduler.closed:
            logger.warning("Page already torn down, not starting the tracker")
            return
        self.started = True

        ctx.identity = create_identity(ctx.page, ctx.storage, ctx.clock)
        self.factory = EventFactory(ctx.identity, ctx.page, ctx.clock)
        logger.info(
            "Tracker started: visitor=%s session=%s new=%s",
            ctx.identity.visitor_id,
            ctx.identity.session_id,
            ctx.identity.is_new_visitor,
        )

        self.track_visit()
        self.emitter.send(self.factory.page_load())

        self.listeners = ListenerRegistrar(
            ctx.page,
            self.factory,
            self.emitter,
            ctx.scheduler,
            scroll_thresholds=cfg.scroll_thresholds,
            time_thresholds_s=cfg.time_thresholds_s,
            click_sample_every=cfg.click_sample_every,
            scroll_sample_every=cfg.scroll_sample_every,
            on_return=self._refresh_after_return if cfg.refresh_on_return else None,
        )
        self.listeners.register_content_tracking()

        ctx.scheduler.call_every(cfg.live_count_interval_s, self.refresh_counts)
        ctx.scheduler.call_every(cfg.heartbeat_interval_s, self.heartbeat)

        self.listeners.register_visibility_tracking()
        self.listeners.register_interaction_tracking()
        self.listeners.register_navigation_tracking()

        if cfg.fast_refresh_interval_s:
            ctx.scheduler.call_every(cfg.fast_refresh_interval_s, self.refresh_counts)
        if cfg.early_refresh_delay_s is not None:
            ctx.scheduler.call_later(cfg.early_refresh_delay_s, self.refresh_counts)
        ctx.scheduler.call_later(cfg.initial_refresh_delay_s, self.refresh_counts)

    def _refresh_after_return(self) -> None:
        self.ctx.scheduler.call_later(self.ctx.config.return_refresh_delay_s, self.refresh_counts)

    def _events(self) -> EventFactory:
        if self.factory is None:
            raise RuntimeError("tracker not started")
        return self.factory

    def track_visit(self) -> Delivery:
        result = self.emitter.send(self._events().track_visit())
        if result.ok:
            logger.info("Visit tracked (%s)", result.value)
            self.refresh_counts()
        else:
            logger.warning("Failed to track visit")
        return result

    def refresh_counts(self) -> LiveCountSnapshot:
        return self.poller.poll()

    def heartbeat(self) -> Delivery:
        return self.emitter.send(self._events().update_session())

    def teardown(self) -> None:
        """Page unload: fire beforeunload listeners, then stop every timer."""
        if not self.started or self.ctx.scheduler.closed:
            return
        self.ctx.page.dispatch("beforeunload")
        self.ctx.scheduler.shutdown()


def build_tracker(
    config: TrackerConfig,
    page: Page,
    *,
    storage: Optional[Storage] = None,
    document: Optional[Document] = None,
    clock: Optional[Clock] = None,
    session: Optional[requests.Session] = None,
) -> Tracker:
    clock = clock or SystemClock()
    ctx = TrackerContext(
        config=config,
        page=page,
        storage=storage if storage is not None else MemoryStorage(),
        document=document if document is not None else MemoryDocument(),
        clock=clock,
        scheduler=Scheduler(clock),
        transport=Transport(
            config.endpoint,
            mode=config.delivery_mode,
            timeout_s=config.request_timeout_s,
            session=session,
        ),
    )
    return Tracker(ctx)

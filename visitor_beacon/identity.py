from __future__ import annotations

import logging
import secrets
import string
from dataclasses import dataclass

from .clock import Clock
from .page import Page
from .storage import Storage, StorageError

logger = logging.getLogger(__name__)

LAST_VISIT_KEY = "akshar_last_visit"
NEW_VISITOR_WINDOW_MS = 24 * 60 * 60 * 1000

_BASE36 = string.digits + string.ascii_lowercase


@dataclass(frozen=True)
class VisitorIdentity:
    visitor_id: str
    session_id: str
    is_new_visitor: bool
    session_start_ms: int


def to_base36(n: int) -> str:
    if n < 0:
        raise ValueError("to_base36 expects a non-negative integer")
    if n == 0:
        return "0"
    out = []
    while n:
        n, rem = divmod(n, 36)
        out.append(_BASE36[rem])
    return "".join(reversed(out))


def _to_int32(n: int) -> int:
    n &= 0xFFFFFFFF
    return n - 0x1_0000_0000 if n & 0x8000_0000 else n


def fingerprint_hash(text: str) -> int:
    """
    Rolling ``h * 31 + c`` over UTF-16 code units, wrapped to a signed 32-bit
    integer after every step. Not collision resistant.
    """
    raw = text.encode("utf-16-le", "surrogatepass")
    h = 0
    for i in range(0, len(raw), 2):
        unit = raw[i] | (raw[i + 1] << 8)
        h = _to_int32((h << 5) - h + unit)
    return h


def fingerprint_source(page: Page) -> str:
    return "|".join(
        [
            page.user_agent,
            page.language,
            f"{page.screen_width}x{page.screen_height}",
            str(page.timezone_offset_minutes),
            page.canvas_fingerprint(),
        ]
    )


def generate_visitor_id(page: Page) -> str:
    return "visitor_" + to_base36(abs(fingerprint_hash(fingerprint_source(page))))


def generate_session_id(clock: Clock) -> str:
    suffix = "".join(secrets.choice(_BASE36) for _ in range(9))
    return f"session_{clock.now_ms()}_{suffix}"


def check_if_new_visitor(storage: Storage, now_ms: int) -> bool:
    """
    True when no last-visit marker exists or it is older than 24h; in that
    case the marker is moved to now. Reading and writing happen together.
    """
    try:
        raw = storage.get_item(LAST_VISIT_KEY)
    except StorageError as e:
        logger.error("Cannot read last visit marker: %s", e)
        return True

    last_visit = None
    if raw is not None:
        try:
            last_visit = int(raw)
        except ValueError:
            logger.warning("Ignoring malformed last visit marker %r", raw)

    if last_visit is not None and now_ms - last_visit <= NEW_VISITOR_WINDOW_MS:
        return False

    try:
        storage.set_item(LAST_VISIT_KEY, str(now_ms))
    except StorageError as e:
        logger.error("Cannot store last visit marker: %s", e)
    return True


def create_identity(page: Page, storage: Storage, clock: Clock) -> VisitorIdentity:
    now = clock.now_ms()
    return VisitorIdentity(
        visitor_id=generate_visitor_id(page),
        session_id=generate_session_id(clock),
        is_new_visitor=check_if_new_visitor(storage, now),
        session_start_ms=now,
    )

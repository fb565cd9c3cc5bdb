"""Tracked links and the append-only event log."""
from __future__ import annotations

import json
import logging
from typing import Any
from urllib.parse import urlencode, urlsplit

from sqlalchemy.ext.asyncio import AsyncSession

from beacon.errors import EventWriteFailure
from beacon.models import Event

log = logging.getLogger(__name__)

REDIRECT_PATH = "/r"
DEFAULT_EVENT_TYPE = "click"


def is_safe_destination(url: str | None) -> bool:
    """Only absolute http(s) URLs with a host are ever redirected to."""
    value = (url or "").strip()
    if not value.lower().startswith(("http://", "https://")):
        return False
    try:
        return bool(urlsplit(value).netloc)
    except ValueError:
        return False


def tracked_link(
    base_url: str,
    destination: str,
    event_type: str,
    fingerprint: str | None = None,
    domain: str | None = None,
    tier: str | None = None,
) -> str:
    """Rewrite *destination* so it passes through the redirect endpoint first."""
    params = {"to": destination, "e": event_type}
    for key, value in (("h", fingerprint), ("d", domain), ("t", tier)):
        if value:
            params[key] = value
    return f"{base_url.rstrip('/')}{REDIRECT_PATH}?{urlencode(params)}"


async def log_event(
    session: AsyncSession,
    event_type: str,
    *,
    email: str | None = None,
    fingerprint: str | None = None,
    domain: str | None = None,
    tier: str | None = None,
    meta: dict[str, Any] | None = None,
) -> Event | None:
    """Append one Event. Best-effort: failures are logged and ``None`` returned."""
    event_type = (event_type or DEFAULT_EVENT_TYPE).strip()[:100] or DEFAULT_EVENT_TYPE
    event = Event(
        event_type=event_type,
        email=email or None,
        fingerprint=fingerprint or None,
        domain=domain or None,
        tier=tier or None,
        meta_json=json.dumps(meta or {}, default=str),
    )
    try:
        session.add(event)
        await session.commit()
    except Exception as exc:
        await session.rollback()
        log.warning("%s", EventWriteFailure(f"Event write failed ({event_type}): {exc}"))
        return None
    return event

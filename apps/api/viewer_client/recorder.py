"""
Best-effort slide dwell-time recorder for one viewer tab.

Every public method swallows its own failures and returns None so that
viewing never depends on analytics.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Optional

import httpx

from .api import AccessClient
from .storage import TabStorage, get_fingerprint

logger = logging.getLogger(__name__)

_MOBILE_RE = re.compile(r"Mobi|Android", re.IGNORECASE)
_TABLET_RE = re.compile(r"Tablet|iPad", re.IGNORECASE)


def classify_device(user_agent: str) -> str:
    if _MOBILE_RE.search(user_agent or ""):
        return "mobile"
    if _TABLET_RE.search(user_agent or ""):
        return "tablet"
    return "desktop"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def dwell_seconds(entered_at: datetime, exited_at: datetime) -> float:
    delta = exited_at - entered_at
    seconds = Decimal(delta.days * 86400 + delta.seconds) + Decimal(delta.microseconds) / Decimal(1_000_000)
    return float(seconds.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


@dataclass
class PendingExit:
    event_id: str
    entered_at: datetime


class ViewRecorder:
    """Records one ViewSession and its slide events; at most one event is open."""

    def __init__(
        self,
        client: AccessClient,
        storage: TabStorage,
        *,
        user_agent: str = "",
        referrer: Optional[str] = None,
        clock: Callable[[], datetime] = _utc_now,
        flush_transport: Optional[httpx.BaseTransport] = None,
    ):
        self.client = client
        self.storage = storage
        self.user_agent = user_agent
        self.referrer = referrer
        self.clock = clock
        self.flush_transport = flush_transport
        self.view_id: Optional[str] = None
        self.pending_exit: Optional[PendingExit] = None

    async def start_session(self, link_id: str) -> Optional[str]:
        try:
            result = await self.client.start_view(
                {
                    "link_id": link_id,
                    "session_id": get_fingerprint(self.storage),
                    "user_agent": self.user_agent,
                    "device_type": classify_device(self.user_agent),
                    "referrer": self.referrer,
                }
            )
        except Exception as exc:
            logger.debug("View session not recorded: %s", exc)
            return None
        self.view_id = result.get("id")
        return self.view_id

    async def enter_slide(self, view_id: str, link_id: str, slide_index: int, slide_title: str) -> Optional[str]:
        """Close the open event, then open one for this slide."""
        if self.pending_exit is not None:
            pending = self.pending_exit
            await self.exit_slide(pending.event_id, pending.entered_at)

        entered_at = self.clock()
        try:
            result = await self.client.enter_slide(
                view_id,
                {
                    "link_id": link_id,
                    "slide_index": slide_index,
                    "slide_title": slide_title,
                    "time_entered": entered_at.isoformat(),
                },
            )
        except Exception as exc:
            logger.debug("Slide enter not recorded: %s", exc)
            return None

        event_id = result.get("id")
        if event_id:
            self.pending_exit = PendingExit(event_id=event_id, entered_at=entered_at)
        return event_id

    async def exit_slide(self, event_id: str, entered_at: datetime) -> None:
        if self.pending_exit is not None and self.pending_exit.event_id == event_id:
            self.pending_exit = None
        exited_at = self.clock()
        try:
            await self.client.exit_slide(
                event_id,
                {
                    "time_exited": exited_at.isoformat(),
                    "duration_seconds": dwell_seconds(entered_at, exited_at),
                },
            )
        except Exception as exc:
            logger.debug("Slide exit not recorded: %s", exc)

    def flush_on_unload(self) -> None:
        """
        Close the open slide event and the view with blocking requests that
        complete before the tab is torn down.
        """
        pending, self.pending_exit = self.pending_exit, None
        if pending is None and self.view_id is None:
            return

        now = self.clock()
        try:
            with httpx.Client(base_url=self.client.base_url, transport=self.flush_transport, timeout=5.0) as client:
                if pending is not None:
                    client.patch(
                        f"/viewer/slides/{pending.event_id}",
                        json={
                            "time_exited": now.isoformat(),
                            "duration_seconds": dwell_seconds(pending.entered_at, now),
                        },
                    )
                if self.view_id is not None:
                    client.patch(f"/viewer/views/{self.view_id}", json={"ended_at": now.isoformat()})
        except Exception as exc:
            logger.debug("Unload flush failed: %s", exc)

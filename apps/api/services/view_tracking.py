"""Row writes for viewer sessions and slide dwell-time events."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Optional

from fastapi import HTTPException
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from models.link_view import LinkView
from models.proposal_link import ProposalLink
from models.slide_analytic import SlideAnalytic
from services.timestamps import as_utc, isoformat, utc_now


DEVICE_TYPES = ("mobile", "tablet", "desktop")


def duration_between(entered: datetime, exited: datetime) -> Decimal:
    """Seconds between two instants, rounded half-up to two decimals."""
    delta = as_utc(exited) - as_utc(entered)
    seconds = Decimal(delta.days * 86400 + delta.seconds) + Decimal(delta.microseconds) / Decimal(1_000_000)
    return seconds.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


async def start_view(
    *,
    link_id: str,
    session_id: Optional[str],
    db: AsyncSession,
    user_agent: Optional[str] = None,
    device_type: Optional[str] = None,
    referrer: Optional[str] = None,
    viewer_ip: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    link_result = await db.execute(select(ProposalLink.id).where(ProposalLink.id == link_id))
    if link_result.scalar_one_or_none() is None:
        raise HTTPException(status_code=404, detail="Share link not found")

    is_unique = True
    if session_id:
        prior = await db.execute(
            select(func.count(LinkView.id)).where(
                LinkView.link_id == link_id,
                LinkView.session_id == session_id,
            )
        )
        is_unique = int(prior.scalar() or 0) == 0

    row = LinkView(
        id=str(uuid.uuid4()),
        link_id=link_id,
        viewer_ip=viewer_ip,
        user_agent=user_agent,
        device_type=device_type if device_type in DEVICE_TYPES else None,
        referrer=referrer or None,
        is_unique_visitor=is_unique,
        session_id=session_id,
        started_at=now or utc_now(),
    )
    db.add(row)
    await db.commit()
    return {"id": row.id, "is_unique_visitor": is_unique}


async def end_view(*, view_id: str, db: AsyncSession, ended_at: Optional[datetime] = None) -> Dict[str, Any]:
    view = await db.get(LinkView, view_id)
    if view is None:
        raise HTTPException(status_code=404, detail="View session not found")
    if view.ended_at is None:
        view.ended_at = ended_at or utc_now()
        await db.commit()
    return {"id": view.id, "ended_at": isoformat(view.ended_at)}


async def enter_slide(
    *,
    view_id: str,
    slide_index: int,
    db: AsyncSession,
    link_id: Optional[str] = None,
    slide_title: Optional[str] = None,
    time_entered: Optional[datetime] = None,
) -> Dict[str, Any]:
    view = await db.get(LinkView, view_id)
    if view is None:
        raise HTTPException(status_code=404, detail="View session not found")
    if link_id and link_id != view.link_id:
        raise HTTPException(status_code=422, detail="link_id does not match the view session")

    row = SlideAnalytic(
        id=str(uuid.uuid4()),
        view_id=view.id,
        link_id=view.link_id,
        slide_index=int(slide_index),
        slide_title=slide_title,
        time_entered=time_entered or utc_now(),
    )
    db.add(row)
    await db.commit()
    return {"id": row.id, "time_entered": isoformat(row.time_entered)}


async def exit_slide(
    *,
    event_id: str,
    db: AsyncSession,
    time_exited: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Close a slide event; closing twice keeps the first exit."""
    event = await db.get(SlideAnalytic, event_id)
    if event is None:
        raise HTTPException(status_code=404, detail="Slide event not found")

    if event.time_exited is None:
        exited = as_utc(time_exited) or utc_now()
        entered = as_utc(event.time_entered)
        if exited < entered:
            exited = entered
        event.time_exited = exited
        event.duration_seconds = duration_between(entered, exited)
        await db.commit()

    return {
        "id": event.id,
        "time_exited": isoformat(event.time_exited),
        "duration_seconds": float(event.duration_seconds) if event.duration_seconds is not None else None,
    }

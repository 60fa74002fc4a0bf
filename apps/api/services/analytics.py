"""Adviser-facing engagement analytics for shared proposals."""

from __future__ import annotations

import math
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from models.link_view import LinkView
from models.proposal_link import ProposalLink
from models.slide_analytic import SlideAnalytic
from services.timestamps import isoformat, utc_now


COMPLETION_THRESHOLD = 0.8
LIVE_WINDOW_MINUTES = 5


def _seconds(value: Any) -> float:
    return float(value) if value is not None else 0.0


async def _links_for_proposal(proposal_id: str, db: AsyncSession) -> List[ProposalLink]:
    result = await db.execute(select(ProposalLink).where(ProposalLink.proposal_id == proposal_id))
    return list(result.scalars().all())


async def _slide_rows(view_ids: List[str], db: AsyncSession) -> List[SlideAnalytic]:
    if not view_ids:
        return []
    result = await db.execute(
        select(SlideAnalytic)
        .where(SlideAnalytic.view_id.in_(view_ids))
        .order_by(SlideAnalytic.time_entered.asc())
    )
    return list(result.scalars().all())


async def get_proposal_overview(proposal_id: str, total_slides: int, db: AsyncSession) -> Dict[str, Any]:
    empty = {"total_views": 0, "unique_visitors": 0, "avg_time_spent": 0.0, "completion_rate": 0}
    links = await _links_for_proposal(proposal_id, db)
    if not links:
        return empty

    views_result = await db.execute(select(LinkView).where(LinkView.link_id.in_([link.id for link in links])))
    views = list(views_result.scalars().all())
    if not views:
        return empty

    total_views = len(views)
    unique_visitors = sum(1 for view in views if view.is_unique_visitor)
    slides = await _slide_rows([view.id for view in views], db)
    if not slides:
        return {**empty, "total_views": total_views, "unique_visitors": unique_visitors}

    durations: Dict[str, float] = {}
    seen: Dict[str, set] = {}
    for row in slides:
        durations[row.view_id] = durations.get(row.view_id, 0.0) + _seconds(row.duration_seconds)
        seen.setdefault(row.view_id, set()).add(row.slide_index)

    avg_time_spent = sum(durations.values()) / len(durations) if durations else 0.0
    threshold = math.ceil(max(int(total_slides), 0) * COMPLETION_THRESHOLD)
    completed = sum(1 for indices in seen.values() if len(indices) >= threshold)
    completion_rate = round(completed / total_views * 100) if total_views else 0

    return {
        "total_views": total_views,
        "unique_visitors": unique_visitors,
        "avg_time_spent": round(avg_time_spent, 2),
        "completion_rate": completion_rate,
    }


async def get_slide_heatmap(proposal_id: str, db: AsyncSession) -> List[Dict[str, Any]]:
    links = await _links_for_proposal(proposal_id, db)
    if not links:
        return []
    views_result = await db.execute(select(LinkView.id).where(LinkView.link_id.in_([link.id for link in links])))
    slides = await _slide_rows(list(views_result.scalars().all()), db)

    grouped: Dict[int, Dict[str, Any]] = {}
    for row in slides:
        bucket = grouped.setdefault(
            row.slide_index,
            {
                "title": row.slide_title or f"Slide {row.slide_index + 1}",
                "durations": [],
                "sessions": [],
                "view_ids": set(),
            },
        )
        duration = _seconds(row.duration_seconds)
        bucket["durations"].append(duration)
        bucket["sessions"].append({"view_id": row.view_id, "duration": duration})
        bucket["view_ids"].add(row.view_id)

    heatmap = []
    for slide_index in sorted(grouped):
        bucket = grouped[slide_index]
        durations = bucket["durations"]
        heatmap.append(
            {
                "slide_index": slide_index,
                "slide_title": bucket["title"],
                "view_count": len(bucket["view_ids"]),
                "avg_duration": round(sum(durations) / len(durations), 2) if durations else 0.0,
                "min_duration": min(durations) if durations else 0.0,
                "max_duration": max(durations) if durations else 0.0,
                "sessions": bucket["sessions"],
            }
        )
    return heatmap


async def get_viewer_sessions(proposal_id: str, total_slides: int, db: AsyncSession) -> List[Dict[str, Any]]:
    links = await _links_for_proposal(proposal_id, db)
    if not links:
        return []
    recipients = {link.id: link for link in links}

    views_result = await db.execute(
        select(LinkView)
        .where(LinkView.link_id.in_(list(recipients)))
        .order_by(LinkView.started_at.desc())
    )
    views = list(views_result.scalars().all())
    slides = await _slide_rows([view.id for view in views], db)

    by_view: Dict[str, List[SlideAnalytic]] = {}
    for row in slides:
        by_view.setdefault(row.view_id, []).append(row)

    sessions = []
    for view in views:
        link = recipients.get(view.link_id)
        journey = by_view.get(view.id, [])
        sessions.append(
            {
                "view_id": view.id,
                "link_id": view.link_id,
                "recipient_name": link.recipient_name if link else "Unknown",
                "recipient_email": link.recipient_email if link else "",
                "device_type": view.device_type,
                "started_at": isoformat(view.started_at),
                "ended_at": isoformat(view.ended_at),
                "total_duration": round(sum(_seconds(row.duration_seconds) for row in journey), 2),
                "slides_viewed": len({row.slide_index for row in journey}),
                "total_slides": int(total_slides),
                "is_unique_visitor": bool(view.is_unique_visitor),
                "slides": [
                    {
                        "slide_index": row.slide_index,
                        "slide_title": row.slide_title,
                        "time_entered": isoformat(row.time_entered),
                        "duration": float(row.duration_seconds) if row.duration_seconds is not None else None,
                    }
                    for row in journey
                ],
            }
        )
    return sessions


async def has_recent_viewer(
    proposal_id: str,
    db: AsyncSession,
    minutes: int = LIVE_WINDOW_MINUTES,
    now: Optional[datetime] = None,
) -> bool:
    cutoff = (now or utc_now()) - timedelta(minutes=minutes)
    result = await db.execute(
        select(func.count(LinkView.id))
        .join(ProposalLink, ProposalLink.id == LinkView.link_id)
        .where(
            ProposalLink.proposal_id == proposal_id,
            LinkView.started_at >= cutoff,
        )
    )
    return int(result.scalar() or 0) > 0

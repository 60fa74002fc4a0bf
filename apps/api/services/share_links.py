"""Share-link helpers for client proposals."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import HTTPException
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from config import settings
from models.link_view import LinkView
from models.proposal import Proposal
from models.proposal_link import ProposalLink
from services.crypto import generate_share_token
from services.errors import LinkExpired, LinkNotFound, LinkRevoked
from services.timestamps import as_utc, isoformat, utc_now


def mask_email(email: str) -> str:
    local, _, domain = str(email or "").partition("@")
    if not local or not domain:
        return "****@****"
    return f"{local[0]}****@{domain}"


def viewer_url(token: str) -> str:
    return f"{settings.PUBLIC_APP_ORIGIN.rstrip('/')}/view/{token}"


async def get_link_by_token(token: str, db: AsyncSession) -> Optional[ProposalLink]:
    cleaned = str(token or "").strip()
    if not cleaned:
        return None
    result = await db.execute(select(ProposalLink).where(ProposalLink.token == cleaned))
    return result.scalar_one_or_none()


def ensure_link_usable(link: Optional[ProposalLink], now: Optional[datetime] = None) -> ProposalLink:
    """Raise the terminal link error for missing, revoked or expired links."""
    if link is None:
        raise LinkNotFound()
    if not link.is_active:
        raise LinkRevoked()
    expires_at = as_utc(link.expires_at)
    if expires_at is not None and expires_at < (now or utc_now()):
        raise LinkExpired()
    return link


async def resolve_active_link(token: str, db: AsyncSession, now: Optional[datetime] = None) -> ProposalLink:
    link = await get_link_by_token(token, db)
    return ensure_link_usable(link, now)


async def _get_owned_proposal(advisor_id: str, proposal_id: str, db: AsyncSession) -> Proposal:
    result = await db.execute(
        select(Proposal).where(
            Proposal.id == proposal_id,
            Proposal.advisor_id == advisor_id,
        )
    )
    proposal = result.scalar_one_or_none()
    if not proposal:
        raise HTTPException(status_code=404, detail="Proposal not found")
    return proposal


async def create_share_link(
    *,
    advisor_id: str,
    proposal_id: str,
    recipient_email: str,
    recipient_name: str,
    db: AsyncSession,
    allow_download: bool = True,
    expires_at: Optional[datetime] = None,
) -> Dict[str, Any]:
    await _get_owned_proposal(advisor_id, proposal_id, db)

    now = utc_now()
    normalized_expiry = as_utc(expires_at)
    if normalized_expiry is not None and normalized_expiry <= now:
        raise HTTPException(status_code=422, detail="expires_at must be in the future")

    token = generate_share_token()
    row = ProposalLink(
        id=str(uuid.uuid4()),
        proposal_id=proposal_id,
        token=token,
        recipient_email=recipient_email.strip(),
        recipient_name=recipient_name.strip(),
        is_active=True,
        expires_at=normalized_expiry,
        allow_download=bool(allow_download),
        sent_at=now,
        sent_by=advisor_id,
        created_at=now,
    )
    db.add(row)
    await db.commit()

    return {
        "id": row.id,
        "proposal_id": proposal_id,
        "token": token,
        "link": viewer_url(token),
        "recipient_email": row.recipient_email,
        "recipient_name": row.recipient_name,
        "allow_download": row.allow_download,
        "expires_at": isoformat(normalized_expiry),
    }


async def revoke_share_link(*, advisor_id: str, link_id: str, db: AsyncSession) -> Dict[str, Any]:
    result = await db.execute(
        select(ProposalLink)
        .join(Proposal, Proposal.id == ProposalLink.proposal_id)
        .where(
            ProposalLink.id == link_id,
            Proposal.advisor_id == advisor_id,
        )
    )
    link = result.scalar_one_or_none()
    if not link:
        raise HTTPException(status_code=404, detail="Share link not found")

    link.is_active = False
    await db.commit()
    return {"id": link.id, "is_active": False}


async def list_share_links(*, advisor_id: str, proposal_id: str, db: AsyncSession) -> List[Dict[str, Any]]:
    await _get_owned_proposal(advisor_id, proposal_id, db)

    result = await db.execute(
        select(ProposalLink)
        .where(ProposalLink.proposal_id == proposal_id)
        .order_by(ProposalLink.created_at.desc())
    )
    links = result.scalars().all()
    if not links:
        return []

    counts_result = await db.execute(
        select(LinkView.link_id, func.count(LinkView.id), func.max(LinkView.started_at))
        .where(LinkView.link_id.in_([link.id for link in links]))
        .group_by(LinkView.link_id)
    )
    counts = {link_id: (count, last_viewed) for link_id, count, last_viewed in counts_result.all()}

    payload = []
    for link in links:
        view_count, last_viewed_at = counts.get(link.id, (0, None))
        payload.append(
            {
                "id": link.id,
                "token": link.token,
                "link": viewer_url(link.token),
                "recipient_email": link.recipient_email,
                "recipient_name": link.recipient_name,
                "is_active": bool(link.is_active),
                "allow_download": bool(link.allow_download),
                "expires_at": isoformat(link.expires_at),
                "sent_at": isoformat(link.sent_at),
                "view_count": int(view_count or 0),
                "last_viewed_at": isoformat(last_viewed_at),
            }
        )
    return payload

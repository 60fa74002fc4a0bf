"""
Public endpoints used by the proposal viewer after the link gate.
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from models.proposal import Proposal
from routers.rate_limit import client_identifier
from services.errors import AccessError
from services.session_validator import validate_session
from services.share_links import ensure_link_usable, get_link_by_token, mask_email
from services.slides import assemble_slides, proposal_pdf_url
from services.timestamps import isoformat
from services.view_tracking import end_view, enter_slide, exit_slide, start_view

router = APIRouter()
logger = logging.getLogger(__name__)


class StartViewRequest(BaseModel):
    link_id: str
    session_id: Optional[str] = None
    user_agent: Optional[str] = None
    device_type: Optional[str] = None
    referrer: Optional[str] = None


class EnterSlideRequest(BaseModel):
    link_id: Optional[str] = None
    slide_index: int = Field(ge=0)
    slide_title: Optional[str] = None
    time_entered: Optional[datetime] = None


class ExitSlideRequest(BaseModel):
    time_exited: Optional[datetime] = None


class EndViewRequest(BaseModel):
    ended_at: Optional[datetime] = None


@router.get("/links/{token}")
async def get_link(token: str, db: AsyncSession = Depends(get_db)):
    """Link metadata the gate needs before asking for a passcode."""
    link = await get_link_by_token(token, db)
    if link is None:
        raise HTTPException(status_code=404, detail="Share link not found")
    return {
        "id": link.id,
        "proposal_id": link.proposal_id,
        "is_active": bool(link.is_active),
        "expires_at": isoformat(link.expires_at),
        "allow_download": bool(link.allow_download),
        "recipient_name": link.recipient_name,
        "masked_email": mask_email(link.recipient_email),
    }


@router.get("/links/{token}/proposal")
async def get_proposal_for_viewer(
    token: str,
    x_viewer_session: Optional[str] = Header(default=None),
    db: AsyncSession = Depends(get_db),
):
    """Slides for a verified visitor."""
    link = await get_link_by_token(token, db)
    try:
        ensure_link_usable(link)
    except AccessError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message)

    if not x_viewer_session or not await validate_session(token, x_viewer_session, db):
        raise HTTPException(status_code=401, detail="Viewer session is missing or expired")

    proposal = await db.get(Proposal, link.proposal_id)
    if proposal is None:
        raise HTTPException(status_code=404, detail="This link is no longer available")

    payload = {
        "link_id": link.id,
        "proposal": {"id": proposal.id, "client_name": proposal.client_name},
        "slides": assemble_slides(proposal),
    }
    pdf_url = proposal_pdf_url(proposal, bool(link.allow_download))
    if pdf_url:
        payload["pdf_url"] = pdf_url
    return payload


@router.post("/views")
async def create_view(
    body: StartViewRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    return await start_view(
        link_id=body.link_id,
        session_id=body.session_id,
        user_agent=body.user_agent,
        device_type=body.device_type,
        referrer=body.referrer,
        viewer_ip=client_identifier(request),
        db=db,
    )


@router.patch("/views/{view_id}")
async def close_view(view_id: str, body: EndViewRequest, db: AsyncSession = Depends(get_db)):
    return await end_view(view_id=view_id, ended_at=body.ended_at, db=db)


@router.post("/views/{view_id}/slides")
async def create_slide_event(view_id: str, body: EnterSlideRequest, db: AsyncSession = Depends(get_db)):
    return await enter_slide(
        view_id=view_id,
        link_id=body.link_id,
        slide_index=body.slide_index,
        slide_title=body.slide_title,
        time_entered=body.time_entered,
        db=db,
    )


@router.patch("/slides/{event_id}")
async def close_slide_event(event_id: str, body: ExitSlideRequest, db: AsyncSession = Depends(get_db)):
    """Close a slide event; the stored duration is derived from the stored enter time."""
    return await exit_slide(event_id=event_id, time_exited=body.time_exited, db=db)

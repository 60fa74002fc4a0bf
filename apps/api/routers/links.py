"""
Router for creating, revoking and reporting on proposal share links.
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, field_validator
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from database import get_db
from models.proposal import Proposal
from routers.auth_scope import AuthContext, get_auth_context
from services.analytics import (
    get_proposal_overview,
    get_slide_heatmap,
    get_viewer_sessions,
    has_recent_viewer,
)
from services.share_links import create_share_link, list_share_links, revoke_share_link

router = APIRouter()
logger = logging.getLogger(__name__)


class CreateLinkRequest(BaseModel):
    proposal_id: str
    recipient_email: str
    recipient_name: str
    allow_download: bool = True
    expires_at: Optional[datetime] = None

    @field_validator("recipient_email")
    @classmethod
    def _check_email(cls, value: str) -> str:
        local, _, domain = value.strip().partition("@")
        if not local or "." not in domain:
            raise ValueError("recipient_email must be an email address")
        return value.strip()


@router.post("/links")
async def create_link(
    request: CreateLinkRequest,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    """Create a tracked share link for one recipient."""
    try:
        return await create_share_link(
            advisor_id=auth.user_id,
            proposal_id=request.proposal_id,
            recipient_email=str(request.recipient_email),
            recipient_name=request.recipient_name,
            allow_download=request.allow_download,
            expires_at=request.expires_at,
            db=db,
        )
    except HTTPException:
        raise
    except Exception:
        logger.exception("Failed to create share link for proposal=%s", request.proposal_id)
        raise HTTPException(status_code=500, detail="Failed to create share link.")


@router.post("/links/{link_id}/revoke")
async def revoke_link(
    link_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    """Deactivate a share link; the row and its analytics are kept."""
    return await revoke_share_link(advisor_id=auth.user_id, link_id=link_id, db=db)


@router.get("/proposals/{proposal_id}/links")
async def get_links(
    proposal_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await list_share_links(advisor_id=auth.user_id, proposal_id=proposal_id, db=db)


@router.get("/proposals/{proposal_id}/analytics")
async def get_analytics(
    proposal_id: str,
    total_slides: int = Query(default=0, ge=0),
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    """Overview, per-slide heatmap and per-visit journeys for a proposal."""
    result = await db.execute(
        select(Proposal.id).where(
            Proposal.id == proposal_id,
            Proposal.advisor_id == auth.user_id,
        )
    )
    if result.scalar_one_or_none() is None:
        raise HTTPException(status_code=404, detail="Proposal not found")

    try:
        return {
            "overview": await get_proposal_overview(proposal_id, total_slides, db),
            "heatmap": await get_slide_heatmap(proposal_id, db),
            "sessions": await get_viewer_sessions(proposal_id, total_slides, db),
            "live": await has_recent_viewer(proposal_id, db),
        }
    except Exception:
        logger.exception("Failed to build analytics for proposal=%s", proposal_id)
        raise HTTPException(status_code=500, detail="Failed to fetch analytics.")

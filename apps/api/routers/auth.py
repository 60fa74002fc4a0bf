"""
Development-only adviser session issuance.

Production advisers authenticate through the managed identity platform,
which issues the same Bearer session tokens.
"""

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from database import get_db
from models.user import User
from services.session_token import create_session_token

router = APIRouter()


class DevSessionRequest(BaseModel):
    user_id: str


class DevSessionResponse(BaseModel):
    user_id: str
    email: str
    session_token: str
    session_expires_at: int


@router.post("/session", response_model=DevSessionResponse)
async def create_dev_session(
    request: DevSessionRequest,
    db: AsyncSession = Depends(get_db),
):
    """Issue an adviser session token for an existing user (ENABLE_DEV_AUTH only)."""
    if not settings.ENABLE_DEV_AUTH:
        raise HTTPException(status_code=404, detail="Not found")

    user = await db.get(User, request.user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    session = create_session_token(user.id, user.email)
    return DevSessionResponse(
        user_id=user.id,
        email=user.email,
        session_token=session["token"],
        session_expires_at=session["expires_at"],
    )

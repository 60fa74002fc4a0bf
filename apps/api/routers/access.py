"""
Public passcode gate for shared proposal links.

One POST endpoint dispatches on ``action``: send_otp, verify_otp and
validate_session.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from database import get_db
from routers.rate_limit import rate_limit
from services.errors import AccessError
from services.mailer import OtpMailer, get_mailer
from services.passcode_issuer import issue_passcode
from services.passcode_verifier import verify_passcode
from services.session_validator import validate_session

router = APIRouter()
logger = logging.getLogger(__name__)


class VerifyAccessRequest(BaseModel):
    action: str
    token: Optional[str] = None
    code: Optional[str] = None
    session_token: Optional[str] = None


def _json(body: dict, status_code: int = 200) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=body)


async def _send_otp(request: VerifyAccessRequest, db: AsyncSession, mailer: OtpMailer) -> JSONResponse:
    if not request.token:
        return _json({"error": "Token required"}, 400)
    try:
        result = await issue_passcode(request.token, db, mailer)
    except AccessError as exc:
        return _json(exc.to_payload(), exc.status_code)
    return _json({"success": True, "expires_in": result["expires_in"]})


async def _verify_otp(request: VerifyAccessRequest, db: AsyncSession) -> JSONResponse:
    if not request.token or not request.code:
        return _json({"error": "Token and code required"}, 400)
    try:
        session = await verify_passcode(request.token, request.code, db)
    except AccessError as exc:
        return _json(exc.to_payload(), exc.status_code)
    return _json(session.to_payload())


async def _validate_session(request: VerifyAccessRequest, db: AsyncSession) -> JSONResponse:
    if not request.token or not request.session_token:
        return _json({"valid": False})
    valid = await validate_session(request.token, request.session_token, db)
    return _json({"valid": valid})


@router.post(
    "/verify-access",
    dependencies=[
        Depends(
            rate_limit(
                "verify_access",
                settings.VERIFY_ACCESS_RATE_LIMIT,
                settings.VERIFY_ACCESS_RATE_WINDOW_SECONDS,
            )
        )
    ],
)
async def verify_access(
    request: VerifyAccessRequest,
    db: AsyncSession = Depends(get_db),
    mailer: OtpMailer = Depends(get_mailer),
):
    """Send, verify or validate a passcode-backed viewer session."""
    try:
        if request.action == "send_otp":
            return await _send_otp(request, db, mailer)
        if request.action == "verify_otp":
            return await _verify_otp(request, db)
        if request.action == "validate_session":
            return await _validate_session(request, db)
    except Exception:
        logger.exception("verify-access action=%s failed", request.action)
        return _json({"error": "Internal server error"}, 500)
    return _json({"error": "Invalid action"}, 400)

"""Verify submitted passcodes and mint viewer sessions."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from services.code_store import CodeStore
from services.crypto import generate_session_token, hash_passcode
from services.errors import CodeExpired, InvalidCode, LinkNotFound, TooManyAttempts
from services.share_links import get_link_by_token
from services.timestamps import utc_now

logger = logging.getLogger(__name__)


@dataclass
class ViewerSession:
    session_token: str
    expires_at: datetime

    def to_payload(self) -> Dict[str, Any]:
        return {
            "verified": True,
            "session_token": self.session_token,
            "expires_at": self.expires_at.isoformat(),
        }


async def verify_passcode(
    token: str,
    code: str,
    db: AsyncSession,
    now: Optional[datetime] = None,
) -> ViewerSession:
    """
    Check a submitted code against the latest current passcode for the link.

    Raises LinkNotFound for unknown links; CodeExpired, TooManyAttempts and
    InvalidCode are recoverable and reported to the visitor as verified=false.
    """
    now = now or utc_now()
    link = await get_link_by_token(token, db)
    if link is None:
        raise LinkNotFound()

    store = CodeStore(db)
    max_attempts = int(settings.OTP_MAX_ATTEMPTS)

    otp = await store.latest_current(link.id, now)
    if otp is None:
        raise CodeExpired()
    if int(otp.attempts or 0) >= max_attempts:
        raise TooManyAttempts()

    cleaned = "".join(str(code or "").split())
    if hash_passcode(cleaned) != otp.code:
        attempts = await store.consume_attempt(otp.id, max_attempts)
        await db.commit()
        if attempts is None:
            raise TooManyAttempts()
        logger.info("Invalid passcode for link=%s (attempt %s/%s)", link.id, attempts, max_attempts)
        raise InvalidCode(attempts_remaining=max_attempts - attempts)

    session = ViewerSession(
        session_token=generate_session_token(),
        expires_at=now + timedelta(hours=int(settings.VIEWER_SESSION_TTL_HOURS)),
    )
    marked = await store.mark_verified(
        otp.id,
        session_token=session.session_token,
        session_expires_at=session.expires_at,
        max_attempts=max_attempts,
    )
    await db.commit()
    if not marked:
        # Another request consumed or exhausted this code first.
        raise CodeExpired()

    logger.info("Passcode verified for link=%s", link.id)
    return session

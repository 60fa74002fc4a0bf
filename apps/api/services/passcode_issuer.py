"""Issue one-time passcodes for share-link visitors."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from config import settings
from models.proposal import Proposal
from services.code_store import CodeStore
from services.crypto import generate_passcode, hash_passcode
from services.errors import RateLimited, TransientIO
from services.mailer import OtpMailer
from services.share_links import mask_email, resolve_active_link
from services.timestamps import utc_now

logger = logging.getLogger(__name__)


async def _client_name(proposal_id: str, db: AsyncSession) -> str:
    result = await db.execute(select(Proposal.client_name).where(Proposal.id == proposal_id))
    return result.scalar_one_or_none() or "your adviser"


async def issue_passcode(
    token: str,
    db: AsyncSession,
    mailer: OtpMailer,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Generate, store and deliver a passcode for the link identified by token.

    Raises LinkNotFound, LinkRevoked, LinkExpired, RateLimited or TransientIO.
    Email delivery failures are logged by the mailer and do not fail the call.
    """
    now = now or utc_now()
    link = await resolve_active_link(token, db, now)
    store = CodeStore(db)

    window_start = now - timedelta(minutes=int(settings.OTP_RATE_LIMIT_WINDOW_MINUTES))
    recent = await store.count_issued_since(link.id, window_start)
    if recent >= int(settings.OTP_RATE_LIMIT_PER_WINDOW):
        logger.info("Passcode issuance rate limited for link=%s (recent=%s)", link.id, recent)
        raise RateLimited()

    client_name = await _client_name(link.proposal_id, db)

    code = generate_passcode()
    ttl = timedelta(minutes=int(settings.OTP_CODE_TTL_MINUTES))
    try:
        await store.insert(link.id, hash_passcode(code), expires_at=now + ttl, now=now)
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.exception("Failed to store passcode for link=%s", link.id)
        raise TransientIO() from exc

    await mailer.send_passcode(
        link.recipient_email,
        code,
        client_name=client_name,
        masked_email=mask_email(link.recipient_email),
    )
    return {"expires_in": int(ttl.total_seconds())}

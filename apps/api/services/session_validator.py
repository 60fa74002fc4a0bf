"""Check cached viewer session tokens so returning visitors skip the email step."""

from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from services.code_store import CodeStore
from services.share_links import get_link_by_token
from services.timestamps import utc_now


async def validate_session(
    token: str,
    session_token: str,
    db: AsyncSession,
    now: Optional[datetime] = None,
) -> bool:
    """Return True iff a used passcode for the link carries this unexpired session."""
    if not token or not session_token:
        return False
    link = await get_link_by_token(token, db)
    if link is None:
        return False
    row = await CodeStore(db).find_session(link.id, session_token, now or utc_now())
    return row is not None

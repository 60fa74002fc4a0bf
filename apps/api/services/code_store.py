"""Persistence for one-time passcodes issued against share links."""

from __future__ import annotations

from datetime import datetime
from typing import Optional
import uuid

from sqlalchemy import func, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from models.link_otp import LinkOtp


class CodeStore:
    """Row-level operations on ``link_otps``; rows are never deleted."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def count_issued_since(self, link_id: str, since: datetime) -> int:
        result = await self.db.execute(
            select(func.count(LinkOtp.id)).where(
                LinkOtp.link_id == link_id,
                LinkOtp.created_at >= since,
            )
        )
        return int(result.scalar() or 0)

    async def insert(
        self,
        link_id: str,
        code_hash: str,
        *,
        expires_at: datetime,
        now: datetime,
    ) -> LinkOtp:
        row = LinkOtp(
            id=str(uuid.uuid4()),
            link_id=link_id,
            code=code_hash,
            expires_at=expires_at,
            is_used=False,
            attempts=0,
            created_at=now,
        )
        self.db.add(row)
        await self.db.flush()
        return row

    async def latest_current(self, link_id: str, now: datetime) -> Optional[LinkOtp]:
        """Newest unused, unexpired passcode; older ones are superseded."""
        result = await self.db.execute(
            select(LinkOtp)
            .where(
                LinkOtp.link_id == link_id,
                LinkOtp.is_used.is_(False),
                LinkOtp.expires_at >= now,
            )
            .order_by(LinkOtp.created_at.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def consume_attempt(self, otp_id: str, max_attempts: int) -> Optional[int]:
        """
        Atomically record one failed attempt.

        Returns the attempt count after the increment, or None when the row
        was already at the ceiling (or used) and nothing was written.
        """
        result = await self.db.execute(
            update(LinkOtp)
            .where(
                LinkOtp.id == otp_id,
                LinkOtp.is_used.is_(False),
                LinkOtp.attempts < max_attempts,
            )
            .values(attempts=LinkOtp.attempts + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            return None
        attempts = await self.db.execute(select(LinkOtp.attempts).where(LinkOtp.id == otp_id))
        return int(attempts.scalar() or 0)

    async def mark_verified(
        self,
        otp_id: str,
        *,
        session_token: str,
        session_expires_at: datetime,
        max_attempts: int,
    ) -> bool:
        """Flip an unused row to used and attach the minted session."""
        result = await self.db.execute(
            update(LinkOtp)
            .where(
                LinkOtp.id == otp_id,
                LinkOtp.is_used.is_(False),
                LinkOtp.attempts < max_attempts,
            )
            .values(
                is_used=True,
                session_token=session_token,
                session_expires_at=session_expires_at,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def find_session(self, link_id: str, session_token: str, now: datetime) -> Optional[LinkOtp]:
        result = await self.db.execute(
            select(LinkOtp)
            .where(
                LinkOtp.link_id == link_id,
                LinkOtp.session_token == session_token,
                LinkOtp.is_used.is_(True),
                LinkOtp.session_expires_at >= now,
            )
            .limit(1)
        )
        return result.scalar_one_or_none()

"""
Link gate: drives one visitor from a bare share link to an authenticated
slide-viewing session.

    loading -> verify -> code_entry -> verified -> viewing
       \\________\\___________\\____________\\-> error

The gate is single-threaded. Each network call is tagged with a generation
number and a response is dropped when a newer call has started since.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import httpx

from .api import AccessClient
from .recorder import ViewRecorder
from .storage import TabStorage, session_key

logger = logging.getLogger(__name__)


CODE_LENGTH = 6
RESEND_COOLDOWN_SECONDS = 30
DEFAULT_CODE_TTL_SECONDS = 600


class GateState(str, Enum):
    LOADING = "loading"
    VERIFY = "verify"
    CODE_ENTRY = "code_entry"
    VERIFIED = "verified"
    VIEWING = "viewing"
    ERROR = "error"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class LinkGate:
    def __init__(
        self,
        token: Optional[str],
        client: AccessClient,
        storage: TabStorage,
        *,
        recorder: Optional[ViewRecorder] = None,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.token = (token or "").strip()
        self.client = client
        self.storage = storage
        self.recorder = recorder
        self.clock = clock

        self.state = GateState.LOADING
        self.error: Optional[str] = None
        self.link: Optional[Dict[str, Any]] = None
        self.session_token: Optional[str] = None

        self.code = ""
        self.otp_error: Optional[str] = None
        self.attempts_remaining: Optional[int] = None
        self.shake = False
        self.sending = False
        self.verifying = False
        self.code_expires_at: Optional[datetime] = None
        self.resend_available_at: Optional[datetime] = None

        self.proposal: Optional[Dict[str, Any]] = None
        self.slides: List[Dict[str, Any]] = []
        self.pdf_url: Optional[str] = None
        self.current_index = 0
        self.view_id: Optional[str] = None

        self._generation = 0

    # ── helpers ──

    def _next_generation(self) -> int:
        self._generation += 1
        return self._generation

    def _is_stale(self, generation: int) -> bool:
        if generation != self._generation:
            logger.debug("Dropping stale response (generation %s, current %s)", generation, self._generation)
            return True
        return False

    def _fail(self, message: str) -> None:
        self.error = message
        self.state = GateState.ERROR

    def _cached_session(self) -> Optional[str]:
        cached = self.storage.get_json(session_key(self.token))
        if not isinstance(cached, dict):
            return None
        expires_at = _parse_timestamp(cached.get("expires_at"))
        if expires_at is None or expires_at < self.clock():
            self.storage.remove_item(session_key(self.token))
            return None
        return cached.get("session_token") or None

    def _cache_session(self, session_token: str, expires_at: str) -> None:
        self.storage.set_json(
            session_key(self.token),
            {"session_token": session_token, "expires_at": expires_at},
        )

    # ── loading ──

    async def load(self) -> GateState:
        """Validate the link and reuse a cached session when the server still accepts it."""
        if not self.token:
            self._fail("No token provided")
            return self.state

        generation = self._next_generation()
        try:
            link = await self.client.get_link(self.token)
        except Exception as exc:
            logger.debug("Link lookup failed: %s", exc)
            link = None
        if self._is_stale(generation):
            return self.state

        if link is None:
            self._fail("This link is no longer available")
            return self.state
        if not link.get("is_active"):
            self._fail("This link has been revoked")
            return self.state
        expires_at = _parse_timestamp(link.get("expires_at"))
        if expires_at is not None and expires_at < self.clock():
            self._fail("This link has expired")
            return self.state

        self.link = link

        cached = self._cached_session()
        if cached:
            try:
                result = await self.client.validate_session(self.token, cached)
            except Exception as exc:
                logger.debug("Session validation failed: %s", exc)
                result = {}
            if self._is_stale(generation):
                return self.state
            if result.get("valid"):
                self.session_token = cached
                self.state = GateState.VERIFIED
                await self.open_proposal()
                return self.state
            self.storage.remove_item(session_key(self.token))

        self.state = GateState.VERIFY
        return self.state

    # ── passcode ──

    def resend_cooldown_remaining(self) -> int:
        if self.resend_available_at is None:
            return 0
        remaining = (self.resend_available_at - self.clock()).total_seconds()
        return max(0, math.ceil(remaining))

    def expiry_display(self) -> str:
        """Countdown text only; the server decides when a code has expired."""
        if self.code_expires_at is None or self.state != GateState.CODE_ENTRY:
            return ""
        remaining = max(0, math.floor((self.code_expires_at - self.clock()).total_seconds()))
        if remaining <= 0:
            return "Code expired"
        minutes, seconds = divmod(remaining, 60)
        return f"Code expires in {minutes}:{seconds:02d}"

    async def request_code(self) -> bool:
        """Send (or resend) a passcode; True when the server issued one."""
        if self.state not in (GateState.VERIFY, GateState.CODE_ENTRY) or self.sending:
            return False
        if self.state == GateState.CODE_ENTRY and self.resend_cooldown_remaining() > 0:
            return False

        generation = self._next_generation()
        self.sending = True
        self.otp_error = None
        try:
            result = await self.client.send_otp(self.token)
        except Exception as exc:
            logger.debug("send_otp failed: %s", exc)
            result = None
        finally:
            self.sending = False
        if self._is_stale(generation):
            return False
        if result is None:
            self.otp_error = "Failed to send code. Please try again."
            return False

        if result.get("error"):
            self.otp_error = result["error"]
            return False

        now = self.clock()
        expires_in = int(result.get("expires_in") or DEFAULT_CODE_TTL_SECONDS)
        self.code_expires_at = now + timedelta(seconds=expires_in)
        self.resend_available_at = now + timedelta(seconds=RESEND_COOLDOWN_SECONDS)
        self.code = ""
        self.attempts_remaining = None
        self.state = GateState.CODE_ENTRY
        return True

    async def enter_digit(self, digit: str) -> None:
        """Append one digit; the sixth digit submits automatically."""
        if self.state != GateState.CODE_ENTRY or self.verifying:
            return
        if len(digit) != 1 or not digit.isdigit() or len(self.code) >= CODE_LENGTH:
            return
        self.code += digit
        if len(self.code) == CODE_LENGTH:
            await self.submit_code()

    async def paste(self, text: str) -> None:
        if self.state != GateState.CODE_ENTRY or self.verifying:
            return
        digits = "".join(ch for ch in str(text or "") if ch.isdigit())[:CODE_LENGTH]
        if not digits:
            return
        self.code = digits
        if len(self.code) == CODE_LENGTH:
            await self.submit_code()

    def backspace(self) -> None:
        if self.state == GateState.CODE_ENTRY and not self.verifying:
            self.code = self.code[:-1]

    def clear_shake(self) -> None:
        self.shake = False

    async def submit_code(self, code: Optional[str] = None) -> bool:
        candidate = "".join(str(code if code is not None else self.code).split())
        if self.state != GateState.CODE_ENTRY or self.verifying:
            return False
        if len(candidate) != CODE_LENGTH or not candidate.isdigit():
            return False

        generation = self._next_generation()
        self.verifying = True
        self.otp_error = None
        try:
            result = await self.client.verify_otp(self.token, candidate)
        except Exception as exc:
            logger.debug("verify_otp failed: %s", exc)
            result = None
        finally:
            self.verifying = False
        if self._is_stale(generation):
            return False
        if result is None:
            self.otp_error = "Verification failed. Please try again."
            return False

        if result.get("verified"):
            self.session_token = result["session_token"]
            self._cache_session(result["session_token"], result["expires_at"])
            self.otp_error = None
            self.state = GateState.VERIFIED
            await self.open_proposal()
            return True

        self.otp_error = result.get("error") or "Invalid code."
        self.attempts_remaining = result.get("attempts_remaining")
        self.shake = True
        self.code = ""
        return False

    # ── viewing ──

    async def open_proposal(self) -> GateState:
        """Load slides, start the view session and record the first slide."""
        if self.state != GateState.VERIFIED or not self.link or not self.session_token:
            return self.state

        generation = self._next_generation()
        try:
            payload = await self.client.get_proposal(self.token, self.session_token)
        except httpx.HTTPStatusError as exc:
            logger.debug("Proposal load rejected: %s", exc)
            if self._is_stale(generation):
                return self.state
            if exc.response.status_code == 401:
                # Session no longer accepted; ask for a fresh passcode.
                self.storage.remove_item(session_key(self.token))
                self.session_token = None
                self.state = GateState.VERIFY
            else:
                self._fail("This link is no longer available")
            return self.state
        except Exception as exc:
            logger.debug("Proposal load failed: %s", exc)
            if not self._is_stale(generation):
                self._fail("This link is no longer available")
            return self.state
        if self._is_stale(generation):
            return self.state

        self.proposal = payload.get("proposal")
        self.slides = list(payload.get("slides") or [])
        self.pdf_url = payload.get("pdf_url")
        self.current_index = 0
        self.state = GateState.VIEWING

        if self.recorder is not None:
            self.view_id = await self.recorder.start_session(self.link["id"])
            await self._record_current_slide()
        return self.state

    async def _record_current_slide(self) -> None:
        if self.recorder is None or not self.view_id or not self.slides:
            return
        slide = self.slides[self.current_index]
        await self.recorder.enter_slide(self.view_id, self.link["id"], self.current_index, slide.get("label") or "")

    async def go_to_slide(self, index: int) -> bool:
        if self.state != GateState.VIEWING:
            return False
        if index < 0 or index >= len(self.slides) or index == self.current_index:
            return False
        self.current_index = index
        await self._record_current_slide()
        return True

    async def next_slide(self) -> bool:
        return await self.go_to_slide(self.current_index + 1)

    async def previous_slide(self) -> bool:
        return await self.go_to_slide(self.current_index - 1)

    @property
    def can_download(self) -> bool:
        return bool(self.link and self.link.get("allow_download") and self.pdf_url)

    def unload(self) -> None:
        """Page teardown: flush the open slide event."""
        if self.recorder is not None:
            self.recorder.flush_on_unload()

"""Passcode email delivery via the Resend HTTP API."""

from __future__ import annotations

import html
import logging
from typing import Optional

import httpx

from config import settings

logger = logging.getLogger(__name__)


OTP_EMAIL_TEMPLATE = """<!DOCTYPE html>
<html>
<head><meta charset="utf-8"></head>
<body style="margin:0;padding:0;background:#f0f7f6;font-family:'Helvetica Neue',Helvetica,Arial,sans-serif;">
  <table width="100%" cellpadding="0" cellspacing="0" style="background:#f0f7f6;padding:40px 20px;">
    <tr><td align="center">
      <table width="480" cellpadding="0" cellspacing="0" style="background:#ffffff;border-radius:12px;overflow:hidden;">
        <tr><td style="padding:36px 32px 16px;">
          <h1 style="margin:0 0 8px;font-size:22px;color:#033839;font-weight:600;">Your verification code</h1>
          <p style="margin:0 0 28px;font-size:15px;color:#527C7E;line-height:1.5;">
            Enter this code to view the proposal for <strong>{client_name}</strong>.
          </p>
          <div style="background:#f0f7f6;border-radius:10px;padding:24px;text-align:center;margin-bottom:28px;">
            <span style="font-size:36px;font-weight:700;letter-spacing:8px;color:#033839;font-family:'Courier New',monospace;">{code}</span>
          </div>
          <p style="margin:0;font-size:13px;color:#527C7E;line-height:1.5;">
            This code was requested for {masked_email} and expires in <strong>{ttl_minutes} minutes</strong>.
            If you didn't request this, you can safely ignore this email.
          </p>
        </td></tr>
      </table>
    </td></tr>
  </table>
</body>
</html>"""


def render_otp_email(code: str, client_name: str, masked_email: str) -> str:
    return OTP_EMAIL_TEMPLATE.format(
        code=html.escape(code),
        client_name=html.escape(client_name),
        masked_email=html.escape(masked_email),
        ttl_minutes=int(settings.OTP_CODE_TTL_MINUTES),
    )


class OtpMailer:
    """
    Sends passcode emails.

    Delivery problems never raise: the caller has already persisted the code.
    The plaintext code is only written to the log when OTP_DEV_LOG_FALLBACK
    is enabled.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        api_url: Optional[str] = None,
        sender: Optional[str] = None,
        dev_log_fallback: Optional[bool] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 10.0,
    ):
        self.api_key = (settings.RESEND_API_KEY if api_key is None else api_key).strip()
        self.api_url = api_url or settings.RESEND_API_URL
        self.sender = sender or settings.OTP_EMAIL_FROM
        self.dev_log_fallback = settings.OTP_DEV_LOG_FALLBACK if dev_log_fallback is None else dev_log_fallback
        self.transport = transport
        self.timeout = timeout

    def _fallback(self, to: str, code: str, reason: str) -> None:
        if self.dev_log_fallback:
            logger.warning("[OTP FALLBACK] Code for %s: %s (%s)", to, code, reason)
        else:
            logger.error("Passcode email to %s not delivered: %s", to, reason)

    async def send_passcode(self, to: str, code: str, *, client_name: str, masked_email: str) -> bool:
        """Return True when the provider accepted the message."""
        if not self.api_key:
            self._fallback(to, code, "no mail provider key configured")
            return False

        payload = {
            "from": self.sender,
            "to": [to],
            "subject": f"Your verification code for {client_name}'s proposal",
            "html": render_otp_email(code, client_name, masked_email),
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        try:
            async with httpx.AsyncClient(transport=self.transport, timeout=self.timeout) as client:
                response = await client.post(self.api_url, json=payload, headers=headers)
        except httpx.HTTPError as exc:
            logger.error("Passcode email request failed: %s", exc)
            self._fallback(to, code, "provider request failed")
            return False

        if response.status_code >= 400:
            logger.error("Resend API error: %s %s", response.status_code, response.text)
            self._fallback(to, code, f"provider returned {response.status_code}")
            return False

        logger.info("Passcode email accepted for %s", masked_email)
        return True


def get_mailer() -> OtpMailer:
    """FastAPI dependency; overridden in tests."""
    return OtpMailer()

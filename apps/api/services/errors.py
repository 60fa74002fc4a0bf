"""Domain errors for the proposal link access flow."""

from __future__ import annotations

from typing import Any, Dict, Optional


class AccessError(Exception):
    """Base error carrying the HTTP status and the visitor-facing message."""

    status_code = 400
    message = "Request could not be completed."

    def __init__(self, message: Optional[str] = None):
        self.message = message or type(self).message
        super().__init__(self.message)

    def to_payload(self) -> Dict[str, Any]:
        return {"error": self.message}


class LinkNotFound(AccessError):
    status_code = 404
    message = "Invalid link"


class LinkRevoked(AccessError):
    status_code = 403
    message = "Link has been revoked"


class LinkExpired(AccessError):
    status_code = 403
    message = "Link has expired"


class RateLimited(AccessError):
    status_code = 429
    message = "Too many code requests. Please try again later."


class TransientIO(AccessError):
    """Storage or network failure on a path that must not block the visitor."""

    status_code = 500
    message = "Failed to generate code"


class VerificationFailed(AccessError):
    """Recoverable passcode failure; reported as ``verified: false``."""

    status_code = 200

    def to_payload(self) -> Dict[str, Any]:
        return {"verified": False, "error": self.message}


class CodeExpired(VerificationFailed):
    message = "Code expired. Please request a new one."


class TooManyAttempts(VerificationFailed):
    message = "Too many failed attempts. Please request a new code."


class InvalidCode(VerificationFailed):
    message = "Invalid code. Please try again."

    def __init__(self, attempts_remaining: int, message: Optional[str] = None):
        super().__init__(message)
        self.attempts_remaining = max(int(attempts_remaining), 0)

    def to_payload(self) -> Dict[str, Any]:
        payload = super().to_payload()
        payload["attempts_remaining"] = self.attempts_remaining
        return payload

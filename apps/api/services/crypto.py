"""
Passcode and token generation helpers.

Codes are drawn from ``secrets`` and only their SHA-256 digest is persisted.
"""

import secrets
import uuid

from cryptography.hazmat.primitives import hashes


PASSCODE_DIGITS = 6
SHARE_TOKEN_LENGTH = 12
SHARE_TOKEN_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_"


def generate_passcode() -> str:
    """Return a uniformly distributed, zero-padded 6-digit code."""
    return str(secrets.randbelow(10 ** PASSCODE_DIGITS)).zfill(PASSCODE_DIGITS)


def hash_passcode(code: str) -> str:
    """
    One-way hash of a passcode string.

    Args:
        code: Plain 6-digit code as typed by the visitor

    Returns:
        Lowercase hex SHA-256 digest
    """
    digest = hashes.Hash(hashes.SHA256())
    digest.update(code.encode("utf-8"))
    return digest.finalize().hex()


def generate_session_token() -> str:
    """Random viewer session credential minted after a successful verify."""
    return str(uuid.uuid4())


def generate_share_token() -> str:
    """Unguessable URL-safe token identifying a share link."""
    return "".join(secrets.choice(SHARE_TOKEN_ALPHABET) for _ in range(SHARE_TOKEN_LENGTH))

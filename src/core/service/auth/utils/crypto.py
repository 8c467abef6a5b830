"""
Cryptographic helpers for opaque secrets handed to clients.
Secrets are generated with `secrets`; only their SHA-256 digests are persisted.
"""

import hashlib
import hmac
import re
import secrets

_SESSION_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{32,128}$")


def generate_session_id() -> str:
    """Unguessable admin session identifier (256 bits)"""
    return secrets.token_urlsafe(32)


def is_well_formed_session_id(value: str) -> bool:
    return bool(value) and bool(_SESSION_ID_PATTERN.match(value))


def generate_reset_token() -> str:
    """Password reset token sent to the user by mail"""
    return secrets.token_urlsafe(32)


def hash_token(token: str) -> str:
    """Digest stored in place of the raw token"""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def secrets_match(provided: str, expected: str) -> bool:
    """Constant-time comparison for shared secrets"""
    if not provided or not expected:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))

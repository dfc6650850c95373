"""
Session token verification.

Tokens are issued by the external auth service; this service only checks the
signature with the shared secret and reads the subject (user id).
"""

import uuid
from typing import Any

from jose import JWTError, jwt

from restopos.core.config import get_settings
from restopos.core.errors import NotAuthenticated


def decode_token(token: str) -> dict[str, Any]:
    settings = get_settings()
    return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])


def user_id_from_token(token: str) -> uuid.UUID:
    """Return the user id carried in the token's ``sub`` claim."""
    try:
        claims = decode_token(token)
    except JWTError as exc:
        raise NotAuthenticated(f"Invalid or expired session token: {exc}")

    subject = claims.get("sub")
    if not subject:
        raise NotAuthenticated("Session token has no subject")
    try:
        return uuid.UUID(str(subject))
    except ValueError:
        raise NotAuthenticated("Session token subject is not a user id")


def create_token(user_id: uuid.UUID, **extra_claims: Any) -> str:
    """Mint a token the way the auth service does (used by scripts and tests)."""
    settings = get_settings()
    claims = {"sub": str(user_id), **extra_claims}
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)

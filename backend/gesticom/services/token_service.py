# Overview: Signed access tokens (JWT HS256) issued at login and verified per request.

"""
Access Token Service

WHY: Sessions are stateless signed tokens. The token carries the user id and
role; every request still reloads the user so a disabled account or a role
change takes effect immediately.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt
from flask import current_app

JWT_ALGORITHM = "HS256"


class TokenError(Exception):
    """Raised when a token is missing, malformed, expired or tampered with."""
    pass


@dataclass
class TokenClaims:
    user_id: int
    role: str
    issued_at: datetime
    expires_at: datetime


def create_access_token(user_id: int, role: str, expires_hours: int | None = None) -> str:
    """
    Create a signed access token for a user.

    Args:
        user_id: User database ID
        role: owner or worker
        expires_hours: Token lifetime (default JWT_ACCESS_TOKEN_EXPIRES_HOURS)
    """
    hours = expires_hours or current_app.config.get("JWT_ACCESS_TOKEN_EXPIRES_HOURS", 24)
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "role": role,
        "iat": now,
        "exp": now + timedelta(hours=hours),
        "type": "access",
    }
    return jwt.encode(payload, current_app.config["SECRET_KEY"], algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> TokenClaims:
    """Verify signature and expiry. Raises TokenError."""
    try:
        payload = jwt.decode(token, current_app.config["SECRET_KEY"], algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise TokenError("Token expired")
    except jwt.InvalidTokenError:
        raise TokenError("Invalid token")

    if payload.get("type") != "access":
        raise TokenError("Invalid token type")

    try:
        user_id = int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        raise TokenError("Invalid token subject")

    return TokenClaims(
        user_id=user_id,
        role=payload.get("role", ""),
        issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
        expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
    )

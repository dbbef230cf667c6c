"""
Access tokens for API callers.

Tokens are HS256 JWTs naming only the user (``sub``). System role and
project memberships are read from the database on every request, so a
membership change applies without reissuing tokens.
"""

import os
from datetime import datetime, timedelta, timezone

import jwt

TOKEN_ALGORITHM = "HS256"
TOKEN_ISSUER = "orilla-budget"
TOKEN_TTL = timedelta(hours=8)
MIN_SECRET_LENGTH = 32


class TokenError(ValueError):
    """A bearer token that cannot identify a caller."""


def signing_secret() -> str:
    secret = os.getenv("JWT_SECRET")
    if not secret:
        raise ValueError("JWT_SECRET is required")
    if len(secret) < MIN_SECRET_LENGTH:
        raise ValueError(f"JWT_SECRET must be at least {MIN_SECRET_LENGTH} characters")
    return secret


def create_access_token(user_id: str, *, ttl: timedelta = TOKEN_TTL) -> str:
    issued_at = datetime.now(timezone.utc)
    claims = {
        "sub": str(user_id),
        "iss": TOKEN_ISSUER,
        "iat": issued_at,
        "exp": issued_at + ttl,
    }
    return jwt.encode(claims, signing_secret(), algorithm=TOKEN_ALGORITHM)


def verify_token(token: str) -> dict:
    secret = signing_secret()
    try:
        claims = jwt.decode(
            token,
            secret,
            algorithms=[TOKEN_ALGORITHM],
            issuer=TOKEN_ISSUER,
            options={"require": ["sub", "exp", "iss"]},
        )
    except jwt.ExpiredSignatureError as exc:
        raise TokenError("Token expired") from exc
    except jwt.InvalidTokenError as exc:
        raise TokenError("Invalid token") from exc

    if not str(claims["sub"]).strip():
        raise TokenError("Token has no subject")
    return claims

"""
Bearer-token dependencies.

``require_auth`` is for routes that need a caller. ``optional_auth`` lets a
request through anonymously only when no Authorization header is sent; a
header that is sent but unusable is a 401 either way.
"""

from typing import Optional

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from orilla.services.auth_service import TokenError, verify_token

_bearer = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=401, detail=detail, headers={"WWW-Authenticate": "Bearer"})


def _token_subject(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials],
) -> Optional[str]:
    if credentials is None:
        # HTTPBearer hands back None for a wrong scheme as well as a missing header
        if request.headers.get("Authorization"):
            raise _unauthorized("Authorization header must be 'Bearer <token>'")
        return None
    try:
        claims = verify_token(credentials.credentials)
    except TokenError as exc:
        raise _unauthorized(str(exc)) from exc
    return str(claims["sub"])


def require_auth(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
) -> str:
    user_id = _token_subject(request, credentials)
    if user_id is None:
        raise _unauthorized("Missing Authorization header")
    return user_id


def optional_auth(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
) -> Optional[str]:
    return _token_subject(request, credentials)

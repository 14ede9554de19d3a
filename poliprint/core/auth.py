# poliprint/core/auth.py
from typing import Any

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from pydantic import BaseModel

from poliprint.core.config import get_settings

# HTTP Bearer scheme:
# - auto_error=False => missing Authorization header will NOT raise immediately
#   so storefront (guest) endpoints can share the same dependency chain.
bearer_scheme = HTTPBearer(auto_error=False)


class AuthUser(BaseModel):
    """
    Identity resolved from a verified access token.

    The storefront has no customer accounts of its own; tokens are issued by
    the identity provider and only the back-office needs them.
    """

    id: str
    email: str | None = None
    role: str = "user"


def decode_access_token(token: str) -> dict[str, Any]:
    """
    Decode and verify an access token (JWT).

    Verification:
      - signature (JWT_ALG using JWT_SECRET)
      - expiration time (exp)
      - audience is NOT verified

    Raises:
        HTTPException(401): if token is invalid/expired.
    """
    settings = get_settings()
    try:
        return jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALG],
            options={"verify_aud": False},
        )
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )


def _role_from_claims(claims: dict[str, Any]) -> str:
    """
    Role lives either in a top-level 'role' claim or in
    'app_metadata.role' (Supabase-style tokens).
    """
    app_metadata = claims.get("app_metadata")
    if isinstance(app_metadata, dict) and app_metadata.get("role"):
        return str(app_metadata["role"])
    return str(claims.get("role") or "user")


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> AuthUser | None:
    """
    Resolve the current user from a bearer JWT.

    Returns:
        AuthUser if a token is present, else None for guests.

    Raises:
        HTTPException(401): if token is malformed or missing 'sub'.
    """
    if credentials is None:
        return None  # guest mode

    claims = decode_access_token(credentials.credentials)
    sub = claims.get("sub")
    if not sub:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token missing sub",
        )

    return AuthUser(id=str(sub), email=claims.get("email"), role=_role_from_claims(claims))


def require_auth(user: AuthUser | None = Depends(get_current_user)) -> AuthUser:
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    return user


def require_admin(user: AuthUser = Depends(require_auth)) -> AuthUser:
    """
    Enforce admin role for back-office endpoints (order admin, refunds).

    Raises:
        HTTPException(403): if role is not admin.
    """
    if user.role != "admin":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return user

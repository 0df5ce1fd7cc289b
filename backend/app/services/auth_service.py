"""
Authentication boundary.
Verifies bearer JWTs issued by the account service; the `sub` claim is
the user id that owns forms.
"""

import uuid

from fastapi import Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from shared_config import settings
from backend.app.errors import AppError

# Security scheme
bearer_scheme = HTTPBearer(auto_error=False)


def decode_access_token(token: str) -> dict:
    """Decode and validate a JWT access token. `sub` must be a user UUID."""
    try:
        payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        raise AppError.unauthorized("Invalid or expired token")
    if not payload.get("sub"):
        raise AppError.unauthorized("Token has no subject")
    try:
        uuid.UUID(str(payload["sub"]))
    except ValueError:
        raise AppError.unauthorized("Invalid token subject")
    return payload


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Security(bearer_scheme),
) -> dict:
    """Dependency: validate JWT and return the caller's identity."""
    if not credentials:
        raise AppError.unauthorized()

    payload = decode_access_token(credentials.credentials)
    return {
        "user_id": str(payload["sub"]),
        "email": payload.get("email"),
    }

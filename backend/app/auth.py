"""Authentication utilities for the Bidyard backend.

Tokens are issued by the auth provider. This service only verifies them and
turns the claims into an explicit ActorContext for the marketplace layer.
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from bidyard.marketplace import ActorContext

from .config import Settings, get_settings

# Cookie name for httpOnly auth
AUTH_COOKIE_NAME = "bidyard_auth"

# Make bearer optional to allow cookie fallback
security = HTTPBearer(auto_error=False)


def decode_token(token: str, settings: Settings) -> dict:
    """Decode and validate a JWT token."""
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            options={"verify_aud": False},
        )
        return payload
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )


def actor_from_claims(payload: dict) -> ActorContext:
    """Build the actor from token claims.

    ``sub`` is the user id. The marketplace role is read from ``role``, then
    ``user_metadata.role``, and defaults to customer.
    """
    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )
    role = payload.get("role")
    if role not in ("customer", "provider", "admin"):
        role = (payload.get("user_metadata") or {}).get("role") or "customer"
    try:
        return ActorContext(user_id=user_id, role=role)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Unknown role in token: {role}",
            headers={"WWW-Authenticate": "Bearer"},
        )


async def get_current_actor(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    settings: Annotated[Settings, Depends(get_settings)],
    request: Request,
) -> ActorContext:
    """Get the current actor from the bearer token or auth cookie."""
    token = None
    if credentials:
        token = credentials.credentials
    else:
        token = request.cookies.get(AUTH_COOKIE_NAME)

    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated - provide Authorization header or auth cookie",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = decode_token(token, settings)
    return actor_from_claims(payload)


# Type alias for dependency injection
CurrentActor = Annotated[ActorContext, Depends(get_current_actor)]

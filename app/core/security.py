"""Bearer tokens identifying the calling actor."""

from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID

from jose import JWTError, jwt
from pydantic import ValidationError

from app.config import settings
from app.schemas.appointments import ActorRole
from app.schemas.users import Actor

ACCESS_TOKEN_TYPE = "access"


def issue_actor_token(
    user_id: UUID,
    role: ActorRole,
    expires_delta: timedelta | None = None,
) -> str:
    """
    Sign an access token for a user acting in a role.

    Production tokens come from the authentication service; this is used by
    scripts and tests that need to act as a given user.

    Args:
        user_id: Becomes the ``sub`` claim
        role: Becomes the ``role`` claim
        expires_delta: Lifetime, defaulting to ``access_token_expire_minutes``

    Returns:
        Encoded JWT
    """
    issued_at = datetime.now(UTC)
    lifetime = expires_delta or timedelta(minutes=settings.access_token_expire_minutes)

    claims: dict[str, Any] = {
        "sub": str(user_id),
        "role": role.value,
        "type": ACCESS_TOKEN_TYPE,
        "iat": issued_at,
        "exp": issued_at + lifetime,
    }
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def read_actor_token(token: str) -> Actor | None:
    """
    Verify an access token and extract the actor it names.

    Returns:
        The actor, or None if the token is invalid, expired, not an access
        token, or lacks a usable ``sub``/``role`` pair
    """
    try:
        claims = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None

    if claims.get("type") != ACCESS_TOKEN_TYPE:
        return None

    try:
        return Actor(id=UUID(str(claims.get("sub"))), role=ActorRole(claims.get("role")))
    except (ValueError, ValidationError):
        return None

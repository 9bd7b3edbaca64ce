"""FastAPI dependencies."""

from typing import Annotated

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.container import ServiceContainer
from app.core.exceptions import ForbiddenException, UnauthorizedException
from app.core.security import read_actor_token
from app.schemas.users import Actor

# Security
security = HTTPBearer(auto_error=False)


def get_container(request: Request) -> ServiceContainer:
    """
    Get the service container built during application startup.

    Tests override this dependency with a container over in-memory stores.
    """
    return request.app.state.container


async def get_current_actor(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> Actor:
    """
    Identify the caller from the bearer token.

    The token is issued by the authentication service and must carry the user
    ID in ``sub`` and the user's role in ``role``.

    Raises:
        UnauthorizedException: If the token is missing, invalid or expired
    """
    if credentials is None:
        raise UnauthorizedException("Not authenticated")

    actor = read_actor_token(credentials.credentials)
    if actor is None:
        raise UnauthorizedException("Could not validate credentials")
    return actor


async def require_admin(
    actor: Annotated[Actor, Depends(get_current_actor)],
) -> Actor:
    """
    Require an administrator.

    Raises:
        ForbiddenException: If the caller is not an admin
    """
    if not actor.is_admin:
        raise ForbiddenException("Administrator access required")
    return actor


# Type aliases for dependency injection
Container = Annotated[ServiceContainer, Depends(get_container)]
CurrentActor = Annotated[Actor, Depends(get_current_actor)]
AdminActor = Annotated[Actor, Depends(require_admin)]

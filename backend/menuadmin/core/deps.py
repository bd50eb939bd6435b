"""FastAPI dependencies for auth, collections, and role checks."""

from collections.abc import Iterable
from typing import Annotated

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from menuadmin.core.exceptions import AccessDeniedError
from menuadmin.core.security import decode_access_token
from menuadmin.database import get_session_factory
from menuadmin.models.enums import UserRole
from menuadmin.models.user import User
from menuadmin.services.collection import CollectionFactory, SQLAlchemyCollection

security_scheme = HTTPBearer(auto_error=False)


def get_collections(
    session_factory: Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)],
) -> CollectionFactory:
    return CollectionFactory(session_factory)


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security_scheme)],
    collections: Annotated[CollectionFactory, Depends(get_collections)],
) -> dict:
    """Extract and validate the JWT, return the authenticated user row."""
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required.",
        )

    try:
        claims = decode_access_token(credentials.credentials)
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Session expired. Please log in again.",
        )
    except (jwt.PyJWTError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication token.",
        )

    users: SQLAlchemyCollection = collections.for_model(User)
    user = await users.find_first(
        where={"id": claims.user_id, "deleted_at": None, "active": True},
    )
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Account not found or deactivated.",
        )
    return user


def check_roles(user: dict, roles: Iterable[UserRole | str]) -> None:
    """Raise AccessDeniedError unless the user holds one of ``roles``.

    An empty role list admits any authenticated user.
    """
    allowed = {UserRole(r) for r in roles}
    if not allowed:
        return
    if UserRole(user["role"]) not in allowed:
        raise AccessDeniedError("You do not have permission to perform this action.")


def require_role(*allowed_roles: UserRole | str):
    """Dependency factory: restrict endpoint to specific roles."""
    async def role_checker(
        user: Annotated[dict, Depends(get_current_user)],
    ) -> dict:
        check_roles(user, allowed_roles)
        return user
    return role_checker

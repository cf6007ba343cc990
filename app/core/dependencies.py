"""FastAPI dependencies"""

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.container import ServiceContainer
from app.core.errors import AuthError
from app.models.database import get_db

# Database session dependency
DBSession = Annotated[AsyncSession, Depends(get_db)]


def get_container(request: Request) -> ServiceContainer:
    """Container attached to app.state by create_app"""
    return request.app.state.container


def get_current_user_id(request: Request) -> str:
    """
    User id placed on request.state by the auth middleware.

    Raises:
        AuthError: If the request is unauthenticated
    """
    user_id = getattr(request.state, "user_id", None)
    if not user_id:
        raise AuthError()
    return user_id


ContainerDep = Annotated[ServiceContainer, Depends(get_container)]
CurrentUserId = Annotated[str, Depends(get_current_user_id)]

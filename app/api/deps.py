"""
API dependencies for FastAPI dependency injection.
Resolves the current principal and enforces role-based access control.
"""

from typing import Annotated, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from app.core.config import settings
from app.core.logging import get_logger
from app.core.security import decode_access_token
from app.db.session import get_session
from app.models.user import User
from app.services.user_service import UserService

logger = get_logger(__name__)

# auto_error is off so that browser sessions can fall back to the cookie
oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.API_PREFIX}/auth/login", auto_error=False)


def get_session_token(
    request: Request,
    bearer_token: Annotated[Optional[str], Depends(oauth2_scheme)],
) -> Optional[str]:
    """
    Extract the session token from the request.
    The Authorization header wins over the session cookie.
    """
    if bearer_token:
        return bearer_token
    return request.cookies.get(settings.SESSION_COOKIE_NAME)


def resolve_current_user(session: Session, token: Optional[str]) -> Optional[User]:
    """
    Resolve the principal behind a session token.

    Args:
        session: Database session
        token: JWT access token, if the request carried one

    Returns:
        The authenticated user, or None when the request is unauthenticated
    """
    if not token:
        return None

    user_id = decode_access_token(token)
    if user_id is None:
        logger.warning("Rejected invalid or expired session token")
        return None

    user = UserService.get_by_id(session, user_id)
    if user is None:
        logger.warning(f"User {user_id} not found")
        return None
    if user.is_deleted:
        logger.warning(f"Deleted user {user_id} attempted access")
        return None

    return user


def get_optional_user(
    session: Annotated[Session, Depends(get_session)],
    token: Annotated[Optional[str], Depends(get_session_token)],
) -> Optional[User]:
    """Dependency returning the current user, or None when unauthenticated."""
    try:
        return resolve_current_user(session, token)
    except SQLAlchemyError as e:
        logger.error(f"Failed to resolve current user: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch user",
        )


def get_current_user(
    current_user: Annotated[Optional[User], Depends(get_optional_user)],
) -> User:
    """
    Dependency to get the current authenticated user.

    Raises:
        HTTPException: 401 if the request is unauthenticated
    """
    if current_user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return current_user


def get_current_admin_user(
    current_user: Annotated[User, Depends(get_current_user)],
) -> User:
    """
    Dependency to ensure current user is an admin.

    Args:
        current_user: Current authenticated user

    Returns:
        Admin user

    Raises:
        HTTPException: If user is not an admin
    """
    if not UserService.is_admin(current_user):
        logger.warning(f"Non-admin user {current_user.id} attempted admin access")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not enough permissions",
        )
    return current_user

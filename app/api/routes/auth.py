"""
Authentication routes for registration, login and identity resolution.
Provides JWT token-based authentication with a cookie for browser sessions.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Response, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlmodel import Session

from app.api.deps import get_current_user
from app.core.config import settings
from app.core.logging import get_logger
from app.core.security import create_access_token
from app.db.session import get_session
from app.models.user import User
from app.schemas.token import Token
from app.schemas.user import CurrentUser, OperationResult, UserCreate, UserResponse
from app.services.user_service import UserService

logger = get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def register(
    user_in: UserCreate,
    session: Annotated[Session, Depends(get_session)],
) -> UserResponse:
    """
    Register a new member account.

    Raises:
        HTTPException: If email already registered
    """
    existing_user = UserService.get_by_email(session, email=user_in.email)
    if existing_user:
        logger.warning(f"Registration attempt with existing email: {user_in.email}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered",
        )

    user = UserService.create(session, user_create=user_in)
    logger.info(f"New user registered: {user.email} (ID: {user.id})")

    return UserResponse.model_validate(user)


@router.post("/login", response_model=Token)
def login(
    response: Response,
    session: Annotated[Session, Depends(get_session)],
    form_data: Annotated[OAuth2PasswordRequestForm, Depends()],
) -> Token:
    """
    OAuth2 compatible token login.
    The token is also set as the session cookie used by the dashboard.

    Raises:
        HTTPException: If credentials are invalid
    """
    user = UserService.authenticate(
        session, email=form_data.username, password=form_data.password
    )
    if not user:
        logger.warning(f"Failed login attempt for email: {form_data.username}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
        )

    access_token = create_access_token(subject=user.id)
    response.set_cookie(
        settings.SESSION_COOKIE_NAME,
        access_token,
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        httponly=True,
        samesite="lax",
    )
    logger.info(f"User logged in: {user.email} (ID: {user.id})")

    return Token(access_token=access_token)


@router.post("/logout", response_model=OperationResult)
def logout(response: Response) -> OperationResult:
    """Clear the session cookie."""
    response.delete_cookie(settings.SESSION_COOKIE_NAME)
    return OperationResult()


@router.get("/me", response_model=CurrentUser)
def read_current_user(
    current_user: Annotated[User, Depends(get_current_user)],
) -> CurrentUser:
    """
    Identity of the current principal.
    Only the id and role are exposed; the dashboard needs nothing else.
    """
    return CurrentUser.model_validate(current_user)

"""
User directory routes: list active users and administer roles/departments.
Mutations are admin-only and enforced here, independent of what the
dashboard chooses to render.
"""

from typing import Annotated, List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from app.api.deps import get_current_admin_user
from app.core.logging import get_logger
from app.db.session import get_session
from app.models.user import User
from app.schemas.user import OperationResult, UserResponse, UserUpdate
from app.services.user_service import UserService

logger = get_logger(__name__)

router = APIRouter(prefix="/users", tags=["users"])


@router.get("", response_model=List[UserResponse])
def list_users(
    session: Annotated[Session, Depends(get_session)],
) -> List[UserResponse]:
    """
    List all active users, most recently created first.
    Readable without a session so the dashboard can render read-only.

    Args:
        session: Database session

    Returns:
        Users that have not been soft-deleted

    Raises:
        HTTPException: 500 if the directory cannot be read
    """
    try:
        users = UserService.list_active(session)
    except SQLAlchemyError as e:
        logger.error(f"Failed to list users: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch users",
        )

    return [UserResponse.model_validate(user) for user in users]


@router.patch("/{user_id}", response_model=OperationResult)
def update_user(
    user_id: int,
    user_update: UserUpdate,
    session: Annotated[Session, Depends(get_session)],
    current_user: Annotated[User, Depends(get_current_admin_user)],
) -> OperationResult:
    """
    Change a user's role and/or department.

    Args:
        user_id: ID of the user to update
        user_update: Fields to change; omitted fields are left as they are
        session: Database session
        current_user: Current authenticated admin user

    Raises:
        HTTPException: 404 if the user does not exist, 500 on storage errors
    """
    try:
        user = UserService.update(session, user_id, user_update)
    except SQLAlchemyError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update user",
        )

    if user is None:
        logger.warning(f"Admin {current_user.id} tried to update missing user {user_id}")
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    return OperationResult()


@router.delete("/{user_id}", response_model=OperationResult)
def delete_user(
    user_id: int,
    session: Annotated[Session, Depends(get_session)],
    current_user: Annotated[User, Depends(get_current_admin_user)],
) -> OperationResult:
    """
    Soft-delete a user. The account disappears from listings and can no
    longer log in. Admins cannot delete themselves.
    """
    if user_id == current_user.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot delete your own account",
        )

    try:
        user = UserService.soft_delete(session, user_id)
    except SQLAlchemyError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete user",
        )

    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    return OperationResult()

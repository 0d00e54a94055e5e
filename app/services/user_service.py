"""
User service layer implementing the user directory operations.
Separates business logic from API routes and database operations.
"""

from datetime import datetime, timedelta, timezone
from typing import List, Optional

from sqlmodel import Session, col, select

from app.core.logging import get_logger
from app.core.security import get_password_hash, verify_password
from app.models.user import DEFAULT_DEPARTMENT, User, UserRole, utc_now
from app.schemas.user import UserCreate, UserUpdate

logger = get_logger(__name__)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands datetimes back without tzinfo
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def next_timestamp(previous: Optional[datetime]) -> datetime:
    """
    Timestamp for a mutation that is strictly later than ``previous``.

    Two mutations landing in the same clock tick would otherwise record the
    same ``updated_at``.
    """
    now = utc_now()
    if previous is None:
        return now
    floor = _as_utc(previous) + timedelta(microseconds=1)
    return max(now, floor)


class UserService:
    """Service class for user-related operations."""

    @staticmethod
    def get_by_email(session: Session, email: str) -> Optional[User]:
        """
        Retrieve a user by email address.

        Args:
            session: Database session
            email: Email address to search for

        Returns:
            User if found, None otherwise
        """
        statement = select(User).where(User.email == email)
        return session.exec(statement).first()

    @staticmethod
    def get_by_id(session: Session, user_id: int) -> Optional[User]:
        """
        Retrieve a user by ID, soft-deleted or not.

        Args:
            session: Database session
            user_id: User ID to search for

        Returns:
            User if found, None otherwise
        """
        return session.get(User, user_id)

    @staticmethod
    def get_active_by_id(session: Session, user_id: int) -> Optional[User]:
        """Retrieve a user by ID, treating soft-deleted users as missing."""
        user = session.get(User, user_id)
        if user is None or user.is_deleted:
            return None
        return user

    @staticmethod
    def list_active(session: Session) -> List[User]:
        """
        List every user that has not been soft-deleted, newest first.

        Args:
            session: Database session

        Returns:
            Users ordered by creation time, descending
        """
        statement = (
            select(User)
            .where(col(User.deleted_at).is_(None))
            .order_by(col(User.created_at).desc(), col(User.id).desc())
        )
        return list(session.exec(statement).all())

    @staticmethod
    def create(
        session: Session,
        user_create: UserCreate,
        role: UserRole = UserRole.MEMBER,
    ) -> User:
        """
        Create a new user with hashed password.

        Args:
            session: Database session
            user_create: User creation data
            role: User role (defaults to MEMBER)

        Returns:
            Created user instance
        """
        db_user = User(
            email=user_create.email,
            hashed_password=get_password_hash(user_create.password),
            name=user_create.name,
            role=role,
            department=DEFAULT_DEPARTMENT,
        )
        session.add(db_user)
        session.commit()
        session.refresh(db_user)
        return db_user

    @staticmethod
    def update(session: Session, user_id: int, user_update: UserUpdate) -> Optional[User]:
        """
        Merge the provided fields into an existing user.

        Fields left unset in ``user_update`` keep their stored values, and
        ``updated_at`` always advances, even when nothing else changes.
        Concurrent updates of the same user resolve as last writer wins.

        Args:
            session: Database session
            user_id: ID of the user to update
            user_update: Fields to change

        Returns:
            The updated user, or None if no active user has that ID
        """
        user = UserService.get_active_by_id(session, user_id)
        if user is None:
            return None

        changes = user_update.model_dump(exclude_unset=True, exclude_none=True)
        try:
            for field, value in changes.items():
                setattr(user, field, value)
            user.updated_at = next_timestamp(user.updated_at)
            session.add(user)
            session.commit()
        except Exception as e:
            logger.error(f"Failed to update user {user_id}: {e}")
            session.rollback()
            raise

        session.refresh(user)
        logger.info(f"Updated user {user_id}: {sorted(changes)}")
        return user

    @staticmethod
    def soft_delete(session: Session, user_id: int) -> Optional[User]:
        """
        Mark a user as deleted without removing the row.

        Returns:
            The deleted user, or None if no active user has that ID
        """
        user = UserService.get_active_by_id(session, user_id)
        if user is None:
            return None

        try:
            user.updated_at = next_timestamp(user.updated_at)
            user.deleted_at = user.updated_at
            session.add(user)
            session.commit()
        except Exception as e:
            logger.error(f"Failed to delete user {user_id}: {e}")
            session.rollback()
            raise

        session.refresh(user)
        logger.info(f"Soft-deleted user {user_id}")
        return user

    @staticmethod
    def authenticate(session: Session, email: str, password: str) -> Optional[User]:
        """
        Authenticate a user by email and password.

        Args:
            session: Database session
            email: User's email
            password: Plain text password

        Returns:
            User if authentication successful, None otherwise
        """
        user = UserService.get_by_email(session, email)
        if not user:
            return None
        if not verify_password(password, user.hashed_password):
            return None
        if user.is_deleted:
            return None
        return user

    @staticmethod
    def is_admin(user: User) -> bool:
        """
        Check if a user has admin privileges.

        Args:
            user: User to check

        Returns:
            True if user is admin, False otherwise
        """
        return user.role == UserRole.ADMIN

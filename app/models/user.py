"""
User model with role and department assignment.
Soft deletion is tracked with a nullable ``deleted_at`` timestamp.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlmodel import Field, SQLModel


class UserRole(str, Enum):
    """User role enumeration for RBAC."""

    ADMIN = "admin"
    MEMBER = "member"
    OWNER = "owner"


class Department(str, Enum):
    """Department a user account belongs to."""

    ENGINEERING = "Engineering"
    MARKETING = "Marketing"
    SALES = "Sales"
    OPERATIONS = "Operations"


DEFAULT_DEPARTMENT = Department.ENGINEERING


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class User(SQLModel, table=True):
    """
    User account record.

    Attributes:
        id: Primary key
        name: Optional display name
        email: Unique email address (used for login)
        hashed_password: Password hash
        role: User role (admin, member or owner)
        department: Department, Engineering unless assigned otherwise
        created_at: Timestamp of account creation
        updated_at: Timestamp of last mutation
        deleted_at: Set when the account is soft-deleted
    """

    __tablename__ = "users"  # type: ignore

    id: Optional[int] = Field(default=None, primary_key=True)
    name: Optional[str] = Field(default=None, max_length=255)
    email: str = Field(unique=True, index=True, max_length=255)
    hashed_password: str
    role: UserRole = Field(default=UserRole.MEMBER)
    department: Optional[Department] = Field(default=DEFAULT_DEPARTMENT)
    created_at: datetime = Field(default_factory=utc_now, index=True)
    updated_at: datetime = Field(default_factory=utc_now)
    deleted_at: Optional[datetime] = Field(default=None, index=True)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

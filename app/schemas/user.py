"""
User schemas for API request/response validation.
Separates internal models from API contracts using Pydantic.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr

from app.models.user import Department, UserRole


class UserBase(BaseModel):
    """Base user schema with common fields."""

    email: EmailStr
    name: Optional[str] = None


class UserCreate(UserBase):
    """Schema for user registration."""

    password: str


class UserUpdate(BaseModel):
    """
    Partial update of a user's mutable fields.
    Keys other than role and department are ignored.
    """

    role: Optional[UserRole] = None
    department: Optional[Department] = None


class UserResponse(UserBase):
    """
    Schema for user data in API responses.
    Excludes sensitive information like hashed_password.
    """

    id: int
    role: UserRole
    department: Optional[Department] = None
    created_at: datetime
    updated_at: datetime
    deleted_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class CurrentUser(BaseModel):
    """Identity projection of the current principal."""

    id: int
    role: UserRole

    model_config = {"from_attributes": True}


class OperationResult(BaseModel):
    """Acknowledgement returned by mutation endpoints."""

    success: bool = True

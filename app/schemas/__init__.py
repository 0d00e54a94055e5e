"""Pydantic schemas for request/response validation."""

from app.schemas.token import Token
from app.schemas.user import CurrentUser, OperationResult, UserCreate, UserResponse, UserUpdate

__all__ = [
    "CurrentUser",
    "OperationResult",
    "Token",
    "UserCreate",
    "UserResponse",
    "UserUpdate",
]

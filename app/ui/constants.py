"""Shared UI constants."""

from __future__ import annotations

from app.models.user import Department, UserRole

ROLE_OPTIONS = [role.value for role in UserRole]

DEPARTMENT_OPTIONS = [department.value for department in Department]

MISSING_NAME = "N/A"

VIEW_COOKIE_NAME = "users_view_id"

# Toast copy, keyed by (field, outcome)
FIELD_MESSAGES = {
    ("role", "success"): "User role updated successfully",
    ("role", "error"): "Failed to update user role",
    ("department", "success"): "User department updated successfully",
    ("department", "error"): "Failed to update user department",
}

FETCH_USERS_ERROR = "Failed to fetch users"
FETCH_CURRENT_USER_ERROR = "Failed to fetch current user"

"""
View models for the user administration dashboard.
These models represent the data structures used in the UI layer.
"""

from datetime import datetime
from enum import Enum
from typing import List, NamedTuple, Optional

from pydantic import BaseModel, computed_field

from app.models.user import DEFAULT_DEPARTMENT, Department, UserRole
from app.ui.constants import DEPARTMENT_OPTIONS, MISSING_NAME, ROLE_OPTIONS


class EditableField(str, Enum):
    """Fields an admin can change from the dashboard."""

    ROLE = "role"
    DEPARTMENT = "department"

    @property
    def options(self) -> List[str]:
        return ROLE_OPTIONS if self is EditableField.ROLE else DEPARTMENT_OPTIONS

    def parse(self, raw: str):
        """Coerce a submitted value into the field's enum. Raises ValueError."""
        if self is EditableField.ROLE:
            return UserRole(raw)
        return Department(raw)


class PendingKey(NamedTuple):
    """Identifies one in-flight field write."""

    user_id: int
    field: EditableField


class NotificationVariant(str, Enum):
    DEFAULT = "default"
    DESTRUCTIVE = "destructive"


class Notification(BaseModel):
    """A toast shown to the dashboard user."""

    title: str
    description: str
    variant: NotificationVariant = NotificationVariant.DEFAULT

    @classmethod
    def success(cls, description: str) -> "Notification":
        return cls(title="Success", description=description)

    @classmethod
    def error(cls, description: str) -> "Notification":
        return cls(title="Error", description=description, variant=NotificationVariant.DESTRUCTIVE)


class CurrentUserView(BaseModel):
    """The principal as seen by the dashboard."""

    id: int
    role: UserRole

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


class UserRow(BaseModel):
    """Local copy of one user record, as returned by the directory API."""

    id: int
    name: Optional[str] = None
    email: str
    role: UserRole
    department: Optional[Department] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @computed_field
    @property
    def display_name(self) -> str:
        return self.name or MISSING_NAME

    @computed_field
    @property
    def effective_department(self) -> Department:
        return self.department or DEFAULT_DEPARTMENT

    def value_of(self, field: EditableField) -> str:
        if field is EditableField.ROLE:
            return self.role.value
        return self.effective_department.value


class CellView(BaseModel):
    """Rendering instructions for a single role/department cell."""

    field: EditableField
    value: str
    editable: bool = False
    pending: bool = False
    options: List[str] = []


class RowView(BaseModel):
    """Rendering instructions for one table row."""

    user_id: int
    name: str
    email: str
    role: CellView
    department: CellView

    @property
    def editable_cells(self) -> List[CellView]:
        return [cell for cell in (self.role, self.department) if cell.editable]

"""
Server-side state for open user administration views.

Each dashboard page load creates a UsersTableState that holds the local
copy of the directory, the current principal, per-field pending flags and
queued notifications. Views live in memory, keyed by a view id cookie.
"""

import asyncio
from enum import Enum
from typing import Dict, List, Optional, Union

from app.core.logging import get_logger
from app.models.user import Department, UserRole
from app.ui.client import (
    DirectoryClient,
    DirectoryClientError,
    DirectoryUnavailable,
    Unauthenticated,
)
from app.ui.constants import FETCH_CURRENT_USER_ERROR, FETCH_USERS_ERROR, FIELD_MESSAGES
from app.ui.viewmodels import (
    CellView,
    CurrentUserView,
    EditableField,
    Notification,
    PendingKey,
    RowView,
    UserRow,
)

logger = get_logger(__name__)


class ViewPhase(str, Enum):
    LOADING = "loading"
    READY = "ready"


class UsersTableState:
    """
    State machine behind the users table.

    LOADING until the directory fetch settles, READY afterwards. Field
    writes are tracked per (user_id, field) so unrelated controls stay
    interactive while one is in flight.
    """

    def __init__(self) -> None:
        self.phase = ViewPhase.LOADING
        self.users: List[UserRow] = []
        self.current_user: Optional[CurrentUserView] = None
        self.pending: Dict[PendingKey, bool] = {}
        self.notifications: List[Notification] = []

    @property
    def is_admin(self) -> bool:
        return self.current_user is not None and self.current_user.is_admin

    def is_pending(self, user_id: int, field: EditableField) -> bool:
        return self.pending.get(PendingKey(user_id, field), False)

    def get_user(self, user_id: int) -> Optional[UserRow]:
        for user in self.users:
            if user.id == user_id:
                return user
        return None

    def notify(self, notification: Notification) -> None:
        self.notifications.append(notification)

    def drain_notifications(self) -> List[Notification]:
        """Return queued notifications and clear the queue."""
        drained, self.notifications = self.notifications, []
        return drained

    # ========== Loading ==========

    async def load(self, client: DirectoryClient) -> None:
        """
        Fetch the directory and the current principal concurrently.
        A failure in one fetch does not affect the other.
        """
        await asyncio.gather(self._load_users(client), self._load_current_user(client))

    async def _load_users(self, client: DirectoryClient) -> None:
        try:
            self.users = await client.fetch_users()
            logger.debug(f"Loaded {len(self.users)} users")
        except DirectoryUnavailable as e:
            logger.warning(f"User listing unavailable: {e}")
            self.notify(Notification.error(FETCH_USERS_ERROR))
        finally:
            self.phase = ViewPhase.READY

    async def _load_current_user(self, client: DirectoryClient) -> None:
        try:
            self.current_user = await client.fetch_current_user()
        except Unauthenticated:
            logger.info("Dashboard opened without a session; rendering read-only")
            self.notify(Notification.error(FETCH_CURRENT_USER_ERROR))
        except DirectoryClientError as e:
            logger.warning(f"Current user unavailable: {e}")
            self.notify(Notification.error(FETCH_CURRENT_USER_ERROR))

    # ========== Editing ==========

    async def change_field(
        self,
        client: DirectoryClient,
        user_id: int,
        field: EditableField,
        value: Union[UserRole, Department],
    ) -> bool:
        """
        Persist one field change, then reconcile the local copy.

        No-op unless the principal is an admin, and while the same
        (user_id, field) write is still in flight. The local record is only
        touched after the API confirms the write.

        Returns:
            True if the change was confirmed
        """
        if not self.is_admin:
            logger.debug(f"Ignoring {field.value} change for user {user_id}: not an admin")
            return False

        key = PendingKey(user_id, field)
        if self.pending.get(key):
            logger.debug(f"Ignoring {field.value} change for user {user_id}: write in flight")
            return False

        self.pending[key] = True
        try:
            await client.update_user(user_id, {field.value: value.value})
        except DirectoryClientError as e:
            logger.warning(f"Failed to update {field.value} for user {user_id}: {e}")
            self.notify(Notification.error(FIELD_MESSAGES[(field.value, "error")]))
            return False
        finally:
            self.pending[key] = False

        self._apply(user_id, field, value)
        self.notify(Notification.success(FIELD_MESSAGES[(field.value, "success")]))
        return True

    async def change_role(self, client: DirectoryClient, user_id: int, role: UserRole) -> bool:
        return await self.change_field(client, user_id, EditableField.ROLE, role)

    async def change_department(
        self, client: DirectoryClient, user_id: int, department: Department
    ) -> bool:
        return await self.change_field(client, user_id, EditableField.DEPARTMENT, department)

    def _apply(self, user_id: int, field: EditableField, value: Union[UserRole, Department]) -> None:
        for index, user in enumerate(self.users):
            if user.id == user_id:
                self.users[index] = user.model_copy(update={field.value: value})
                return

    # ========== Rendering ==========

    def _cell(self, user: UserRow, field: EditableField) -> CellView:
        if not self.is_admin:
            return CellView(field=field, value=user.value_of(field))
        return CellView(
            field=field,
            value=user.value_of(field),
            editable=True,
            pending=self.is_pending(user.id, field),
            options=field.options,
        )

    def row(self, user: UserRow) -> RowView:
        return RowView(
            user_id=user.id,
            name=user.display_name,
            email=user.email,
            role=self._cell(user, EditableField.ROLE),
            department=self._cell(user, EditableField.DEPARTMENT),
        )

    def rows(self) -> List[RowView]:
        return [self.row(user) for user in self.users]


# In-memory storage for open views, oldest first
_views: Dict[str, UsersTableState] = {}

MAX_OPEN_VIEWS = 500


def set_view(view_id: str, state: UsersTableState) -> None:
    """Store a view state."""
    _views.pop(view_id, None)
    _views[view_id] = state
    while len(_views) > MAX_OPEN_VIEWS:
        _views.pop(next(iter(_views)))
    logger.info(f"Stored users view {view_id} with {len(state.users)} users")


def get_view(view_id: Optional[str]) -> Optional[UsersTableState]:
    """Retrieve a view state, or None if the id is unknown."""
    if view_id is None:
        return None
    return _views.get(view_id)


def clear_view(view_id: Optional[str] = None) -> bool:
    """
    Clear a specific view or all if no ID provided.
    Returns True if something was cleared.
    """
    if view_id is not None:
        if view_id in _views:
            del _views[view_id]
            logger.info(f"Cleared users view {view_id}")
            return True
        return False

    had_data = len(_views) > 0
    _views.clear()
    return had_data

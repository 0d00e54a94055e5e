"""
Tests for the users table view state machine.
The JSON API is replaced by FakeDirectoryApi over httpx.MockTransport.
"""

import asyncio

import httpx
import pytest

from app.models.user import Department, UserRole
from app.ui.client import DirectoryClient, DirectoryUnavailable, Unauthorized, UpdateFailed
from app.ui.state import UsersTableState, ViewPhase
from app.ui.viewmodels import EditableField, NotificationVariant

pytestmark = pytest.mark.anyio


async def _loaded(directory_api) -> tuple[UsersTableState, DirectoryClient]:
    client = directory_api.client()
    state = UsersTableState()
    await state.load(client)
    return state, client


async def test_initial_state_is_loading() -> None:
    state = UsersTableState()
    assert state.phase == ViewPhase.LOADING
    assert state.rows() == []


async def test_load_populates_users_and_principal(directory_api) -> None:
    state, _ = await _loaded(directory_api)

    assert state.phase == ViewPhase.READY
    assert [u.id for u in state.users] == [2, 1]
    assert state.current_user.id == 1
    assert state.is_admin
    assert state.notifications == []


async def test_admin_rows_expose_two_editable_cells(directory_api) -> None:
    state, _ = await _loaded(directory_api)

    for row in state.rows():
        assert [cell.field for cell in row.editable_cells] == [
            EditableField.ROLE,
            EditableField.DEPARTMENT,
        ]
        assert row.role.options == ["admin", "member", "owner"]
        assert row.department.options == ["Engineering", "Marketing", "Sales", "Operations"]


@pytest.mark.parametrize("role", ["member", "owner"])
async def test_non_admin_rows_are_read_only(directory_api, role: str) -> None:
    directory_api.principal = {"id": 2, "role": role}
    state, client = await _loaded(directory_api)

    assert not state.is_admin
    for row in state.rows():
        assert row.editable_cells == []
        assert row.role.options == []

    assert await state.change_role(client, 1, UserRole.OWNER) is False
    assert directory_api.patches == []


async def test_missing_name_and_department_render_defaults(directory_api) -> None:
    state, _ = await _loaded(directory_api)

    row = state.row(state.get_user(1))
    assert row.name == "N/A"
    assert row.department.value == "Engineering"


async def test_directory_failure_shows_error_and_leaves_table_empty(directory_api) -> None:
    directory_api.users_status = 500
    state, _ = await _loaded(directory_api)

    assert state.phase == ViewPhase.READY
    assert state.users == []
    assert state.is_admin
    [notification] = state.drain_notifications()
    assert notification.description == "Failed to fetch users"
    assert notification.variant == NotificationVariant.DESTRUCTIVE


async def test_unauthenticated_principal_still_renders_listing(directory_api) -> None:
    directory_api.principal = None
    state, _ = await _loaded(directory_api)

    assert state.current_user is None
    assert len(state.users) == 2
    assert all(row.editable_cells == [] for row in state.rows())
    assert [n.description for n in state.notifications] == ["Failed to fetch current user"]


async def test_identity_server_error_does_not_block_listing(directory_api) -> None:
    directory_api.me_status = 500
    state, _ = await _loaded(directory_api)

    assert state.current_user is None
    assert len(state.users) == 2


async def test_change_role_updates_one_record_after_confirmation(directory_api) -> None:
    state, client = await _loaded(directory_api)

    assert await state.change_role(client, 2, UserRole.OWNER) is True

    assert directory_api.patches == [(2, {"role": "owner"})]
    assert state.get_user(2).role == UserRole.OWNER
    assert state.get_user(1).role == UserRole.ADMIN
    assert not state.is_pending(2, EditableField.ROLE)
    [notification] = state.drain_notifications()
    assert notification.description == "User role updated successfully"
    assert notification.variant == NotificationVariant.DEFAULT


async def test_change_department_updates_local_copy(directory_api) -> None:
    state, client = await _loaded(directory_api)

    assert await state.change_department(client, 1, Department.OPERATIONS) is True

    assert directory_api.patches == [(1, {"department": "Operations"})]
    assert state.get_user(1).department == Department.OPERATIONS
    assert state.drain_notifications()[0].description == "User department updated successfully"


async def test_failed_update_leaves_local_copy_untouched(directory_api) -> None:
    state, client = await _loaded(directory_api)
    directory_api.patch_status = 500

    assert await state.change_department(client, 2, Department.MARKETING) is False

    assert state.get_user(2).department == Department.SALES
    assert state.phase == ViewPhase.READY
    assert not state.is_pending(2, EditableField.DEPARTMENT)
    [notification] = state.drain_notifications()
    assert notification.description == "Failed to update user department"
    assert notification.variant == NotificationVariant.DESTRUCTIVE


async def test_forbidden_update_is_reported_as_failure(directory_api) -> None:
    state, client = await _loaded(directory_api)
    directory_api.patch_status = 403

    assert await state.change_role(client, 2, UserRole.ADMIN) is False
    assert state.get_user(2).role == UserRole.MEMBER
    assert state.drain_notifications()[0].description == "Failed to update user role"


async def test_pending_is_tracked_per_user_and_field(directory_api) -> None:
    state, client = await _loaded(directory_api)
    directory_api.patch_gate = asyncio.Event()

    task = asyncio.create_task(state.change_role(client, 2, UserRole.OWNER))
    await directory_api.patch_started.wait()

    assert state.is_pending(2, EditableField.ROLE)
    assert not state.is_pending(2, EditableField.DEPARTMENT)
    assert not state.is_pending(1, EditableField.ROLE)
    row = state.row(state.get_user(2))
    assert row.role.pending and not row.department.pending
    # No optimistic update while the write is in flight
    assert state.get_user(2).role == UserRole.MEMBER

    # Same pair is locked out, other pairs are not
    assert await state.change_role(client, 2, UserRole.ADMIN) is False

    directory_api.patch_gate.set()
    assert await task is True
    assert await state.change_department(client, 2, Department.OPERATIONS) is True

    assert not state.is_pending(2, EditableField.ROLE)
    assert state.get_user(2).role == UserRole.OWNER
    assert directory_api.patches == [(2, {"role": "owner"}), (2, {"department": "Operations"})]


async def test_edits_to_different_fields_are_in_flight_together(directory_api) -> None:
    state, client = await _loaded(directory_api)
    directory_api.patch_gate = asyncio.Event()

    role_task = asyncio.create_task(state.change_role(client, 2, UserRole.OWNER))
    department_task = asyncio.create_task(
        state.change_department(client, 2, Department.OPERATIONS)
    )
    await directory_api.patch_started.wait()

    assert state.is_pending(2, EditableField.ROLE)
    assert state.is_pending(2, EditableField.DEPARTMENT)
    assert directory_api.patches == []

    directory_api.patch_gate.set()
    assert await asyncio.gather(role_task, department_task) == [True, True]

    user = state.get_user(2)
    assert user.role == UserRole.OWNER
    assert user.department == Department.OPERATIONS
    assert not state.is_pending(2, EditableField.ROLE)
    assert not state.is_pending(2, EditableField.DEPARTMENT)
    assert sorted(directory_api.patches, key=str) == [
        (2, {"department": "Operations"}),
        (2, {"role": "owner"}),
    ]


async def test_invalid_url_on_update_becomes_error_notification(directory_api) -> None:
    state, _ = await _loaded(directory_api)
    state.drain_notifications()

    def reject(request: httpx.Request) -> httpx.Response:
        raise httpx.InvalidURL("Invalid URL")

    async with httpx.AsyncClient(
        transport=httpx.MockTransport(reject), base_url="http://testserver"
    ) as http:
        client = DirectoryClient(http, api_prefix="/api")

        with pytest.raises(UpdateFailed):
            await client.update_user(2, {"role": "owner"})
        assert await state.change_role(client, 2, UserRole.OWNER) is False

    assert state.get_user(2).role == UserRole.MEMBER
    assert not state.is_pending(2, EditableField.ROLE)
    [notification] = state.drain_notifications()
    assert notification.variant == NotificationVariant.DESTRUCTIVE
    assert notification.description == "Failed to update user role"


async def test_transport_error_maps_to_update_failed() -> None:
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with httpx.AsyncClient(
        transport=httpx.MockTransport(refuse), base_url="http://testserver"
    ) as http:
        client = DirectoryClient(http, api_prefix="/api")

        with pytest.raises(UpdateFailed):
            await client.update_user(1, {"role": "owner"})
        with pytest.raises(DirectoryUnavailable):
            await client.fetch_users()


async def test_client_maps_forbidden_to_unauthorized(directory_api) -> None:
    directory_api.patch_status = 403
    client = directory_api.client()

    with pytest.raises(Unauthorized):
        await client.update_user(2, {"role": "owner"})

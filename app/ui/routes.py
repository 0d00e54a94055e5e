"""
UI routes for the user administration dashboard.
Handles page rendering and HTMX partial updates.
"""

import json
import uuid
from pathlib import Path
from typing import List, Optional

from fastapi import APIRouter, Cookie, Depends, Form, HTTPException, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates

from app.core.logging import get_logger
from app.ui.client import DirectoryClient, get_directory_client
from app.ui.constants import VIEW_COOKIE_NAME
from app.ui.state import UsersTableState, get_view, set_view
from app.ui.viewmodels import EditableField, Notification

logger = get_logger(__name__)

router = APIRouter()

templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent.parent / "templates"))


# ========== Helper Functions ==========

def get_template_context(request: Request, state: UsersTableState, **kwargs):
    """Get base template context with common data."""
    return {
        "request": request,
        "is_admin": state.is_admin,
        **kwargs
    }


def toast_trigger(notifications: List[Notification]) -> Optional[str]:
    """Encode queued notifications as an HX-Trigger header value."""
    if not notifications:
        return None
    return json.dumps({"show-toast": [n.model_dump(mode="json") for n in notifications]})


# ========== Page Routes ==========

@router.get("/dashboard/users", response_class=HTMLResponse)
async def users_page(
    request: Request,
    client: DirectoryClient = Depends(get_directory_client),
):
    """Load a fresh view of the directory and render the users table."""
    state = UsersTableState()
    await state.load(client)

    view_id = str(uuid.uuid4())
    set_view(view_id, state)

    context = get_template_context(
        request,
        state,
        rows=state.rows(),
        notifications=state.drain_notifications(),
    )
    response = templates.TemplateResponse(request, "users.html", context)
    response.set_cookie(VIEW_COOKIE_NAME, view_id, httponly=True, samesite="lax")
    return response


# ========== HTMX Partial Update Routes ==========

@router.post("/dashboard/users/{user_id}/{field}", response_class=HTMLResponse)
async def update_user_field(
    request: Request,
    user_id: int,
    field: EditableField,
    value: str = Form(...),
    view_id: Optional[str] = Cookie(default=None, alias=VIEW_COOKIE_NAME),
    client: DirectoryClient = Depends(get_directory_client),
):
    """Apply one role/department change and return the updated row."""
    state = get_view(view_id)
    if state is None:
        logger.warning(f"Field update for unknown users view {view_id}")
        raise HTTPException(status_code=404, detail="No active users view")

    if state.get_user(user_id) is None:
        raise HTTPException(status_code=404, detail="User not in view")

    try:
        parsed = field.parse(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid {field.value}")

    await state.change_field(client, user_id, field, parsed)

    user = state.get_user(user_id)

    context = get_template_context(request, state, row=state.row(user))
    row_html = templates.get_template("partials/user_row.html").render(context)

    response = HTMLResponse(row_html)
    trigger = toast_trigger(state.drain_notifications())
    if trigger:
        response.headers["HX-Trigger"] = trigger
    return response

"""
HTTP client the dashboard uses to talk to the JSON API.

Non-success responses and transport errors are translated into the small
exception hierarchy below so the view can react without knowing about HTTP.
"""

from typing import Any, Dict, List, Optional

import httpx
from fastapi import Request
from pydantic import ValidationError

from app.core.config import settings
from app.core.logging import get_logger
from app.ui.viewmodels import CurrentUserView, UserRow

logger = get_logger(__name__)

# InvalidURL is not an HTTPError but is raised from the same calls
TRANSPORT_ERRORS = (httpx.HTTPError, httpx.InvalidURL)


class DirectoryClientError(Exception):
    """Base error for failed dashboard API calls."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class Unauthenticated(DirectoryClientError):
    """The request carried no valid session."""


class IdentityUnavailable(DirectoryClientError):
    """The current principal could not be resolved for another reason."""


class DirectoryUnavailable(DirectoryClientError):
    """The user listing could not be fetched."""


class UpdateFailed(DirectoryClientError):
    """A user patch was not applied."""


class Unauthorized(UpdateFailed):
    """The principal is not allowed to patch users."""


class DirectoryClient:
    """Thin async wrapper over the auth and users endpoints."""

    def __init__(self, http: httpx.AsyncClient, api_prefix: str = settings.API_PREFIX):
        self.http = http
        self.api_prefix = api_prefix.rstrip("/")

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        return await self.http.request(method, f"{self.api_prefix}{path}", **kwargs)

    async def fetch_current_user(self) -> CurrentUserView:
        try:
            response = await self._request("GET", "/auth/me")
        except TRANSPORT_ERRORS as e:
            raise IdentityUnavailable(f"Identity request failed: {e}") from e

        if response.status_code == 401:
            raise Unauthenticated("Not authenticated", status_code=401)
        if not response.is_success:
            raise IdentityUnavailable("Failed to fetch current user", status_code=response.status_code)

        try:
            return CurrentUserView.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise IdentityUnavailable(f"Malformed identity payload: {e}") from e

    async def fetch_users(self) -> List[UserRow]:
        try:
            response = await self._request("GET", "/users")
        except TRANSPORT_ERRORS as e:
            raise DirectoryUnavailable(f"User listing request failed: {e}") from e

        if not response.is_success:
            raise DirectoryUnavailable("Failed to fetch users", status_code=response.status_code)

        try:
            return [UserRow.model_validate(item) for item in response.json()]
        except (ValueError, TypeError, ValidationError) as e:
            raise DirectoryUnavailable(f"Malformed user listing: {e}") from e

    async def update_user(self, user_id: int, fields: Dict[str, str]) -> None:
        try:
            response = await self._request("PATCH", f"/users/{user_id}", json=fields)
        except TRANSPORT_ERRORS as e:
            raise UpdateFailed(f"Update request failed: {e}") from e

        if response.status_code == 403:
            raise Unauthorized("Not enough permissions", status_code=403)
        if not response.is_success:
            raise UpdateFailed(f"Failed to update user {user_id}", status_code=response.status_code)


def build_http_client(request: Request) -> httpx.AsyncClient:
    """
    HTTP client carrying the caller's credentials.

    Without DASHBOARD_API_BASE_URL the requests are served in-process by
    the application handling ``request``.
    """
    headers = {}
    authorization = request.headers.get("authorization")
    if authorization:
        headers["Authorization"] = authorization

    timeout = httpx.Timeout(settings.DASHBOARD_REQUEST_TIMEOUT)
    if settings.DASHBOARD_API_BASE_URL:
        return httpx.AsyncClient(
            base_url=settings.DASHBOARD_API_BASE_URL,
            headers=headers,
            cookies=request.cookies,
            timeout=timeout,
        )
    return httpx.AsyncClient(
        transport=httpx.ASGITransport(app=request.app),
        base_url=str(request.base_url),
        headers=headers,
        cookies=request.cookies,
        timeout=timeout,
    )


async def get_directory_client(request: Request):
    """Dependency yielding a DirectoryClient bound to the current request."""
    async with build_http_client(request) as http:
        yield DirectoryClient(http)

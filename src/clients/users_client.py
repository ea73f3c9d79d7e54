"""
Async REST client for the users API

Mirrors the data operations the browser table uses: paged fetch, full fetch
for export, create, update and delete.
"""

import logging
import os
from datetime import date
from typing import Any, Dict, List, Optional

import httpx

USERS_API_BASE_URL = os.getenv("USERS_API_BASE_URL", "http://localhost:3010")

logger = logging.getLogger(__name__)

USERS_PATH = "/api/users"

# Page size used to pull every matching row in one request
EXPORT_PAGE_SIZE = 999999


class UsersApiError(Exception):
    """Non-success response from the users API"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class UsersApiNotFoundError(UsersApiError):
    """The requested user does not exist"""


class UsersApiTransportError(UsersApiError):
    """The users API could not be reached"""


def _user_payload(user: Dict[str, Any]) -> Dict[str, Any]:
    payload = {key: value for key, value in user.items() if key != "id"}
    if isinstance(payload.get("birthday"), date):
        payload["birthday"] = payload["birthday"].isoformat()
    return payload


class UsersApiClient:
    """Client for /api/users"""

    def __init__(
        self,
        base_url: str = USERS_API_BASE_URL,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def request(
        self,
        method: str,
        path: str,
        data: Optional[Dict] = None,
        params: Optional[Dict] = None,
        failure_message: str = "Request failed"
    ) -> httpx.Response:
        """
        Send one request and raise for any non-success status

        Raises:
            UsersApiTransportError: connection-level failure, not retried
            UsersApiNotFoundError: 404 response
            UsersApiError: any other non-2xx response
        """
        url = f"{self.base_url}{path}"

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.request(method, url, json=data, params=params)
        except httpx.TransportError as e:
            logger.error(f"{failure_message}: could not reach {url}: {e}")
            raise UsersApiTransportError(f"{failure_message}: {e}") from e

        if response.status_code == 404:
            raise UsersApiNotFoundError(f"{failure_message}: not found", status_code=404)
        if response.is_error:
            logger.warning(f"{failure_message}: {method} {url} returned {response.status_code}")
            raise UsersApiError(f"{failure_message}: HTTP {response.status_code}", status_code=response.status_code)

        return response

    @staticmethod
    def _listing_params(page: int, page_size: int, sort: str, sort_dir: str, search: str) -> Dict[str, Any]:
        params = {
            "page": str(page),
            "pageSize": str(page_size),
            "sort": sort,
            "sortDir": sort_dir,
        }
        if search and search.strip():
            params["search"] = search.strip()
        return params

    async def fetch_paged_users(
        self,
        page: int = 1,
        page_size: int = 5,
        sort: str = "id",
        sort_dir: str = "asc",
        search: str = ""
    ) -> Dict[str, Any]:
        """Fetch one page of users; returns the PagedResult document"""
        response = await self.request(
            "GET",
            USERS_PATH,
            params=self._listing_params(page, page_size, sort, sort_dir, search),
            failure_message="Failed to fetch paged users"
        )
        return response.json()

    async def fetch_all_users_for_export(
        self,
        sort: str = "id",
        sort_dir: str = "asc",
        search: str = ""
    ) -> List[Dict[str, Any]]:
        """Fetch every matching user in the current order, ignoring pagination"""
        response = await self.request(
            "GET",
            USERS_PATH,
            params=self._listing_params(1, EXPORT_PAGE_SIZE, sort, sort_dir, search),
            failure_message="Failed to fetch users for export"
        )
        return response.json()["data"]

    async def get_user(self, user_id: int) -> Dict[str, Any]:
        response = await self.request("GET", f"{USERS_PATH}/{user_id}", failure_message="Failed to fetch user")
        return response.json()

    async def create_user(self, user: Dict[str, Any]) -> Dict[str, Any]:
        """Create a user; returns the stored record including its new id"""
        response = await self.request("POST", USERS_PATH, data=_user_payload(user), failure_message="Failed to create user")
        return response.json()

    async def update_user(self, user_id: int, user: Dict[str, Any]) -> Dict[str, Any]:
        response = await self.request(
            "PUT",
            f"{USERS_PATH}/{user_id}",
            data=_user_payload(user),
            failure_message="Failed to update user"
        )
        return response.json()

    async def delete_user(self, user_id: int) -> None:
        await self.request("DELETE", f"{USERS_PATH}/{user_id}", failure_message="Failed to delete user")

"""
Users service - business logic for the user directory
"""

import logging
from typing import Any, Dict, Optional

from config.settings import USERS_STORE
from database.users_repository import InMemoryUsersRepository, PostgresUsersRepository, UsersRepository
from services.base_service import BaseService, ServiceResult
from services.listing import normalize_listing_params, to_paged_result

logger = logging.getLogger(__name__)


def normalize_email(email: Optional[str]) -> Optional[str]:
    """Empty or whitespace-only email means no email; anything else is kept verbatim"""
    if email is None or not email.strip():
        return None
    return email


class UsersService(BaseService):
    """Service for user directory operations"""

    def __init__(self, repository: UsersRepository):
        super().__init__("users")
        self.repository = repository

    @staticmethod
    def _prepare_values(values: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "name": values["name"],
            "rut": values["rut"],
            "email": normalize_email(values.get("email")),
            "birthday": values["birthday"],
        }

    async def list_users(
        self,
        page: Any = None,
        page_size: Any = None,
        sort: Any = None,
        sort_dir: Any = None,
        search: Any = None
    ) -> ServiceResult:
        """
        List one page of users

        Parameters are normalized before they reach the store, so malformed
        values fall back to their defaults instead of failing.

        Returns:
            ServiceResult whose data holds the page rows, count the filtered
            total, and page_info the effective pagination metadata
        """
        query = normalize_listing_params(page, page_size, sort, sort_dir, search)

        try:
            rows, total_count = await self.repository.list_users(query)
        except Exception as e:
            logger.error(f"Listing failed for {self.resource_name}: {e}", exc_info=True)
            return ServiceResult(
                success=False,
                error=str(e),
                error_type="EXECUTION_ERROR"
            )

        paged = to_paged_result(query, rows, total_count)
        page_info = paged.to_dict()
        page_info.pop("data")
        return ServiceResult(
            success=True,
            data=paged.data,
            count=paged.total_count,
            page_info=page_info
        )

    async def get_user_by_id(self, user_id: int) -> ServiceResult:
        return await self._run("Read", lambda: self.repository.get_user(user_id))

    async def create_user(self, values: Dict[str, Any]) -> ServiceResult:
        """
        Create a new user

        Args:
            values: name, rut, email and birthday; any id is ignored

        Returns:
            ServiceResult with the created user, or error_type CONFLICT when
            the rut is taken
        """
        prepared = self._prepare_values(values)
        logger.info(f"Creating new user with rut: {prepared['rut']}")
        return await self._run("Create", lambda: self.repository.insert_user(prepared))

    async def update_user(self, user_id: int, values: Dict[str, Any]) -> ServiceResult:
        """
        Replace every field of a user except its id

        Returns:
            ServiceResult with the updated user, or error_type
            RESOURCE_NOT_FOUND / CONFLICT
        """
        prepared = self._prepare_values(values)
        logger.info(f"Updating user {user_id}")
        return await self._run("Update", lambda: self.repository.update_user(user_id, prepared))

    async def delete_user(self, user_id: int) -> ServiceResult:
        logger.info(f"Deleting user {user_id}")
        return await self._run("Delete", lambda: self.repository.delete_user(user_id))

    async def check_store(self) -> None:
        await self.repository.ping()


def create_repository(store: str = USERS_STORE) -> UsersRepository:
    """Build the store selected by configuration"""
    if store == "memory":
        return InMemoryUsersRepository()
    return PostgresUsersRepository()


# Global service instance
_users_service = None

def get_users_service() -> UsersService:
    """Get the global users service instance"""
    global _users_service
    if _users_service is None:
        _users_service = UsersService(create_repository())
    return _users_service

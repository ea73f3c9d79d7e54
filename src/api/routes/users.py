"""
User directory API routes
Listing goes through the listing query builder; mutations act on the store by id.
"""

import logging
from typing import Optional
from fastapi import APIRouter, HTTPException, Depends, Query, Response

from models.user import UserCreateRequest, UserUpdateRequest, UserData, PagedUsersResponse
from services.users_service import UsersService, get_users_service
from utils.error_handling import set_endpoint_context

router = APIRouter()
logger = logging.getLogger(__name__)


def _raise_for_result(result, action: str):
    """Map a failed ServiceResult onto an HTTP error (404 is handled by callers)"""
    if result.error_type == "CONFLICT":
        raise HTTPException(status_code=409, detail=result.error)
    raise HTTPException(status_code=500, detail=f"Failed to {action}: {result.error}")


@router.get("", response_model=PagedUsersResponse)
async def list_users(
    page: Optional[str] = Query(None),
    page_size: Optional[str] = Query(None, alias="pageSize"),
    sort: Optional[str] = Query(None),
    sort_dir: Optional[str] = Query(None, alias="sortDir"),
    search: Optional[str] = Query(None),
    users_service: UsersService = Depends(get_users_service)
):
    """
    List users with pagination, sorting and search

    Query parameters are taken as raw strings; anything malformed falls back
    to its default rather than producing a validation error.
    """
    set_endpoint_context("users.list")

    try:
        result = await users_service.list_users(
            page=page,
            page_size=page_size,
            sort=sort,
            sort_dir=sort_dir,
            search=search
        )

        if not result.success:
            _raise_for_result(result, "list users")

        return PagedUsersResponse(**result.page_info, data=result.data)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to list users: {e}")
        raise HTTPException(status_code=500, detail=f"Service error: {str(e)}")


@router.get("/{user_id}", response_model=UserData)
async def get_user(
    user_id: int,
    users_service: UsersService = Depends(get_users_service)
):
    """Get a single user"""
    set_endpoint_context("users.get")

    try:
        result = await users_service.get_user_by_id(user_id)

        if not result.success:
            if result.error_type == "RESOURCE_NOT_FOUND":
                return Response(status_code=404)
            _raise_for_result(result, "get user")

        return result.data[0]

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to get user: {e}")
        raise HTTPException(status_code=500, detail=f"Service error: {str(e)}")


@router.post("", response_model=UserData, status_code=201)
async def create_user(
    request: UserCreateRequest,
    response: Response,
    users_service: UsersService = Depends(get_users_service)
):
    """Create a new user"""
    set_endpoint_context("users.create")

    try:
        result = await users_service.create_user(request.model_dump())

        if not result.success:
            _raise_for_result(result, "create user")

        user = result.data[0]
        response.headers["Location"] = f"/api/users/{user.id}"
        return user

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to create user: {e}")
        raise HTTPException(status_code=500, detail=f"Service error: {str(e)}")


@router.put("/{user_id}", response_model=UserData)
async def update_user(
    user_id: int,
    request: UserUpdateRequest,
    users_service: UsersService = Depends(get_users_service)
):
    """Replace a user's fields"""
    set_endpoint_context("users.update")

    try:
        result = await users_service.update_user(user_id, request.model_dump())

        if not result.success:
            if result.error_type == "RESOURCE_NOT_FOUND":
                return Response(status_code=404)
            _raise_for_result(result, "update user")

        return result.data[0]

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to update user: {e}")
        raise HTTPException(status_code=500, detail=f"Service error: {str(e)}")


@router.delete("/{user_id}", status_code=204)
async def delete_user(
    user_id: int,
    users_service: UsersService = Depends(get_users_service)
):
    """Delete a user"""
    set_endpoint_context("users.delete")

    try:
        result = await users_service.delete_user(user_id)

        if not result.success:
            if result.error_type == "RESOURCE_NOT_FOUND":
                return Response(status_code=404)
            _raise_for_result(result, "delete user")

        return Response(status_code=204)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to delete user: {e}")
        raise HTTPException(status_code=500, detail=f"Service error: {str(e)}")

"""
User-related Pydantic models
"""

from datetime import date
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field


class UserData(BaseModel):
    """Stored user record as returned by the store"""
    id: int
    name: str
    rut: str
    email: Optional[str] = None
    birthday: date


class UserCreateRequest(BaseModel):
    # Clients may echo an id back; it is never used
    model_config = ConfigDict(extra="ignore")

    name: str = Field(..., min_length=1, pattern=r"\S")
    rut: str = Field(..., min_length=1, pattern=r"\S")
    email: Optional[str] = None
    birthday: date


class UserUpdateRequest(UserCreateRequest):
    """Full replacement of every field except id"""
    pass


class PagedUsersResponse(BaseModel):
    """Response envelope for the users listing"""
    model_config = ConfigDict(populate_by_name=True)

    page: int
    page_size: int = Field(..., alias="pageSize")
    sort: str
    sort_dir: str = Field(..., alias="sortDir")
    total_count: int = Field(..., alias="totalCount")
    total_pages: int = Field(..., alias="totalPages")
    data: List[UserData]

# storefront/schemas/common.py
from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """
    Success envelope shared by every endpoint:

        {"success": true, "data": ..., "message": "..."}
    """

    success: bool = True
    data: T | None = None
    message: str = "Operation successful"


class Pagination(BaseModel):
    skip: int
    limit: int
    total: int


def ok(data: T | None = None, message: str = "Operation successful") -> ApiResponse[T]:
    return ApiResponse(data=data, message=message)

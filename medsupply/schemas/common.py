from math import ceil
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        return cls(page=page, limit=limit, total=total, pages=ceil(total / limit) if limit else 0)


class Page(BaseModel, Generic[T]):
    items: List[T]
    pagination: Pagination


class ApiResponse(BaseModel, Generic[T]):
    success: bool = True
    message: str = ""
    data: Optional[T] = None


class ErrorDetail(BaseModel):
    field: str
    message: str


class ErrorResponse(BaseModel):
    success: bool = False
    message: str
    errors: List[ErrorDetail] = []
    data: None = None


def ok(data=None, message: str = "") -> dict:
    return {"success": True, "message": message, "data": data}


def paginate(query, page: int, limit: int):
    """Apply page/limit to a query; returns (rows, Pagination)."""
    total = query.order_by(None).count()
    rows = query.offset((page - 1) * limit).limit(limit).all()
    return rows, Pagination.build(page, limit, total)

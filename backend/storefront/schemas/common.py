from pydantic import BaseModel
import math


class MessageResponse(BaseModel):
    message: str


class Pagination(BaseModel):
    current_page: int
    total_pages: int
    total_items: int
    items_per_page: int
    has_next: bool
    has_prev: bool


def build_pagination(page: int, limit: int, total: int) -> Pagination:
    total_pages = math.ceil(total / limit) if limit else 0
    return Pagination(
        current_page=page,
        total_pages=total_pages,
        total_items=total,
        items_per_page=limit,
        has_next=page < total_pages,
        has_prev=page > 1,
    )


def reject_null(v):
    """For partial updates: a field may be left out but not set to null"""
    if v is None:
        raise ValueError("may not be null")
    return v

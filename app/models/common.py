from __future__ import annotations
import math
from typing import Generic, TypeVar
from pydantic import BaseModel

T = TypeVar("T")


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_next_page: bool
    has_previous_page: bool

    @classmethod
    def build(cls, total: int, page: int, limit: int) -> "Pagination":
        total_pages = math.ceil(total / limit) if limit > 0 else 0
        return cls(
            page=page,
            limit=limit,
            total=total,
            total_pages=total_pages,
            has_next_page=page < total_pages,
            has_previous_page=page > 1,
        )


class Page(BaseModel, Generic[T]):
    docs: list[T]
    total: int
    page: int
    limit: int
    total_pages: int
    has_next_page: bool
    has_previous_page: bool

    @classmethod
    def build(cls, docs: list, total: int, page: int, limit: int):
        p = Pagination.build(total, page, limit)
        return cls(docs=docs, **p.model_dump())


class ApiResponse(BaseModel, Generic[T]):
    message: str
    data: T


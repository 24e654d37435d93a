from __future__ import annotations

import math
from typing import Generic, List, TypeVar

from fastapi import Query
from pydantic import BaseModel

T = TypeVar("T")


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class Page(BaseModel, Generic[T]):
    items: List[T]
    pagination: Pagination


class PageParams:
    """Query dependency: ?page=1&limit=10 (limit 1..100)."""

    def __init__(
        self,
        page: int = Query(1, ge=1),
        limit: int = Query(10, ge=1, le=100),
    ):
        self.page = page
        self.limit = limit

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def paginate(self, query, schema) -> dict:
        total = query.count()
        rows = query.offset(self.offset).limit(self.limit).all()
        return {
            "items": [schema.model_validate(r) for r in rows],
            "pagination": Pagination(
                page=self.page,
                limit=self.limit,
                total=total,
                pages=math.ceil(total / self.limit) if total else 0,
            ),
        }


class Message(BaseModel):
    message: str

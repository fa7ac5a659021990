from __future__ import annotations

import math

from pydantic import BaseModel


class Pagination(BaseModel):
    page: int
    limit: int
    total_items: int
    total_pages: int

    @classmethod
    def build(cls, *, page: int, limit: int, total_items: int) -> "Pagination":
        return cls(
            page=page,
            limit=limit,
            total_items=total_items,
            total_pages=math.ceil(total_items / limit) if limit else 0,
        )

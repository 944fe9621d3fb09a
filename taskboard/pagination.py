from __future__ import annotations

import math

from pydantic import BaseModel


class PaginationMeta(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


def offset_for(page: int, limit: int) -> int:
    return (page - 1) * limit


def pagination_meta(page: int, limit: int, total: int) -> PaginationMeta:
    return PaginationMeta(page=page, limit=limit, total=total, pages=math.ceil(total / limit))

from __future__ import annotations

import math
from dataclasses import dataclass

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 12
MAX_LIMIT = 100


@dataclass(frozen=True)
class Pagination:
    """
    Page metadata for a result set of ``total`` rows.

    Range checks on page/limit belong to the HTTP layer; nothing here clamps.
    """
    page: int
    limit: int
    total: int
    pages: int
    has_next: bool
    has_prev: bool

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit

    def to_dict(self) -> dict:
        return {
            "page": self.page,
            "limit": self.limit,
            "total": self.total,
            "pages": self.pages,
            "hasNext": self.has_next,
            "hasPrev": self.has_prev,
        }


def paginate(total: int, page: int = DEFAULT_PAGE, limit: int = DEFAULT_LIMIT) -> Pagination:
    pages = math.ceil(total / limit)
    return Pagination(
        page=page,
        limit=limit,
        total=total,
        pages=pages,
        has_next=page < pages,
        has_prev=page > 1,
    )

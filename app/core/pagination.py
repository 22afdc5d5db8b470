import math
from dataclasses import dataclass
from typing import Any

from fastapi import Query as QueryParam
from sqlalchemy.orm import Query

DEFAULT_LIMIT = 10
MAX_LIMIT = 100


@dataclass(frozen=True)
class PageParams:
    page: int
    limit: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def page_params(
    page: int = QueryParam(default=1, ge=1, description="Numero da pagina"),
    limit: int = QueryParam(default=DEFAULT_LIMIT, ge=1, le=MAX_LIMIT, description="Itens por pagina"),
) -> PageParams:
    return PageParams(page=page, limit=limit)


def pagination_meta(total: int, params: PageParams) -> dict[str, Any]:
    total_pages = math.ceil(total / params.limit) if total else 0
    return {
        "total": total,
        "totalPages": total_pages,
        "currentPage": params.page,
        "limit": params.limit,
        "hasNext": params.page < total_pages,
        "hasPrevious": params.page > 1,
    }


def paginate(query: Query, params: PageParams) -> tuple[list, dict[str, Any]]:
    """Aplica offset/limit a uma query ja ordenada; o total e contado antes."""
    total = query.order_by(None).count()
    items = query.offset(params.offset).limit(params.limit).all()
    return items, pagination_meta(total, params)

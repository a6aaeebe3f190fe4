from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from fastapi import Query
from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 100


@dataclass(frozen=True)
class PageParams:
    page: int = 1
    limit: int = DEFAULT_PAGE_SIZE

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def page_params(
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1),
) -> PageParams:
    return PageParams(page=page, limit=min(limit, MAX_PAGE_SIZE))


def count_rows(db: Session, stmt: Select[Any]) -> int:
    total = db.scalar(select(func.count()).select_from(stmt.order_by(None).subquery()))
    return int(total or 0)


def paginate(db: Session, stmt: Select[Any], params: PageParams) -> tuple[list[Any], int]:
    """Run ``stmt`` for one page; returns the page rows and the unpaged total."""
    total = count_rows(db, stmt)
    rows = db.scalars(stmt.offset(params.offset).limit(params.limit)).all()
    return list(rows), total

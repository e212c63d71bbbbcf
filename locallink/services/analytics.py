"""Listing helpers shared by the admin endpoints.

``paginate`` applies offset/limit to an ORM query and counts the filtered
total. ``issue_analytics`` computes global status and category counts over
the whole issues table on every call; there is no caching, so the cost grows
with the table.
"""
import math
from dataclasses import dataclass
from typing import List
from sqlalchemy import func
from sqlalchemy.orm import Query, Session
from locallink.database.models import Issue
from locallink.errors import ValidationError

MAX_PAGE_SIZE = 100

@dataclass
class Page:
    items: List
    page: int
    limit: int
    total: int

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0

    def pagination(self) -> dict:
        return {
            "page": self.page,
            "limit": self.limit,
            "total": self.total,
            "pages": self.pages,
        }

def check_page(page: int, limit: int):
    if page < 1:
        raise ValidationError("page must be 1 or greater")
    if limit < 1 or limit > MAX_PAGE_SIZE:
        raise ValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}")

def paginate(query: Query, page: int, limit: int) -> Page:
    check_page(page, limit)
    total = query.order_by(None).count()
    items = query.offset((page - 1) * limit).limit(limit).all()
    return Page(items=items, page=page, limit=limit, total=total)

def _group_counts(db: Session, column) -> dict:
    rows = db.query(column, func.count(Issue.id)).group_by(column).all()
    return {value: count for value, count in rows}

def issue_analytics(db: Session) -> dict:
    return {
        "totalIssues": db.query(func.count(Issue.id)).scalar(),
        "statusCounts": _group_counts(db, Issue.status),
        "categoryCounts": _group_counts(db, Issue.category),
    }

# Overview: Generic read-with-filter helper shared by every list endpoint.

"""
Query helper

Supports equality filters, case-insensitive "contains" (over one or several
columns), inclusive date ranges, ordering and page/per_page pagination with a
total count. The response contract matches every list endpoint:

    {"items": [...], "count": n, "pagination": {...}}
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Iterable

from sqlalchemy import or_

from ..validation import ValidationError, coerce_integer, parse_optional_datetime

DEFAULT_PER_PAGE = 20
MAX_PER_PAGE = 100


def apply_filters(
    query,
    model,
    *,
    eq: dict | None = None,
    search: str | None = None,
    search_fields: Iterable[str] = (),
    date_field: str | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
):
    for field_name, value in (eq or {}).items():
        if value is None or value == "":
            continue
        query = query.filter(getattr(model, field_name) == value)

    term = (search or "").strip()
    fields = list(search_fields)
    if term and fields:
        pattern = f"%{term}%"
        query = query.filter(or_(*(getattr(model, f).ilike(pattern) for f in fields)))

    if date_field:
        column = getattr(model, date_field)
        if date_from is not None:
            query = query.filter(column >= date_from)
        if date_to is not None:
            query = query.filter(column <= date_to)

    return query


def apply_ordering(query, model, order_by: str | None, *, default: str = "id", descending: bool = True):
    """order_by accepts 'field' or '-field'; unknown columns are rejected."""
    name = (order_by or "").strip()
    if name.startswith("-"):
        descending, name = True, name[1:]
    elif name:
        descending = False
    name = name or default

    if name not in model.__mapper__.columns.keys():
        raise ValidationError(f"Cannot order by '{name}'")

    column = getattr(model, name)
    primary = model.__mapper__.primary_key[0]
    if descending:
        return query.order_by(column.desc(), primary.desc())
    return query.order_by(column.asc(), primary.asc())


def paginate(query, *, page: int | None, per_page: int | None, serializer: Callable = None) -> dict:
    serializer = serializer or (lambda row: row.to_dict())

    if page is None:
        rows = query.all()
        return {"items": [serializer(r) for r in rows], "count": len(rows)}

    per_page = min(per_page or DEFAULT_PER_PAGE, MAX_PER_PAGE)  # Default 20, max 100
    page = max(page, 1)

    total = query.order_by(None).count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1

    rows = query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [serializer(r) for r in rows],
        "count": len(rows),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


def parse_page_args(args) -> tuple[int, int]:
    """page/per_page from query-string args; lists are always paginated."""
    page = coerce_integer("page", args.get("page", 1))
    per_page = coerce_integer("per_page", args.get("per_page", DEFAULT_PER_PAGE))
    if page < 1 or per_page < 1:
        raise ValidationError("page and per_page must be positive")
    return page, per_page


def parse_date_range(args) -> tuple[datetime | None, datetime | None]:
    date_from = parse_optional_datetime(args.get("from"), "from")
    date_to = parse_optional_datetime(args.get("to"), "to")
    # A bare date as upper bound means "until the end of that day"
    raw_to = args.get("to") or ""
    if date_to is not None and len(raw_to.strip()) == 10:
        date_to = date_to.replace(hour=23, minute=59, second=59, microsecond=999999)
    return date_from, date_to

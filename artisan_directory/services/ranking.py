"""Deterministic ordering and page slicing for provider listings."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from sqlalchemy import ColumnElement
from sqlalchemy.orm import Session

from artisan_directory.core.errors import InvalidArgument, field_error
from artisan_directory.models import Provider
from artisan_directory.services.filters import (
    Predicate,
    count_matching,
    matching_providers,
)
from artisan_directory.services.hierarchy import with_hierarchy


class SortKey(str, Enum):
    """Orderings accepted by provider listings."""

    RATING = "rating"
    NAME = "name"
    CITY = "city"
    RECENT = "recent"

    @classmethod
    def parse(cls, raw: str | SortKey | None) -> SortKey:
        if raw is None:
            return cls.RATING
        if isinstance(raw, cls):
            return raw
        try:
            return cls(raw.strip().lower())
        except ValueError:
            allowed = ", ".join(key.value for key in cls)
            raise InvalidArgument(
                f"Unknown sort key {raw!r}; expected one of: {allowed}",
                details=[field_error("sort", f"allowed values: {allowed}")],
            ) from None


def order_by_clauses(sort: SortKey) -> list[ColumnElement[Any]]:
    """ORDER BY terms for ``sort``, always closed by the primary key."""

    if sort is SortKey.RATING:
        clauses = [Provider.rating.desc(), Provider.company_name.asc()]
    elif sort is SortKey.NAME:
        clauses = [Provider.company_name.asc()]
    elif sort is SortKey.CITY:
        # Providers without a city go last on every dialect.
        clauses = [
            Provider.city.is_(None).asc(),
            Provider.city.asc(),
            Provider.company_name.asc(),
        ]
    else:
        clauses = [Provider.created_at.desc()]
    clauses.append(Provider.id.asc())
    return clauses


@dataclass
class Page:
    """One slice of an ordered listing plus the size of the whole set."""

    items: list[Provider] = field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 12

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.total else 0

    @property
    def has_next_page(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_prev_page(self) -> bool:
        return self.page > 1

    def pagination(self) -> dict[str, int | bool]:
        return {
            "page": self.page,
            "limit": self.limit,
            "total": self.total,
            "total_pages": self.total_pages,
            "has_next_page": self.has_next_page,
            "has_prev_page": self.has_prev_page,
        }


def _check_window(page: int, limit: int) -> None:
    errors = []
    if page < 1:
        errors.append(field_error("page", "must be >= 1"))
    if limit < 1:
        errors.append(field_error("limit", "must be >= 1"))
    if errors:
        raise InvalidArgument("Invalid pagination window", details=errors)


def paginate(
    db: Session,
    predicate: Predicate,
    sort: SortKey = SortKey.RATING,
    *,
    page: int = 1,
    limit: int = 12,
) -> Page:
    """Return page ``page`` of the providers matching ``predicate``.

    The total and the slice are two reads of the same predicate; under
    concurrent writes they may describe slightly different instants.
    """

    _check_window(page, limit)
    total = count_matching(db, predicate)
    if total == 0 or (page - 1) * limit >= total:
        return Page(items=[], total=total, page=page, limit=limit)

    stmt = (
        with_hierarchy(matching_providers(predicate))
        .order_by(*order_by_clauses(sort))
        .offset((page - 1) * limit)
        .limit(limit)
    )
    items = list(db.scalars(stmt).unique())
    return Page(items=items, total=total, page=page, limit=limit)


def top(
    db: Session, predicate: Predicate, sort: SortKey = SortKey.RATING, limit: int = 10
) -> list[Provider]:
    """First ``limit`` matching providers, without a total count."""

    _check_window(1, limit)
    stmt = (
        with_hierarchy(matching_providers(predicate))
        .order_by(*order_by_clauses(sort))
        .limit(limit)
    )
    return list(db.scalars(stmt).unique())

"""Counts and rating statistics computed over a compiled predicate."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from artisan_directory.models import Category, Provider, Specialty
from artisan_directory.services.filters import Predicate

UNSPECIFIED = "unspecified"


class GroupKey(str, Enum):
    DEPARTMENT = "department"
    CATEGORY = "category"
    SPECIALTY = "specialty"


@dataclass
class RatingStats:
    count: int
    average: float | None
    minimum: float | None
    maximum: float | None

    def as_dict(self) -> dict[str, Any]:
        return {
            "count": self.count,
            "average": self.average,
            "min": self.minimum,
            "max": self.maximum,
        }


@dataclass
class GroupCount:
    """Number of matching providers sharing one value of a grouping key."""

    key: str | int
    label: str
    count: int
    average_rating: float | None

    def as_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "label": self.label,
            "count": self.count,
            "average_rating": self.average_rating,
        }


def _round(value: Any) -> float | None:
    if value is None:
        return None
    return round(float(value), 2)


def rating_stats(db: Session, predicate: Predicate) -> RatingStats:
    """Count, average, minimum and maximum rating of the matching providers."""

    stmt = predicate.apply(
        select(
            func.count(Provider.id),
            func.avg(Provider.rating),
            func.min(Provider.rating),
            func.max(Provider.rating),
        )
    )
    count, average, minimum, maximum = db.execute(stmt).one()
    return RatingStats(
        count=int(count or 0),
        average=_round(average),
        minimum=_round(minimum),
        maximum=_round(maximum),
    )


def _department_rows(db: Session, predicate: Predicate) -> list[tuple[Any, str, int, float]]:
    stmt = predicate.apply(
        select(
            Provider.department,
            func.count(Provider.id),
            func.coalesce(func.sum(Provider.rating), 0),
        ).group_by(Provider.department)
    )
    rows = []
    for department, count, rating_sum in db.execute(stmt):
        label = (department or "").strip()
        rows.append((label or UNSPECIFIED, label or UNSPECIFIED, count, rating_sum))
    return rows


def _category_rows(db: Session, predicate: Predicate) -> list[tuple[Any, str, int, float]]:
    stmt = predicate.apply(
        select(
            Category.id,
            Category.name,
            func.count(Provider.id),
            func.coalesce(func.sum(Provider.rating), 0),
        )
        .select_from(Provider)
        .outerjoin(Specialty, Provider.specialty_id == Specialty.id)
        .outerjoin(Category, Specialty.category_id == Category.id)
        .group_by(Category.id, Category.name)
    )
    return [
        (category_id, name, count, rating_sum)
        if category_id is not None
        else (UNSPECIFIED, UNSPECIFIED, count, rating_sum)
        for category_id, name, count, rating_sum in db.execute(stmt)
    ]


def _specialty_rows(db: Session, predicate: Predicate) -> list[tuple[Any, str, int, float]]:
    stmt = predicate.apply(
        select(
            Specialty.id,
            Specialty.name,
            func.count(Provider.id),
            func.coalesce(func.sum(Provider.rating), 0),
        )
        .select_from(Provider)
        .outerjoin(Specialty, Provider.specialty_id == Specialty.id)
        .group_by(Specialty.id, Specialty.name)
    )
    return [
        (specialty_id, name, count, rating_sum)
        if specialty_id is not None
        else (UNSPECIFIED, UNSPECIFIED, count, rating_sum)
        for specialty_id, name, count, rating_sum in db.execute(stmt)
    ]


_ROW_SOURCES = {
    GroupKey.DEPARTMENT: _department_rows,
    GroupKey.CATEGORY: _category_rows,
    GroupKey.SPECIALTY: _specialty_rows,
}


def group_counts(
    db: Session, predicate: Predicate, by: GroupKey = GroupKey.DEPARTMENT
) -> list[GroupCount]:
    """Break the matching providers down by ``by``.

    Providers without a value for the key are collected under
    ``UNSPECIFIED``, listed last, so the counts always add up to the
    ungrouped total.
    """

    merged: dict[Any, list[Any]] = {}
    for key, label, count, rating_sum in _ROW_SOURCES[GroupKey(by)](db, predicate):
        bucket = merged.setdefault(key, [label, 0, 0.0])
        bucket[1] += int(count)
        bucket[2] += float(rating_sum or 0)

    groups = [
        GroupCount(
            key=key,
            label=label,
            count=count,
            average_rating=round(rating_sum / count, 2) if count else None,
        )
        for key, (label, count, rating_sum) in merged.items()
    ]
    groups.sort(key=lambda group: (group.key == UNSPECIFIED, group.label.casefold()))
    return groups

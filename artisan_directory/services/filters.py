"""Compile optional provider criteria into a single reusable predicate.

Each recognised criterion is a small frozen dataclass that knows how to render
itself as a SQL clause. ``compile_criteria`` validates the raw request values,
drops the empty ones and returns a :class:`Predicate` whose criteria are kept
in a canonical order, so equal inputs always give equal (and hashable)
predicates. Listing, counting and aggregation all evaluate a predicate through
:func:`matching_providers` / :func:`count_matching`.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, ClassVar, Union

from sqlalchemy import ColumnElement, Select, and_, func, or_, select, true
from sqlalchemy.orm import Session

from artisan_directory.core.errors import InvalidArgument, field_error
from artisan_directory.models import Provider
from artisan_directory.services.hierarchy import specialties_in_category

MIN_RATING = 0.0
MAX_RATING = 5.0
SEARCH_MIN_LENGTH = 2

_LIKE_ESCAPE = "\\"


def _contains_pattern(value: str) -> str:
    escaped = (
        value.replace(_LIKE_ESCAPE, _LIKE_ESCAPE * 2)
        .replace("%", _LIKE_ESCAPE + "%")
        .replace("_", _LIKE_ESCAPE + "_")
    )
    return f"%{escaped}%"


@dataclass(frozen=True)
class TextContains:
    value: str

    rank: ClassVar[int] = 0

    def clause(self) -> ColumnElement[bool]:
        pattern = _contains_pattern(self.value)
        return or_(
            Provider.company_name.ilike(pattern, escape=_LIKE_ESCAPE),
            Provider.contact_name.ilike(pattern, escape=_LIKE_ESCAPE),
            Provider.description.ilike(pattern, escape=_LIKE_ESCAPE),
        )


@dataclass(frozen=True)
class CityContains:
    value: str

    rank: ClassVar[int] = 1

    def clause(self) -> ColumnElement[bool]:
        return Provider.city.ilike(_contains_pattern(self.value), escape=_LIKE_ESCAPE)


@dataclass(frozen=True)
class DepartmentIs:
    value: str

    rank: ClassVar[int] = 2

    def clause(self) -> ColumnElement[bool]:
        return Provider.department == self.value


@dataclass(frozen=True)
class SpecialtyIs:
    specialty_id: int

    rank: ClassVar[int] = 3

    def clause(self) -> ColumnElement[bool]:
        return Provider.specialty_id == self.specialty_id


@dataclass(frozen=True)
class CategoryIs:
    category_id: int

    rank: ClassVar[int] = 4

    def clause(self) -> ColumnElement[bool]:
        return Provider.specialty_id.in_(specialties_in_category(self.category_id))


@dataclass(frozen=True)
class MinRating:
    value: float

    rank: ClassVar[int] = 5

    def clause(self) -> ColumnElement[bool]:
        return Provider.rating >= self.value


@dataclass(frozen=True)
class FeaturedOnly:
    rank: ClassVar[int] = 6

    def clause(self) -> ColumnElement[bool]:
        return Provider.featured.is_(True)


Criterion = Union[
    TextContains,
    CityContains,
    DepartmentIs,
    SpecialtyIs,
    CategoryIs,
    MinRating,
    FeaturedOnly,
]


def _canonical(criteria: tuple[Criterion, ...]) -> tuple[Criterion, ...]:
    unique = dict.fromkeys(criteria)
    return tuple(sorted(unique, key=lambda criterion: (criterion.rank, repr(criterion))))


@dataclass(frozen=True)
class Predicate:
    """Conjunction of criteria; the empty predicate matches every provider."""

    criteria: tuple[Criterion, ...] = ()

    @property
    def is_unconstrained(self) -> bool:
        return not self.criteria

    def clause(self) -> ColumnElement[bool]:
        if not self.criteria:
            return true()
        return and_(*(criterion.clause() for criterion in self.criteria))

    def apply(self, stmt: Select[Any]) -> Select[Any]:
        if not self.criteria:
            return stmt
        return stmt.where(self.clause())

    def narrowed(self, criterion: Criterion) -> Predicate:
        """Return a new predicate that also requires ``criterion``."""

        return Predicate(_canonical(self.criteria + (criterion,)))


@dataclass(frozen=True)
class ProviderCriteria:
    """Raw, optional filter values as received from a caller."""

    text: str | None = None
    city: str | None = None
    department: str | None = None
    specialty_id: int | None = None
    category_id: int | None = None
    min_rating: float | None = None
    featured: bool = False

    def as_dict(self) -> dict[str, Any]:
        return {
            "q": self.text.strip() if self.text else None,
            "city": self.city,
            "department": self.department,
            "specialty_id": self.specialty_id,
            "category_id": self.category_id,
            "min_rating": self.min_rating or 0,
        }


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


def _check_identifier(field: str, value: int | None) -> int | None:
    if value is None:
        return None
    if value < 1:
        raise InvalidArgument(
            f"{field} must be a positive integer",
            details=[field_error(field, "must be >= 1")],
        )
    return value


def compile_criteria(
    criteria: ProviderCriteria | None = None, *, min_text_length: int = 1
) -> Predicate:
    """Validate ``criteria`` and build the matching predicate."""

    criteria = criteria or ProviderCriteria()
    compiled: list[Criterion] = []

    text = _clean(criteria.text)
    if text is not None:
        if len(text) < min_text_length:
            raise InvalidArgument(
                f"Search text must contain at least {min_text_length} characters",
                details=[field_error("q", f"minimum length is {min_text_length}")],
            )
        compiled.append(TextContains(text))

    city = _clean(criteria.city)
    if city is not None:
        compiled.append(CityContains(city))

    department = _clean(criteria.department)
    if department is not None:
        compiled.append(DepartmentIs(department))

    specialty_id = _check_identifier("specialty_id", criteria.specialty_id)
    if specialty_id is not None:
        compiled.append(SpecialtyIs(specialty_id))

    category_id = _check_identifier("category_id", criteria.category_id)
    if category_id is not None:
        compiled.append(CategoryIs(category_id))

    if criteria.min_rating is not None:
        value = float(criteria.min_rating)
        if math.isnan(value) or value < MIN_RATING or value > MAX_RATING:
            raise InvalidArgument(
                f"min_rating must be between {MIN_RATING:g} and {MAX_RATING:g}",
                details=[field_error("min_rating", "out of range")],
            )
        if value > 0:
            compiled.append(MinRating(value))

    if criteria.featured:
        compiled.append(FeaturedOnly())

    return Predicate(_canonical(tuple(compiled)))


def matching_providers(predicate: Predicate) -> Select[tuple[Provider]]:
    """Select every provider accepted by ``predicate``."""

    return predicate.apply(select(Provider))


def count_matching(db: Session, predicate: Predicate) -> int:
    """Number of providers accepted by ``predicate``."""

    stmt = predicate.apply(select(func.count(Provider.id)))
    return int(db.scalar(stmt) or 0)

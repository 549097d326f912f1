"""Read operations exposed by the directory.

Every listing goes through the same three steps: compile criteria into a
:class:`~artisan_directory.services.filters.Predicate`, then hand it to the
ranker for pages or to the aggregator for statistics. Category-scoped views
narrow the caller's predicate instead of writing their own queries, so a
category's provider count is always the total of its listing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from artisan_directory.core.errors import InvalidArgument, NotFound, field_error
from artisan_directory.models import Category, Provider, Specialty
from artisan_directory.services import hierarchy
from artisan_directory.services.aggregation import (
    GroupCount,
    GroupKey,
    RatingStats,
    group_counts,
    rating_stats,
)
from artisan_directory.services.filters import (
    SEARCH_MIN_LENGTH,
    CategoryIs,
    FeaturedOnly,
    Predicate,
    ProviderCriteria,
    compile_criteria,
    count_matching,
)
from artisan_directory.services.ranking import Page, SortKey, paginate, top

logger = logging.getLogger(__name__)


@dataclass
class CategorySummary:
    id: int
    name: str
    specialty_count: int | None = None
    provider_count: int | None = None

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"id": self.id, "name": self.name}
        if self.specialty_count is not None:
            payload["specialty_count"] = self.specialty_count
        if self.provider_count is not None:
            payload["provider_count"] = self.provider_count
        return payload


@dataclass
class SpecialtySummary:
    id: int
    name: str
    category_id: int
    provider_count: int | None = None
    average_rating: float | None = None

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "category_id": self.category_id,
        }
        if self.provider_count is not None:
            payload["provider_count"] = self.provider_count
            payload["average_rating"] = self.average_rating
        return payload


@dataclass
class CategoryDetail:
    """A category with its specialties and provider statistics."""

    category: Category
    specialties: list[SpecialtySummary] = field(default_factory=list)
    provider_count: int = 0

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.category.id,
            "name": self.category.name,
            "specialties": [specialty.as_dict() for specialty in self.specialties],
            "stats": {
                "specialty_count": len(self.specialties),
                "provider_count": self.provider_count,
            },
            "created_at": self.category.created_at.isoformat(),
            "updated_at": self.category.updated_at.isoformat(),
        }


@dataclass
class GlobalStats:
    total: int
    by_department: list[GroupCount]
    ratings: RatingStats

    def as_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "by_department": [group.as_dict() for group in self.by_department],
            "ratings": self.ratings.as_dict(),
        }


@dataclass
class ContactStats:
    """How much of the directory can be reached through the contact form."""

    total: int
    contactable: int

    @property
    def contactable_share(self) -> int:
        return round(self.contactable / self.total * 100) if self.total else 0

    def as_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "contactable": self.contactable,
            "contactable_share": self.contactable_share,
        }


def serialize_provider(provider: Provider, detail: bool = False) -> dict[str, Any]:
    """Convert a provider (with its loaded hierarchy) into JSON-friendly values."""

    specialty = provider.specialty
    category = specialty.category if specialty is not None else None
    payload: dict[str, Any] = {
        "id": provider.id,
        "company_name": provider.company_name,
        "contact_name": provider.contact_name,
        "city": provider.city,
        "department": provider.department,
        "rating": float(provider.rating or 0),
        "featured": provider.featured,
        "image_url": provider.image_url,
        "specialty": (
            {"id": specialty.id, "name": specialty.name} if specialty is not None else None
        ),
        "category": (
            {"id": category.id, "name": category.name} if category is not None else None
        ),
        "stars": provider.star_rating(),
    }
    if detail:
        payload.update(
            {
                "email": provider.email,
                "phone": provider.phone,
                "address": provider.address,
                "postal_code": provider.postal_code,
                "formatted_address": provider.formatted_address(),
                "latitude": provider.latitude,
                "longitude": provider.longitude,
                "description": provider.description,
                "website": provider.website,
                "created_at": provider.created_at.isoformat(),
                "updated_at": provider.updated_at.isoformat(),
            }
        )
    return payload


def list_providers(
    db: Session,
    criteria: ProviderCriteria | None = None,
    sort: SortKey | str | None = None,
    *,
    page: int = 1,
    limit: int = 12,
) -> Page:
    predicate = compile_criteria(criteria)
    return paginate(db, predicate, SortKey.parse(sort), page=page, limit=limit)


def search_providers(db: Session, text: str | None, limit: int = 10) -> list[Provider]:
    """Free-text search that requires at least two meaningful characters."""

    stripped = (text or "").strip()
    if len(stripped) < SEARCH_MIN_LENGTH:
        raise InvalidArgument(
            f"Search text must contain at least {SEARCH_MIN_LENGTH} characters",
            details=[field_error("q", f"minimum length is {SEARCH_MIN_LENGTH}")],
        )
    predicate = compile_criteria(
        ProviderCriteria(text=stripped), min_text_length=SEARCH_MIN_LENGTH
    )
    return top(db, predicate, SortKey.RATING, limit)


def get_provider(db: Session, provider_id: int) -> hierarchy.ProviderChain:
    return hierarchy.resolve_chain(db, provider_id)


def list_featured_providers(db: Session, limit: int = 3) -> list[Provider]:
    """Providers of the month, best rated first."""

    return top(db, Predicate((FeaturedOnly(),)), SortKey.RATING, limit)


def _specialty_counts_by_category(db: Session) -> dict[int, int]:
    stmt = select(Specialty.category_id, func.count(Specialty.id)).group_by(
        Specialty.category_id
    )
    return {category_id: int(count) for category_id, count in db.execute(stmt)}


def list_categories(db: Session, with_stats: bool = False) -> list[CategorySummary]:
    categories = list(db.scalars(select(Category).order_by(Category.name, Category.id)))
    if not with_stats:
        return [CategorySummary(id=category.id, name=category.name) for category in categories]

    specialty_counts = _specialty_counts_by_category(db)
    provider_counts = {
        group.key: group.count
        for group in group_counts(db, Predicate(), GroupKey.CATEGORY)
    }
    return [
        CategorySummary(
            id=category.id,
            name=category.name,
            specialty_count=specialty_counts.get(category.id, 0),
            provider_count=provider_counts.get(category.id, 0),
        )
        for category in categories
    ]


def find_category_by_name(db: Session, name: str | None) -> Category:
    """Case-insensitive exact lookup of a category by name."""

    stripped = (name or "").strip()
    if len(stripped) < 2:
        raise InvalidArgument(
            "Category name must contain at least 2 characters",
            details=[field_error("name", "minimum length is 2")],
        )
    stmt = select(Category).where(func.lower(Category.name) == stripped.lower())
    category = db.scalars(stmt).first()
    if category is None:
        raise NotFound(f"Category {stripped!r} not found")
    return category


def list_specialties_of_category(
    db: Session, category_id: int, with_provider_counts: bool = False
) -> list[SpecialtySummary]:
    hierarchy.get_category(db, category_id)
    specialties = hierarchy.specialties_of_category(db, category_id)
    if not with_provider_counts:
        return [
            SpecialtySummary(id=specialty.id, name=specialty.name, category_id=category_id)
            for specialty in specialties
        ]

    groups = {
        group.key: group
        for group in group_counts(
            db, Predicate((CategoryIs(category_id),)), GroupKey.SPECIALTY
        )
    }
    summaries = []
    for specialty in specialties:
        group = groups.get(specialty.id)
        summaries.append(
            SpecialtySummary(
                id=specialty.id,
                name=specialty.name,
                category_id=category_id,
                provider_count=group.count if group else 0,
                average_rating=group.average_rating if group else None,
            )
        )
    return summaries


def get_category(db: Session, category_id: int) -> CategoryDetail:
    category = hierarchy.get_category(db, category_id)
    specialties = list_specialties_of_category(db, category_id)
    stats = rating_stats(db, Predicate((CategoryIs(category_id),)))
    return CategoryDetail(
        category=category, specialties=specialties, provider_count=stats.count
    )


def list_providers_of_category(
    db: Session,
    category_id: int,
    criteria: ProviderCriteria | None = None,
    sort: SortKey | str | None = None,
    *,
    page: int = 1,
    limit: int = 12,
) -> tuple[Category, Page]:
    """Listing restricted to one category, otherwise identical to ``list_providers``."""

    category = hierarchy.get_category(db, category_id)
    predicate = compile_criteria(criteria).narrowed(CategoryIs(category_id))
    result = paginate(db, predicate, SortKey.parse(sort), page=page, limit=limit)
    return category, result


def get_stats(db: Session, criteria: ProviderCriteria | None = None) -> GlobalStats:
    """Totals, department breakdown and rating extremes for one predicate."""

    predicate = compile_criteria(criteria)
    ratings = rating_stats(db, predicate)
    by_department = group_counts(db, predicate, GroupKey.DEPARTMENT)
    return GlobalStats(total=ratings.count, by_department=by_department, ratings=ratings)


def category_breakdown(db: Session) -> dict[str, Any]:
    """Catalog summary and share of providers per category."""

    summaries = list_categories(db, with_stats=True)
    total_providers = sum(summary.provider_count or 0 for summary in summaries)
    total_specialties = sum(summary.specialty_count or 0 for summary in summaries)

    distribution = [
        {
            "category": summary.name,
            "specialty_count": summary.specialty_count,
            "provider_count": summary.provider_count,
            "provider_share": (
                round((summary.provider_count or 0) / total_providers * 100)
                if total_providers
                else 0
            ),
        }
        for summary in summaries
    ]
    distribution.sort(key=lambda entry: entry["provider_count"], reverse=True)

    logger.debug(
        "computed category breakdown",
        extra={"categories": len(summaries), "providers": total_providers},
    )
    return {
        "summary": {
            "category_count": len(summaries),
            "specialty_count": total_specialties,
            "provider_count": total_providers,
        },
        "distribution": distribution,
    }


def contact_stats(db: Session) -> ContactStats:
    """Providers overall and those with an email the relay can deliver to."""

    total = count_matching(db, Predicate())
    contactable = db.scalar(
        select(func.count(Provider.id)).where(
            Provider.email.is_not(None), func.trim(Provider.email) != ""
        )
    )
    return ContactStats(total=total, contactable=int(contactable or 0))

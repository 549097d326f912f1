"""Provider → Specialty → Category resolution in both directions."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy import Select, select
from sqlalchemy.orm import Session, joinedload

from artisan_directory.core.errors import Internal, NotFound
from artisan_directory.models import Category, Provider, Specialty

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProviderChain:
    """A provider together with its specialty and category."""

    provider: Provider
    specialty: Specialty
    category: Category


def with_hierarchy(stmt: Select[Any]) -> Select[Any]:
    """Eager-load specialty and category so listings avoid N+1 lookups."""

    return stmt.options(joinedload(Provider.specialty).joinedload(Specialty.category))


def specialties_in_category(category_id: int) -> Select[tuple[int]]:
    """Sub-select of the specialty ids owned by a category."""

    return select(Specialty.id).where(Specialty.category_id == category_id)


def resolve_chain(db: Session, provider_id: int) -> ProviderChain:
    """Load a provider with its full ancestry.

    A missing provider is a ``NotFound``. A provider whose specialty or
    category cannot be loaded breaks the tree invariant and is reported as
    ``Internal``.
    """

    stmt = with_hierarchy(select(Provider).where(Provider.id == provider_id))
    provider = db.scalars(stmt).first()
    if provider is None:
        raise NotFound(f"Provider {provider_id} not found")

    specialty = provider.specialty
    if specialty is None:
        logger.error(
            "provider references a missing specialty",
            extra={"provider_id": provider_id, "specialty_id": provider.specialty_id},
        )
        raise Internal(f"Provider {provider_id} has a dangling specialty reference")

    category = specialty.category
    if category is None:
        logger.error(
            "specialty references a missing category",
            extra={"specialty_id": specialty.id, "category_id": specialty.category_id},
        )
        raise Internal(f"Specialty {specialty.id} has a dangling category reference")

    return ProviderChain(provider=provider, specialty=specialty, category=category)


def get_category(db: Session, category_id: int) -> Category:
    """Return a category or raise ``NotFound``."""

    category = db.get(Category, category_id)
    if category is None:
        raise NotFound(f"Category {category_id} not found")
    return category


def get_specialty(db: Session, specialty_id: int) -> Specialty:
    """Return a specialty or raise ``NotFound``."""

    specialty = db.get(Specialty, specialty_id)
    if specialty is None:
        raise NotFound(f"Specialty {specialty_id} not found")
    return specialty


def specialties_of_category(db: Session, category_id: int) -> list[Specialty]:
    stmt = (
        select(Specialty)
        .where(Specialty.category_id == category_id)
        .order_by(Specialty.name, Specialty.id)
    )
    return list(db.scalars(stmt))


def providers_under_category(db: Session, category_id: int) -> set[int]:
    """Ids of every provider whose specialty belongs to the category."""

    stmt = select(Provider.id).where(
        Provider.specialty_id.in_(specialties_in_category(category_id))
    )
    return set(db.scalars(stmt))


def providers_under_specialty(db: Session, specialty_id: int) -> set[int]:
    """Ids of every provider attached to the specialty."""

    stmt = select(Provider.id).where(Provider.specialty_id == specialty_id)
    return set(db.scalars(stmt))

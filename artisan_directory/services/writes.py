"""Single-row writes with explicit validation and normalization.

Values are checked and normalized by pydantic input models before they reach
the ORM. Uniqueness and referential rules are left to the database; a
violation is rolled back and reported as ``Conflict``.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from pydantic import (
    AnyHttpUrl,
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    TypeAdapter,
    ValidationError,
    field_validator,
)
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from artisan_directory.core.errors import Conflict, NotFound, invalid_from_validation
from artisan_directory.models import Category, Provider, Specialty
from artisan_directory.services.hierarchy import get_category, get_specialty

logger = logging.getLogger(__name__)

CATEGORY_NAME_RE = re.compile(r"^[A-Za-zÀ-ÖØ-öø-ÿ\s\-']+$")
SPECIALTY_NAME_RE = re.compile(r"^[A-Za-zÀ-ÖØ-öø-ÿ\s\-'/]+$")
PHONE_RE = re.compile(r"^[\d\s.\-()+]{10,20}$")
POSTAL_CODE_RE = re.compile(r"^\d{5}$")

_WORD_SPLIT_RE = re.compile(r"([\s-]+)")
_HTTP_URL = TypeAdapter(AnyHttpUrl)

PROVIDER_FIELDS = (
    "company_name",
    "contact_name",
    "email",
    "phone",
    "address",
    "postal_code",
    "city",
    "department",
    "latitude",
    "longitude",
    "rating",
    "description",
    "website",
    "image_url",
    "featured",
    "specialty_id",
)


def title_case(value: str) -> str:
    """Collapse whitespace and capitalize every word.

    Words are delimited by spaces and hyphens: ``"jean-pierre  dupont"``
    becomes ``"Jean-Pierre Dupont"``.
    """

    collapsed = " ".join(value.split())
    parts = _WORD_SPLIT_RE.split(collapsed)
    return "".join(
        part if _WORD_SPLIT_RE.fullmatch(part) else part[:1].upper() + part[1:].lower()
        for part in parts
    )


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


class CategoryInput(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=2, max_length=100)

    @field_validator("name")
    @classmethod
    def normalize_name(cls, value: str) -> str:
        if not CATEGORY_NAME_RE.match(value):
            raise ValueError("only letters, spaces, hyphens and apostrophes are allowed")
        return title_case(value)


class SpecialtyInput(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=2, max_length=100)
    category_id: int = Field(gt=0)

    @field_validator("name")
    @classmethod
    def normalize_name(cls, value: str) -> str:
        if not SPECIALTY_NAME_RE.match(value):
            raise ValueError(
                "only letters, spaces, hyphens, apostrophes and slashes are allowed"
            )
        return title_case(value)


class ProviderInput(BaseModel):
    """Full provider record as it will be stored."""

    model_config = ConfigDict(str_strip_whitespace=True)

    company_name: str = Field(min_length=2, max_length=200)
    contact_name: str | None = Field(default=None, min_length=2, max_length=100)
    email: EmailStr
    phone: str | None = None
    address: str | None = None
    postal_code: str | None = None
    city: str | None = Field(default=None, max_length=100)
    department: str | None = Field(default=None, max_length=100)
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)
    rating: float = Field(default=0.0, ge=0, le=5)
    description: str | None = Field(default=None, max_length=2000)
    website: str | None = Field(default=None, max_length=255)
    image_url: str | None = Field(default=None, max_length=255)
    featured: bool = False
    specialty_id: int = Field(gt=0)

    @field_validator(
        "contact_name",
        "phone",
        "address",
        "postal_code",
        "city",
        "department",
        "description",
        "website",
        "image_url",
        mode="before",
    )
    @classmethod
    def empty_as_missing(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @field_validator("email", mode="before")
    @classmethod
    def lower_email(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("company_name", "contact_name", "city")
    @classmethod
    def normalize_names(cls, value: str | None) -> str | None:
        return title_case(value) if value else value

    @field_validator("phone")
    @classmethod
    def check_phone(cls, value: str | None) -> str | None:
        if value is not None and not PHONE_RE.match(value):
            raise ValueError("invalid phone number format")
        return value

    @field_validator("postal_code")
    @classmethod
    def check_postal_code(cls, value: str | None) -> str | None:
        if value is not None and not POSTAL_CODE_RE.match(value):
            raise ValueError("postal code must contain exactly 5 digits")
        return value

    @field_validator("website")
    @classmethod
    def check_website(cls, value: str | None) -> str | None:
        if value is not None:
            _HTTP_URL.validate_python(value)
        return value

    @field_validator("rating")
    @classmethod
    def round_rating(cls, value: float) -> float:
        return round(value, 1)


def _validate(model: type[BaseModel], data: dict[str, Any], message: str) -> Any:
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise invalid_from_validation(exc, message) from exc


def _flush(db: Session, conflict_message: str, **context: Any) -> None:
    try:
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        logger.info("write rejected by constraint", extra={"reason": conflict_message, **context})
        raise Conflict(conflict_message) from exc


def create_category(db: Session, name: str) -> Category:
    data = _validate(CategoryInput, {"name": name}, "Invalid category")
    category = Category(name=data.name)
    db.add(category)
    _flush(db, f"Category {data.name!r} already exists", category=data.name)
    return category


def get_or_create_category(db: Session, name: str) -> Category:
    data = _validate(CategoryInput, {"name": name}, "Invalid category")
    existing = db.scalars(select(Category).where(Category.name == data.name)).first()
    if existing is not None:
        return existing
    return create_category(db, data.name)


def create_specialty(db: Session, name: str, category_id: int) -> Specialty:
    data = _validate(
        SpecialtyInput, {"name": name, "category_id": category_id}, "Invalid specialty"
    )
    get_category(db, data.category_id)
    specialty = Specialty(name=data.name, category_id=data.category_id)
    db.add(specialty)
    _flush(
        db,
        f"Specialty {data.name!r} already exists in category {data.category_id}",
        specialty=data.name,
    )
    return specialty


def get_or_create_specialty(db: Session, name: str, category_id: int) -> Specialty:
    data = _validate(
        SpecialtyInput, {"name": name, "category_id": category_id}, "Invalid specialty"
    )
    existing = db.scalars(
        select(Specialty).where(
            Specialty.name == data.name, Specialty.category_id == data.category_id
        )
    ).first()
    if existing is not None:
        return existing
    return create_specialty(db, data.name, data.category_id)


def _provider_values(provider: Provider) -> dict[str, Any]:
    return {name: getattr(provider, name) for name in PROVIDER_FIELDS}


def create_provider(db: Session, data: dict[str, Any]) -> Provider:
    values = _validate(ProviderInput, data, "Invalid provider")
    get_specialty(db, values.specialty_id)
    provider = Provider(**values.model_dump())
    db.add(provider)
    _flush(db, f"Email {values.email} is already used by another provider", email=values.email)
    logger.info("provider created", extra={"provider_id": provider.id})
    return provider


def _apply(db: Session, provider: Provider, values: ProviderInput) -> Provider:
    if values.specialty_id != provider.specialty_id:
        get_specialty(db, values.specialty_id)
    for name, value in values.model_dump().items():
        setattr(provider, name, value)
    _flush(db, f"Email {values.email} is already used by another provider", email=values.email)
    return provider


def update_provider(db: Session, provider_id: int, changes: dict[str, Any]) -> Provider:
    """Apply ``changes`` after validating the merged record."""

    provider = db.get(Provider, provider_id)
    if provider is None:
        raise NotFound(f"Provider {provider_id} not found")

    merged = _provider_values(provider)
    merged.update(
        (name, value) for name, value in changes.items() if name in PROVIDER_FIELDS
    )
    values = _validate(ProviderInput, merged, "Invalid provider")
    _apply(db, provider, values)
    logger.info("provider updated", extra={"provider_id": provider.id})
    return provider


def upsert_provider(db: Session, data: dict[str, Any]) -> tuple[Provider, bool]:
    """Create or update the provider identified by its normalized email.

    Returns the provider and whether it was created.
    """

    values = _validate(ProviderInput, data, "Invalid provider")
    existing = db.scalars(select(Provider).where(Provider.email == values.email)).first()
    if existing is None:
        return create_provider(db, values.model_dump()), True
    _apply(db, existing, values)
    return existing, False


def delete_provider(db: Session, provider_id: int) -> None:
    provider = db.get(Provider, provider_id)
    if provider is None:
        raise NotFound(f"Provider {provider_id} not found")
    db.delete(provider)
    _flush(db, f"Provider {provider_id} could not be deleted", provider_id=provider_id)


def delete_specialty(db: Session, specialty_id: int) -> None:
    """Delete a specialty; refused while providers still reference it."""

    specialty = get_specialty(db, specialty_id)
    db.delete(specialty)
    _flush(
        db,
        f"Specialty {specialty_id} is still referenced by providers",
        specialty_id=specialty_id,
    )


def delete_category(db: Session, category_id: int) -> None:
    """Delete a category together with its specialties."""

    category = get_category(db, category_id)
    db.delete(category)
    _flush(
        db,
        f"Category {category_id} has specialties still referenced by providers",
        category_id=category_id,
    )

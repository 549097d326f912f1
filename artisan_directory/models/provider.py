from __future__ import annotations

import math
from typing import TYPE_CHECKING

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from artisan_directory.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from artisan_directory.models.specialty import Specialty


class Provider(Base, TimestampMixin):
    """Directory entry for a tradesperson or business ("artisan")."""

    __tablename__ = "providers"
    __table_args__ = (
        CheckConstraint("rating >= 0 AND rating <= 5", name="rating_range"),
        CheckConstraint("latitude >= -90 AND latitude <= 90", name="latitude_range"),
        CheckConstraint(
            "longitude >= -180 AND longitude <= 180", name="longitude_range"
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    company_name: Mapped[str] = mapped_column(String(200), nullable=False)
    contact_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    email: Mapped[str] = mapped_column(String(150), unique=True, nullable=False)
    phone: Mapped[str | None] = mapped_column(String(20), nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    postal_code: Mapped[str | None] = mapped_column(String(10), nullable=True)
    city: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    department: Mapped[str | None] = mapped_column(
        String(100), nullable=True, index=True
    )
    latitude: Mapped[float | None] = mapped_column(
        Numeric(10, 8, asdecimal=False), nullable=True
    )
    longitude: Mapped[float | None] = mapped_column(
        Numeric(11, 8, asdecimal=False), nullable=True
    )
    rating: Mapped[float] = mapped_column(
        Numeric(2, 1, asdecimal=False), nullable=False, default=0.0, index=True
    )
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    website: Mapped[str | None] = mapped_column(String(255), nullable=True)
    image_url: Mapped[str | None] = mapped_column(String(255), nullable=True)
    featured: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, index=True
    )
    specialty_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("specialties.id", ondelete="RESTRICT", onupdate="CASCADE"),
        nullable=False,
        index=True,
    )

    specialty: Mapped[Specialty] = relationship(back_populates="providers")

    def formatted_address(self) -> str:
        """Join the known address parts into a single line."""

        parts = [self.address, self.postal_code, self.city, self.department]
        return ", ".join(part for part in parts if part)

    def star_rating(self) -> dict[str, float | int | bool]:
        """Split the rating into full, half and empty stars out of five."""

        value = float(self.rating or 0)
        full_stars = math.floor(value)
        has_half_star = (value - full_stars) >= 0.5
        return {
            "full_stars": full_stars,
            "has_half_star": has_half_star,
            "empty_stars": 5 - full_stars - (1 if has_half_star else 0),
            "rating": value,
        }

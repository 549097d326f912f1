from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from artisan_directory.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from artisan_directory.models.specialty import Specialty


class Category(Base, TimestampMixin):
    """Top-level grouping of trades (e.g. "Bâtiment")."""

    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)

    # Children are removed by the database (ON DELETE CASCADE).
    specialties: Mapped[list[Specialty]] = relationship(
        back_populates="category",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Specialty.name",
    )

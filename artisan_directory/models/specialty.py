from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from artisan_directory.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from artisan_directory.models.category import Category
    from artisan_directory.models.provider import Provider


class Specialty(Base, TimestampMixin):
    """A trade within a category (e.g. "Plombier")."""

    __tablename__ = "specialties"
    __table_args__ = (
        UniqueConstraint("name", "category_id", name="uq_specialties_name_category_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    category_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("categories.id", ondelete="CASCADE", onupdate="CASCADE"),
        nullable=False,
        index=True,
    )

    category: Mapped[Category] = relationship(back_populates="specialties")
    # passive_deletes="all" keeps the ORM from nulling provider rows so the
    # RESTRICT foreign key decides.
    providers: Mapped[list[Provider]] = relationship(
        back_populates="specialty", passive_deletes="all"
    )

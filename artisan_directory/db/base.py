"""Import SQLAlchemy models for Alembic's autogenerate feature."""

from artisan_directory.models.base import Base
from artisan_directory.models import (  # noqa: F401
    Category,
    Provider,
    Specialty,
)

__all__ = [
    "Base",
    "Category",
    "Provider",
    "Specialty",
]

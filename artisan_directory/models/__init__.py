"""SQLAlchemy models for the artisan directory."""

from artisan_directory.models.category import Category
from artisan_directory.models.provider import Provider
from artisan_directory.models.specialty import Specialty

__all__ = [
    "Category",
    "Provider",
    "Specialty",
]

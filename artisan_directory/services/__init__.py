"""Service layer utilities for the artisan directory."""

from artisan_directory.services.catalog import (
    get_category,
    get_provider,
    get_stats,
    list_categories,
    list_featured_providers,
    list_providers,
    list_providers_of_category,
    list_specialties_of_category,
    search_providers,
)
from artisan_directory.services.contact import ContactDispatcher, ContactState
from artisan_directory.services.filters import ProviderCriteria, compile_criteria
from artisan_directory.services.ranking import SortKey

__all__ = [
    "ContactDispatcher",
    "ContactState",
    "ProviderCriteria",
    "SortKey",
    "compile_criteria",
    "get_category",
    "get_provider",
    "get_stats",
    "list_categories",
    "list_featured_providers",
    "list_providers",
    "list_providers_of_category",
    "list_specialties_of_category",
    "search_providers",
]

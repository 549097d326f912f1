import pytest
from conftest import names

from artisan_directory.core.errors import InvalidArgument, NotFound
from artisan_directory.services import catalog as service
from artisan_directory.services.aggregation import UNSPECIFIED
from artisan_directory.services.filters import ProviderCriteria
from artisan_directory.services.ranking import SortKey
from artisan_directory.services.writes import (
    create_category,
    create_provider,
    create_specialty,
)


def test_city_filter_example(session):
    category = create_category(session, "Bâtiment")
    specialty = create_specialty(session, "Plombier", category.id)
    for name, rating, city in (
        ("Provider A", 4.8, "Lyon"),
        ("Provider B", 4.8, "Annecy"),
        ("Provider C", 3.0, "Lyon"),
    ):
        create_provider(
            session,
            {
                "company_name": name,
                "email": f"{name[-1].lower()}@example.fr",
                "rating": rating,
                "city": city,
                "specialty_id": specialty.id,
            },
        )
    session.commit()

    result = service.list_providers(
        session, ProviderCriteria(city="Lyon"), SortKey.RATING, page=1, limit=10
    )

    assert names(result.items) == ["Provider A", "Provider C"]
    assert result.total == 2


def test_list_providers_parses_sort_and_validates_window(session, catalog):
    result = service.list_providers(session, None, "name", page=1, limit=3)

    assert result.total == 8
    assert names(result.items) == ["Atelier Dupont", "Bijoux Créations", "Boulangerie Martin"]
    with pytest.raises(InvalidArgument):
        service.list_providers(session, None, "popularity")
    with pytest.raises(InvalidArgument):
        service.list_providers(session, None, limit=0)


def test_search_requires_two_characters(session, catalog):
    with pytest.raises(InvalidArgument):
        service.search_providers(session, "a")
    with pytest.raises(InvalidArgument):
        service.search_providers(session, "  b  ")

    assert service.search_providers(session, "zz") == []
    assert names(service.search_providers(session, "boulangerie")) == [
        "Boulangerie Martin",
        "Boulangerie Parc",
    ]
    assert names(service.search_providers(session, "boulangerie", limit=1)) == [
        "Boulangerie Martin"
    ]


def test_featured_providers_are_rating_ordered(session, catalog):
    featured = service.list_featured_providers(session)

    assert names(featured) == [
        "Atelier Dupont",
        "Bijoux Créations",
        "Électricité Grenobloise",
    ]
    assert all(provider.featured for provider in featured)
    assert names(service.list_featured_providers(session, limit=1)) == ["Atelier Dupont"]


def test_get_provider(session, catalog):
    chain = service.get_provider(session, catalog["providers"]["Boulangerie Parc"])

    assert chain.category.name == "Alimentation"
    payload = service.serialize_provider(chain.provider, detail=True)
    assert payload["formatted_address"] == "12 Rue Du Parc, 69006, Lyon, Rhône"
    assert payload["stars"] == {
        "full_stars": 3,
        "has_half_star": True,
        "empty_stars": 1,
        "rating": 3.9,
    }
    assert payload["specialty"]["name"] == "Boulanger"
    assert payload["category"]["name"] == "Alimentation"

    with pytest.raises(NotFound):
        service.get_provider(session, 12345)


def test_list_categories(session, catalog):
    plain = service.list_categories(session)
    with_stats = {summary.name: summary for summary in service.list_categories(session, True)}

    assert [summary.name for summary in plain] == [
        "Alimentation",
        "Bâtiment",
        "Fabrication",
        "Services",
        "Transport",
    ]
    assert plain[0].as_dict() == {"id": catalog["categories"]["Alimentation"], "name": "Alimentation"}
    assert with_stats["Bâtiment"].specialty_count == 3
    assert with_stats["Bâtiment"].provider_count == 3
    assert with_stats["Transport"].specialty_count == 0
    assert with_stats["Transport"].provider_count == 0


def test_category_counts_match_category_listings(session, catalog):
    for summary in service.list_categories(session, with_stats=True):
        _, result = service.list_providers_of_category(
            session, summary.id, None, page=1, limit=10_000
        )
        assert summary.provider_count == result.total


def test_list_providers_of_category_applies_extra_criteria(session, catalog):
    category, result = service.list_providers_of_category(
        session,
        catalog["categories"]["Bâtiment"],
        ProviderCriteria(city="Lyon"),
        "rating",
    )

    assert category.name == "Bâtiment"
    assert names(result.items) == ["Atelier Dupont", "Charpente Lyonnaise"]
    with pytest.raises(NotFound):
        service.list_providers_of_category(session, 9999)


def test_get_category_detail(session, catalog):
    detail = service.get_category(session, catalog["categories"]["Bâtiment"])

    payload = detail.as_dict()
    assert [specialty["name"] for specialty in payload["specialties"]] == [
        "Charpentier",
        "Electricien",
        "Plombier",
    ]
    assert payload["stats"] == {"specialty_count": 3, "provider_count": 3}
    with pytest.raises(NotFound):
        service.get_category(session, 9999)


def test_find_category_by_name(session, catalog):
    assert service.find_category_by_name(session, " transport ").name == "Transport"
    with pytest.raises(InvalidArgument):
        service.find_category_by_name(session, "t")
    with pytest.raises(NotFound):
        service.find_category_by_name(session, "Jardinage")


def test_specialties_of_category_with_counts(session, catalog):
    category_id = catalog["categories"]["Bâtiment"]

    plain = service.list_specialties_of_category(session, category_id)
    counted = service.list_specialties_of_category(session, category_id, True)

    assert "provider_count" not in plain[0].as_dict()
    assert [(item.name, item.provider_count) for item in counted] == [
        ("Charpentier", 1),
        ("Electricien", 1),
        ("Plombier", 1),
    ]
    assert counted[2].average_rating == 4.8
    assert service.list_specialties_of_category(
        session, catalog["categories"]["Transport"], True
    ) == []
    with pytest.raises(NotFound):
        service.list_specialties_of_category(session, 9999)


def test_global_stats(session, catalog):
    stats = service.get_stats(session)

    assert stats.total == 8
    assert stats.total == sum(group.count for group in stats.by_department)
    assert stats.by_department[-1].key == UNSPECIFIED
    assert stats.ratings.maximum == 4.8

    lyon = service.get_stats(session, ProviderCriteria(city="Lyon"))
    assert lyon.total == 3
    assert [group.label for group in lyon.by_department] == ["Rhône"]


def test_department_breakdown_matches_listing_total(session, catalog):
    criteria = ProviderCriteria(min_rating=4)

    listing = service.list_providers(session, criteria)
    stats = service.get_stats(session, criteria)

    assert listing.total == sum(group.count for group in stats.by_department)


def test_category_breakdown(session, catalog):
    breakdown = service.category_breakdown(session)

    assert breakdown["summary"] == {
        "category_count": 5,
        "specialty_count": 6,
        "provider_count": 8,
    }
    first = breakdown["distribution"][0]
    assert first["category"] == "Bâtiment"
    assert first["provider_share"] == 38
    assert breakdown["distribution"][-1]["provider_count"] == 0


def test_contact_stats(session, catalog):
    stats = service.contact_stats(session)

    assert stats.as_dict() == {"total": 8, "contactable": 8, "contactable_share": 100}
    assert service.ContactStats(total=0, contactable=0).contactable_share == 0
    assert service.ContactStats(total=3, contactable=2).contactable_share == 67

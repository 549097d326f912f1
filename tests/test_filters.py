import math

import pytest

from artisan_directory.core.errors import InvalidArgument
from artisan_directory.models import Provider
from artisan_directory.services.filters import (
    CategoryIs,
    CityContains,
    MinRating,
    Predicate,
    ProviderCriteria,
    TextContains,
    compile_criteria,
    count_matching,
    matching_providers,
)


def matching_names(session, predicate):
    stmt = matching_providers(predicate).order_by(Provider.company_name)
    return [provider.company_name for provider in session.scalars(stmt)]


def test_identical_criteria_compile_to_equal_predicates():
    first = compile_criteria(ProviderCriteria(city=" Lyon ", min_rating=3, category_id=1))
    second = compile_criteria(ProviderCriteria(category_id=1, min_rating=3.0, city="Lyon"))

    assert first == second
    assert hash(first) == hash(second)
    assert [type(criterion) for criterion in first.criteria] == [
        CityContains,
        CategoryIs,
        MinRating,
    ]


def test_blank_and_zero_criteria_impose_nothing():
    predicate = compile_criteria(
        ProviderCriteria(text="   ", city="", department=None, min_rating=0)
    )

    assert predicate.is_unconstrained
    assert predicate == Predicate()


@pytest.mark.parametrize("value", [-0.5, 5.5, math.nan])
def test_out_of_range_min_rating_is_rejected(value):
    with pytest.raises(InvalidArgument) as excinfo:
        compile_criteria(ProviderCriteria(min_rating=value))

    assert excinfo.value.details[0]["field"] == "min_rating"


def test_non_positive_identifiers_are_rejected():
    with pytest.raises(InvalidArgument):
        compile_criteria(ProviderCriteria(specialty_id=0))
    with pytest.raises(InvalidArgument):
        compile_criteria(ProviderCriteria(category_id=-3))


def test_minimum_text_length_applies_only_when_requested():
    assert compile_criteria(ProviderCriteria(text="a")).criteria == (TextContains("a"),)
    with pytest.raises(InvalidArgument):
        compile_criteria(ProviderCriteria(text=" a "), min_text_length=2)


def test_narrowed_keeps_canonical_order_and_dedupes():
    base = compile_criteria(ProviderCriteria(min_rating=4, city="Lyon"))

    narrowed = base.narrowed(CategoryIs(7))

    assert narrowed == compile_criteria(
        ProviderCriteria(min_rating=4, city="Lyon", category_id=7)
    )
    assert narrowed.narrowed(CategoryIs(7)) == narrowed
    assert base.criteria == (CityContains("Lyon"), MinRating(4.0))


def test_text_matches_company_contact_and_description(session, catalog):
    by_company = compile_criteria(ProviderCriteria(text="bOuLaNgErIe"))
    by_contact = compile_criteria(ProviderCriteria(text="moreau"))
    by_description = compile_criteria(ProviderCriteria(text="levain"))

    assert matching_names(session, by_company) == ["Boulangerie Martin", "Boulangerie Parc"]
    assert matching_names(session, by_contact) == ["Boulangerie Parc"]
    assert matching_names(session, by_description) == ["Boulangerie Parc"]


def test_like_wildcards_in_user_text_are_literal(session, catalog):
    assert count_matching(session, compile_criteria(ProviderCriteria(text="%"))) == 0
    assert count_matching(session, compile_criteria(ProviderCriteria(text="_"))) == 0


def test_criteria_combine_with_and(session, catalog):
    predicate = compile_criteria(
        ProviderCriteria(city="lyon", department="Rhône", min_rating=3.5)
    )

    assert matching_names(session, predicate) == ["Atelier Dupont", "Boulangerie Parc"]


def test_category_criterion_goes_through_specialties(session, catalog):
    predicate = compile_criteria(
        ProviderCriteria(category_id=catalog["categories"]["Bâtiment"])
    )

    assert matching_names(session, predicate) == [
        "Atelier Dupont",
        "Charpente Lyonnaise",
        "Électricité Grenobloise",
    ]


def test_specialty_and_featured_criteria(session, catalog):
    coiffeur = compile_criteria(
        ProviderCriteria(specialty_id=catalog["specialties"]["Coiffeur"])
    )
    featured = compile_criteria(ProviderCriteria(featured=True))

    assert matching_names(session, coiffeur) == ["Coiffure Élégance", "Nomade Services"]
    assert count_matching(session, featured) == 3


def test_count_matches_selection(session, catalog):
    predicate = compile_criteria(ProviderCriteria(min_rating=4.5))

    selected = session.scalars(matching_providers(predicate)).all()

    assert count_matching(session, predicate) == len(selected) == 4
    assert count_matching(session, Predicate()) == session.query(Provider).count()

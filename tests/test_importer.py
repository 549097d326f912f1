import pytest
from sqlalchemy import select

from artisan_directory.importer import (
    department_for_city,
    import_file,
    import_rows,
    normalize_row,
)
from artisan_directory.models import Category, Provider, Specialty

SHEET = """Nom,Note,Ville,A propos,Email,Site Web,Catégorie,Spécialité,Top
Chocolaterie Labbé,"4,9",Lyon,Chocolats artisanaux,chocolaterie@labbe.fr,https://labbe.fr,Alimentation,Chocolatier,oui
Au Pain Chaud,4.8,montélimar,,aupainchaud@example.fr,,alimentation,boulanger,
Sans Email,3.5,Annecy,,,,Services,Fleuriste,
Fleurs De Savoie,4.1,Chamonix,,fleurs@savoie.fr,,Services,Fleuriste,non
Chocolaterie Labbé,5,Lyon,Nouvelle boutique,CHOCOLATERIE@labbe.fr,,Alimentation,Chocolatier,
"""


@pytest.fixture
def sheet(tmp_path):
    path = tmp_path / "artisans.csv"
    path.write_text(SHEET, encoding="utf-8")
    return path


def test_department_inference():
    assert department_for_city("Lyon") == "Rhône"
    assert department_for_city("  saint-étienne ") == "Loire"
    assert department_for_city("Paris") is None
    assert department_for_city(None) is None


def test_normalize_row_maps_headers_and_coerces_values():
    row = normalize_row(
        {
            "Nom": " Au Pain Chaud ",
            "Note": "4,5",
            "Ville": "Grenoble",
            "Email": "pain@example.fr",
            "Top": "Oui",
            "Colonne inconnue": "ignored",
        }
    )

    assert row == {
        "company_name": "Au Pain Chaud",
        "rating": 4.5,
        "city": "Grenoble",
        "email": "pain@example.fr",
        "featured": True,
        "department": "Isère",
    }


def test_import_file_reports_each_row(store, sheet):
    report = import_file(store, sheet)

    assert report.as_dict() == {
        "created": 3,
        "updated": 1,
        "skipped": 1,
        "processed": 5,
        "errors": report.errors,
    }
    assert report.errors[0]["line"] == 4
    assert report.errors[0]["code"] == "invalid_argument"

    with store.session() as db:
        categories = db.scalars(select(Category.name).order_by(Category.name)).all()
        specialties = db.scalars(select(Specialty.name).order_by(Specialty.name)).all()
        labbe = db.scalars(
            select(Provider).where(Provider.email == "chocolaterie@labbe.fr")
        ).one()
        chamonix = db.scalars(
            select(Provider).where(Provider.email == "fleurs@savoie.fr")
        ).one()

        assert categories == ["Alimentation", "Services"]
        assert specialties == ["Boulanger", "Chocolatier", "Fleuriste"]
        assert labbe.rating == 5.0
        assert labbe.description == "Nouvelle boutique"
        assert labbe.department == "Rhône"
        assert chamonix.department is None
        assert chamonix.featured is False


def test_import_rows_is_idempotent(session, catalog):
    rows = [
        {
            "Nom": "Atelier Dupont",
            "Note": "4.8",
            "Ville": "Lyon",
            "Email": "atelier@dupont.fr",
            "Catégorie": "Bâtiment",
            "Spécialité": "Plombier",
            "Top": "oui",
        }
    ]

    first = import_rows(session, rows)
    second = import_rows(session, rows)

    assert (first.created, first.updated) == (0, 1)
    assert (second.created, second.updated) == (0, 1)
    assert session.scalars(
        select(Specialty).where(Specialty.name == "Plombier")
    ).all()[0].id == catalog["specialties"]["Plombier"]

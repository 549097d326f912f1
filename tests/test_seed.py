from sqlalchemy import func, select

from artisan_directory import seed as seed_module
from artisan_directory.db.session import Store
from artisan_directory.models import Category, Provider, Specialty
from artisan_directory.seed import CATALOG, PROVIDERS, seed


def totals(store):
    with store.session() as db:
        return tuple(
            db.scalar(select(func.count()).select_from(model))
            for model in (Category, Specialty, Provider)
        )


def test_seed_is_idempotent(store):
    seed(store)
    first = totals(store)
    seed(store)

    assert first == (
        len(CATALOG),
        sum(len(names) for names in CATALOG.values()),
        len(PROVIDERS),
    )
    assert totals(store) == first
    assert store.is_open


def test_seeded_providers_are_normalized(store):
    seed(store)

    with store.session() as db:
        provider = db.scalars(
            select(Provider).where(Provider.email == "chocolaterie-labbe@gmail.com")
        ).one()
        assert provider.specialty.name == "Chocolatier"
        assert provider.specialty.category.name == "Alimentation"
        assert provider.featured is True


def test_seed_closes_the_store_it_opens(tmp_path, monkeypatch):
    database_url = f"sqlite:///{tmp_path / 'seed.db'}"
    schema = Store(database_url).open()
    schema.create_all()
    schema.close()
    opened = []

    def open_store(url):
        store = Store(database_url)
        opened.append(store)
        return store

    monkeypatch.setattr(seed_module, "Store", open_store)

    seed()

    assert len(opened) == 1
    assert not opened[0].is_open

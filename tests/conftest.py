"""Pytest configuration and fixtures."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from artisan_directory.db.session import Store
from artisan_directory.models import Provider
from artisan_directory.services.mail_client import MailMessage
from artisan_directory.services.writes import (
    create_category,
    create_provider,
    create_specialty,
)

CATEGORIES: dict[str, list[str]] = {
    "Bâtiment": ["Charpentier", "Electricien", "Plombier"],
    "Services": ["Coiffeur"],
    "Fabrication": ["Bijoutier"],
    "Alimentation": ["Boulanger"],
    "Transport": [],
}

PROVIDERS: list[dict[str, Any]] = [
    {
        "company_name": "Atelier Dupont",
        "email": "atelier@dupont.fr",
        "city": "Lyon",
        "department": "Rhône",
        "rating": 4.8,
        "specialty": "Plombier",
        "featured": True,
    },
    {
        "company_name": "Boulangerie Martin",
        "email": "martin@boulangerie.fr",
        "city": "Annecy",
        "department": "Haute-Savoie",
        "rating": 4.8,
        "specialty": "Boulanger",
    },
    {
        "company_name": "Charpente Lyonnaise",
        "email": "contact@charpente.fr",
        "city": "Lyon",
        "department": "Rhône",
        "rating": 3.0,
        "specialty": "Charpentier",
    },
    {
        "company_name": "Électricité Grenobloise",
        "email": "elec@grenoble.fr",
        "city": "Grenoble",
        "department": "Isère",
        "rating": 4.5,
        "specialty": "Electricien",
        "featured": True,
    },
    {
        "company_name": "Coiffure Élégance",
        "email": "elegance@coiffure.fr",
        "city": "Villeurbanne",
        "department": "Rhône",
        "rating": 4.1,
        "specialty": "Coiffeur",
    },
    {
        "company_name": "Bijoux Créations",
        "email": "bijoux@creations.fr",
        "city": "Chambéry",
        "department": "Savoie",
        "rating": 4.5,
        "specialty": "Bijoutier",
        "featured": True,
    },
    {
        "company_name": "Nomade Services",
        "email": "nomade@services.fr",
        "rating": 2.0,
        "specialty": "Coiffeur",
    },
    {
        "company_name": "Boulangerie Parc",
        "contact_name": "Jean-Pierre Moreau",
        "email": "parc@boulangerie.fr",
        "phone": "04 72 00 00 00",
        "address": "12 Rue Du Parc",
        "postal_code": "69006",
        "city": "Lyon",
        "department": "Rhône",
        "rating": 3.9,
        "specialty": "Boulanger",
        "description": "Pain au levain et viennoiseries maison",
        "website": "https://boulangerie-parc.fr",
    },
]

CREATED_BASE = datetime(2024, 1, 1, tzinfo=timezone.utc)


class FakeRelay:
    """Mail relay double recording messages; may fail for chosen recipients."""

    def __init__(self, fail_for: set[str] | None = None) -> None:
        self.sent: list[MailMessage] = []
        self.fail_for = fail_for or set()

    def send(self, message: MailMessage) -> str:
        from artisan_directory.core.errors import DependencyUnavailable

        if message.to in self.fail_for:
            raise DependencyUnavailable("Mail relay timed out")
        self.sent.append(message)
        return f"msg-{len(self.sent)}"


@pytest.fixture
def store():
    """An opened in-memory store with every table created."""

    store = Store("sqlite://").open()
    store.create_all()
    try:
        yield store
    finally:
        store.close()


@pytest.fixture
def session(store):
    session = store.new_session()
    try:
        yield session
    finally:
        session.close()


def build_catalog(session) -> dict[str, dict[str, int]]:
    ids: dict[str, dict[str, int]] = {"categories": {}, "specialties": {}, "providers": {}}
    for category_name, specialty_names in CATEGORIES.items():
        category = create_category(session, category_name)
        ids["categories"][category.name] = category.id
        for specialty_name in specialty_names:
            specialty = create_specialty(session, specialty_name, category.id)
            ids["specialties"][specialty.name] = specialty.id

    for offset, entry in enumerate(PROVIDERS):
        data = dict(entry)
        data["specialty_id"] = ids["specialties"][data.pop("specialty")]
        provider = create_provider(session, data)
        provider.created_at = CREATED_BASE + timedelta(days=offset)
        ids["providers"][provider.company_name] = provider.id

    session.commit()
    return ids


@pytest.fixture
def catalog(session):
    """Ids of the reference catalog, keyed by name."""

    return build_catalog(session)


def names(providers: list[Provider]) -> list[str]:
    return [provider.company_name for provider in providers]

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.orm import Session

from artisan_directory.core.config import settings
from artisan_directory.db.session import Store
from artisan_directory.logging_utils import configure_logging
from artisan_directory.models import Specialty
from artisan_directory.services.writes import (
    get_or_create_category,
    get_or_create_specialty,
    upsert_provider,
)

logger = logging.getLogger(__name__)

CATALOG: dict[str, list[str]] = {
    "Bâtiment": ["Chauffagiste", "Electricien", "Menuisier", "Plombier"],
    "Services": ["Coiffeur", "Fleuriste", "Toiletteur"],
    "Fabrication": ["Bijoutier", "Couturier", "Ferronier"],
    "Alimentation": ["Boucher", "Boulanger", "Chocolatier", "Traiteur"],
}

PROVIDERS: list[dict[str, Any]] = [
    {
        "company_name": "Vallis Bellemare",
        "email": "vallis.bellemare@gmail.com",
        "city": "Vienne",
        "department": "Isère",
        "rating": 4.5,
        "specialty": ("Bâtiment", "Plombier"),
        "website": "https://plomberie-bellemare.com",
        "description": "Plomberie, dépannage et rénovation de salles de bain.",
    },
    {
        "company_name": "Orville Salmons",
        "email": "o-salmons@live.com",
        "city": "Evian",
        "department": "Haute-Savoie",
        "rating": 5.0,
        "specialty": ("Bâtiment", "Chauffagiste"),
        "featured": True,
        "description": "Installation et entretien de chaudières et pompes à chaleur.",
    },
    {
        "company_name": "Mont Blanc Eléctricité",
        "email": "contact@mont-blanc-electricite.com",
        "city": "Chamonix",
        "department": "Haute-Savoie",
        "rating": 4.5,
        "specialty": ("Bâtiment", "Electricien"),
        "website": "https://mont-blanc-electricite.com",
    },
    {
        "company_name": "Boutot & Fils",
        "email": "boutot-menuiserie@gmail.com",
        "city": "Bourg-en-Bresse",
        "department": "Ain",
        "rating": 4.7,
        "specialty": ("Bâtiment", "Menuisier"),
    },
    {
        "company_name": "Royden Charbonneau",
        "email": "r.charbonneau@gmail.com",
        "city": "Saint-Priest",
        "department": "Rhône",
        "rating": 3.8,
        "specialty": ("Services", "Toiletteur"),
    },
    {
        "company_name": "Le Monde Des Fleurs",
        "email": "contact@le-monde-des-fleurs-annecy.com",
        "city": "Annecy",
        "department": "Haute-Savoie",
        "rating": 4.6,
        "specialty": ("Services", "Fleuriste"),
        "featured": True,
    },
    {
        "company_name": "Claude Quinn",
        "email": "claude.quinn@gmail.com",
        "city": "Aix-les-Bains",
        "department": "Savoie",
        "rating": 4.2,
        "specialty": ("Fabrication", "Bijoutier"),
    },
    {
        "company_name": "Chocolaterie Labbé",
        "email": "chocolaterie-labbe@gmail.com",
        "city": "Lyon",
        "department": "Rhône",
        "rating": 4.9,
        "specialty": ("Alimentation", "Chocolatier"),
        "featured": True,
        "website": "https://chocolaterie-labbe.fr",
    },
    {
        "company_name": "Au Pain Chaud",
        "email": "aupainchaud@hotmail.com",
        "city": "Montélimar",
        "department": "Drôme",
        "rating": 4.8,
        "specialty": ("Alimentation", "Boulanger"),
    },
]


def ensure_catalog(session: Session) -> dict[tuple[str, str], Specialty]:
    specialties: dict[tuple[str, str], Specialty] = {}
    for category_name, specialty_names in CATALOG.items():
        category = get_or_create_category(session, category_name)
        for specialty_name in specialty_names:
            specialties[(category_name, specialty_name)] = get_or_create_specialty(
                session, specialty_name, category.id
            )

    logger.info(
        "ensured categories and specialties",
        extra={"categories": len(CATALOG), "specialties": len(specialties)},
    )
    return specialties


def ensure_providers(
    session: Session, specialties: dict[tuple[str, str], Specialty]
) -> int:
    created_count = 0
    for entry in PROVIDERS:
        data = dict(entry)
        data["specialty_id"] = specialties[data.pop("specialty")].id
        _, created = upsert_provider(session, data)
        created_count += int(created)

    logger.info(
        "ensured providers",
        extra={"created_count": created_count, "total": len(PROVIDERS)},
    )
    return created_count


def seed(store: Store | None = None) -> None:
    configure_logging()
    logger.info("starting seed process")

    owns_store = store is None
    store = store or Store(settings.database_url)
    store.open()
    try:
        with store.session() as session:
            try:
                specialties = ensure_catalog(session)
                ensure_providers(session, specialties)
            except Exception:
                logger.exception("seed failed")
                raise
    finally:
        if owns_store:
            store.close()
    logger.info("seed complete")


if __name__ == "__main__":  # pragma: no cover - script entrypoint
    seed()

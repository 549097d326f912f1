"""Bulk import of the provider spreadsheet.

Each row names a category, a specialty and a provider. Categories and
specialties are created on first sight; providers are upserted by email.
Every row is committed on its own so one bad line never blocks the rest.
"""

from __future__ import annotations

import argparse
import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable

import pandas as pd
from sqlalchemy.orm import Session

from artisan_directory.core.config import settings
from artisan_directory.core.errors import DirectoryError
from artisan_directory.db.session import Store
from artisan_directory.logging_utils import configure_logging
from artisan_directory.services.writes import (
    get_or_create_category,
    get_or_create_specialty,
    upsert_provider,
)

logger = logging.getLogger(__name__)

COLUMN_MAP: dict[str, str] = {
    "Nom": "company_name",
    "Note": "rating",
    "Ville": "city",
    "A propos": "description",
    "Email": "email",
    "Site Web": "website",
    "Catégorie": "category",
    "Spécialité": "specialty",
    "Top": "featured",
    "company_name": "company_name",
    "rating": "rating",
    "city": "city",
    "description": "description",
    "email": "email",
    "website": "website",
    "category": "category",
    "specialty": "specialty",
    "featured": "featured",
    "department": "department",
}

DEPARTMENTS_BY_CITY: dict[str, str] = {
    "lyon": "Rhône",
    "villeurbanne": "Rhône",
    "grenoble": "Isère",
    "saint-étienne": "Loire",
    "annecy": "Haute-Savoie",
    "chambéry": "Savoie",
    "valence": "Drôme",
    "clermont-ferrand": "Puy-de-Dôme",
    "montélimar": "Drôme",
    "bourg-en-bresse": "Ain",
    "moulins": "Allier",
    "privas": "Ardèche",
    "aurillac": "Cantal",
    "le puy-en-velay": "Haute-Loire",
}

_TRUE_VALUES = {"true", "1", "oui", "yes", "x"}


@dataclass
class ImportReport:
    created: int = 0
    updated: int = 0
    skipped: int = 0
    errors: list[dict[str, Any]] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return self.created + self.updated + self.skipped

    def as_dict(self) -> dict[str, Any]:
        return {
            "created": self.created,
            "updated": self.updated,
            "skipped": self.skipped,
            "processed": self.processed,
            "errors": self.errors,
        }


def department_for_city(city: str | None) -> str | None:
    if not city:
        return None
    return DEPARTMENTS_BY_CITY.get(" ".join(city.split()).casefold())


def _missing(value: Any) -> bool:
    return value is None or (isinstance(value, float) and math.isnan(value))


def load_sheet(path: str | Path) -> list[dict[str, Any]]:
    """Read an Excel or CSV export into row dictionaries (blank cells → None)."""

    path = Path(path)
    if path.suffix.lower() in {".xlsx", ".xls"}:
        frame = pd.read_excel(path)
    else:
        frame = pd.read_csv(path)
    frame = frame.astype(object).where(frame.notna(), None)
    return frame.to_dict(orient="records")


def _parse_rating(value: Any) -> float:
    if _missing(value) or value == "":
        return 0.0
    if isinstance(value, str):
        value = value.strip().replace(",", ".")
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _parse_flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if _missing(value):
        return False
    return str(value).strip().casefold() in _TRUE_VALUES


def normalize_row(raw: dict[str, Any]) -> dict[str, Any]:
    """Map spreadsheet headers to field names and coerce cell values."""

    row: dict[str, Any] = {}
    for header, value in raw.items():
        key = COLUMN_MAP.get(str(header).strip())
        if key is None or _missing(value):
            continue
        row[key] = value.strip() if isinstance(value, str) else value

    row["rating"] = _parse_rating(row.get("rating"))
    row["featured"] = _parse_flag(row.get("featured"))
    if not row.get("department"):
        row["department"] = department_for_city(row.get("city"))
    return row


def import_row(db: Session, raw: dict[str, Any]) -> bool:
    """Import one row; returns True when the provider was created."""

    row = normalize_row(raw)
    category = get_or_create_category(db, str(row.pop("category", "") or ""))
    specialty = get_or_create_specialty(db, str(row.pop("specialty", "") or ""), category.id)
    row["specialty_id"] = specialty.id
    _, created = upsert_provider(db, row)
    return created


def import_rows(db: Session, rows: Iterable[dict[str, Any]]) -> ImportReport:
    report = ImportReport()
    for line, raw in enumerate(rows, start=2):
        try:
            created = import_row(db, raw)
            db.commit()
        except DirectoryError as exc:
            db.rollback()
            report.skipped += 1
            report.errors.append(
                {"line": line, "code": exc.code, "detail": exc.message, "errors": exc.details}
            )
            logger.warning(
                "import row skipped",
                extra={"line": line, "code": exc.code, "detail": exc.message},
            )
            continue

        if created:
            report.created += 1
        else:
            report.updated += 1

    logger.info(
        "import finished",
        extra={
            "providers_created": report.created,
            "providers_updated": report.updated,
            "rows_skipped": report.skipped,
        },
    )
    return report


def import_file(store: Store, path: str | Path) -> ImportReport:
    rows = load_sheet(path)
    logger.info("import started", extra={"path": str(path), "rows": len(rows)})
    db = store.new_session()
    try:
        return import_rows(db, rows)
    finally:
        db.close()


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Import the provider spreadsheet.")
    parser.add_argument("path", help="Excel (.xlsx) or CSV file to import")
    parser.add_argument("--database-url", default=settings.database_url)
    args = parser.parse_args(argv)

    configure_logging()
    store = Store(args.database_url).open()
    try:
        import_file(store, args.path)
    finally:
        store.close()


if __name__ == "__main__":  # pragma: no cover - script entrypoint
    main()

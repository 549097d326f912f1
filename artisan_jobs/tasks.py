from __future__ import annotations

from pathlib import Path
from typing import Any

from celery.utils.log import get_task_logger

from artisan_directory.db.session import Store
from artisan_directory.importer import import_file
from artisan_jobs.celery_app import celery_app
from artisan_jobs.config import settings

logger = get_task_logger(__name__)


def _resolve_path(path: str) -> Path:
    """Relative paths are looked up in the configured import directory."""

    candidate = Path(path)
    if not candidate.is_absolute():
        candidate = Path(settings.import_directory) / candidate
    return candidate


@celery_app.task(name="jobs.import_catalog")
def import_catalog(path: str, database_url: str | None = None) -> dict[str, Any]:
    """Import a provider spreadsheet and return the import report."""

    source = _resolve_path(path)
    if not source.exists():
        logger.warning("Import file %s does not exist", source)
        return {"path": str(source), "error": "file not found"}

    store = Store(database_url or settings.database_url).open()
    try:
        report = import_file(store, source)
    finally:
        store.close()

    logger.info(
        "Imported %s: %s created, %s updated, %s skipped",
        source,
        report.created,
        report.updated,
        report.skipped,
    )
    return {"path": str(source), **report.as_dict()}

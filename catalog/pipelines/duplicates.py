"""Duplicate detection against the import transaction's view of the catalog.

Lookups run on the importer's own session, so records flushed earlier in the
same batch are visible and duplicates inside one file are caught without a
separate in-memory pass. Keys are checked in a fixed order and only when the
row carries them.
"""
from __future__ import annotations

import logging
import re

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from catalog import models
from catalog.pipelines.normalization import NormalizedJournal, NormalizedPublication, fold_term
from catalog.pipelines.outcomes import Duplicate

logger = logging.getLogger(__name__)

PUBLICATION_KEYS = ("doi", "pmid", "wos_number")
JOURNAL_KEYS = ("name_year", "issn_year")

# constraint name (PostgreSQL) or "table.column" (SQLite) -> duplicate key
_CONSTRAINT_KEYS = {
    "uq_publications_doi": "doi",
    "publications.doi": "doi",
    "uq_publications_pmid": "pmid",
    "publications.pmid": "pmid",
    "uq_publications_wos_number": "wos_number",
    "publications.wos_number": "wos_number",
    "uq_journals_name_year": "name_year",
    "journals.name, journals.year": "name_year",
    "uq_journals_issn_year": "issn_year",
    "journals.issn, journals.year": "issn_year",
}


async def find_duplicate_publication(
    session: AsyncSession,
    row: NormalizedPublication,
) -> Duplicate | None:
    """Return the first taken key of ``row`` (DOI, PMID, WOS number) or None."""
    lookups = (
        ("doi", row.doi, func.lower(models.Publication.doi)),
        ("pmid", row.pmid, models.Publication.pmid),
        ("wos_number", row.wos_number, models.Publication.wos_number),
    )
    for key, value, column in lookups:
        if not value:
            continue
        probe = value.lower() if key == "doi" else value
        result = await session.execute(
            select(models.Publication.id).where(column == probe).limit(1)
        )
        existing_id = result.scalar_one_or_none()
        if existing_id is not None:
            return Duplicate(key=key, value=value, existing_id=existing_id)
    return None


async def find_duplicate_journal(
    session: AsyncSession,
    row: NormalizedJournal,
) -> Duplicate | None:
    """Return a clash on (name, year) or on (ISSN, year), in that order, or None."""
    result = await session.execute(
        select(models.Journal.id)
        .where(
            func.lower(func.trim(models.Journal.name)) == fold_term(row.name),
            models.Journal.year == row.year,
        )
        .limit(1)
    )
    existing_id = result.scalar_one_or_none()
    if existing_id is not None:
        return Duplicate(key="name_year", value=f"{row.name} ({row.year})", existing_id=existing_id)

    if row.issn:
        result = await session.execute(
            select(models.Journal.id)
            .where(
                func.upper(func.replace(models.Journal.issn, "-", "")) == row.issn.replace("-", ""),
                models.Journal.year == row.year,
            )
            .limit(1)
        )
        existing_id = result.scalar_one_or_none()
        if existing_id is not None:
            return Duplicate(key="issn_year", value=f"{row.issn} ({row.year})", existing_id=existing_id)
    return None


def duplicate_key_from_integrity_error(exc: IntegrityError) -> str | None:
    """Name the uniqueness key an insert collided on, or None if it was not a uniqueness error."""
    message = str(exc.orig) if exc.orig is not None else str(exc)
    lowered = message.lower()
    if "unique" not in lowered and "duplicate" not in lowered:
        return None
    for marker, key in _CONSTRAINT_KEYS.items():
        if marker in lowered:
            return key
    match = re.search(r'key \((\w+)\)', lowered)
    if match and match.group(1) in PUBLICATION_KEYS:
        return match.group(1)
    return ""
